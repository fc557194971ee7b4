"""
Camera/LiDAR fusion for time-to-collision estimation.

Classes:
    LidarROIClusterer: Assign LiDAR points to bounding boxes
    BoxMatcher: Match boxes across frames by keypoint votes
    KeypointROIClusterer: Attach filtered keypoint matches to a box
    LidarTTCEstimator: TTC from LiDAR distances
    CameraTTCEstimator: TTC from keypoint distance ratios
    TTCPipeline: All of the above for one frame pair
"""

from .box_matching import BoxMatcher, match_bounding_boxes
from .keypoint_clustering import KeypointROIClusterer, cluster_kpt_matches_with_roi
from .lidar_clustering import LidarROIClusterer, cluster_lidar_with_roi, crop_lidar_points
from .pipeline import TTCPipeline, TTCResult
from .ttc import (
    CameraTTCEstimator,
    LidarTTCEstimator,
    compute_ttc_camera,
    compute_ttc_lidar,
    median_select,
)

__all__ = [
    "BoxMatcher",
    "match_bounding_boxes",
    "KeypointROIClusterer",
    "cluster_kpt_matches_with_roi",
    "LidarROIClusterer",
    "cluster_lidar_with_roi",
    "crop_lidar_points",
    "TTCPipeline",
    "TTCResult",
    "CameraTTCEstimator",
    "LidarTTCEstimator",
    "compute_ttc_camera",
    "compute_ttc_lidar",
    "median_select",
]
