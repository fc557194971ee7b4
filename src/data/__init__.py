"""Data model and loaders for camera/LiDAR frames."""

from .structures import (
    Box,
    Frame,
    Keypoint,
    MatchedKeypointPair,
    Point3D,
    Region,
    keypoints_to_array,
    points_to_array,
    region_contains,
)
from .kitti_loader import KITTISequenceLoader, load_detections, load_velodyne

__all__ = [
    "Box",
    "Frame",
    "Keypoint",
    "MatchedKeypointPair",
    "Point3D",
    "Region",
    "keypoints_to_array",
    "points_to_array",
    "region_contains",
    "KITTISequenceLoader",
    "load_detections",
    "load_velodyne",
]
