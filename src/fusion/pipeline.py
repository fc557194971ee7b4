"""
Per frame-pair TTC pipeline.

The typical flow:
    1. Assign LiDAR points to the boxes of both frames
    2. Match previous boxes to current boxes by keypoint votes
    3. For each matched pair:
       a. LiDAR TTC from the points of both boxes
       b. Attach in-box keypoint matches to the current box
       c. Camera TTC from those matches

The two TTC values are reported side by side; they are not fused.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

import numpy as np

from ..calibration.calib_set import CalibrationSet
from ..data.structures import Frame, MatchedKeypointPair
from ..utils.config_loader import get_nested
from ..utils.logger import LoggerMixin
from .box_matching import BoxMatcher
from .keypoint_clustering import KeypointROIClusterer
from .lidar_clustering import LidarROIClusterer
from .ttc import CameraTTCEstimator, LidarTTCEstimator


@dataclass
class TTCResult:
    """
    TTC estimates for one matched box pair.

    Attributes:
        previous_box_id: Box id in the previous frame.
        current_box_id: Box id in the current frame.
        votes: Keypoint matches shared by both boxes.
        ttc_lidar: LiDAR TTC in seconds (may be non-finite).
        ttc_camera: Camera TTC in seconds (may be non-finite).
        num_points_prev: LiDAR points in the previous box.
        num_points_curr: LiDAR points in the current box.
        num_matches: Filtered keypoint matches in the current box.
    """

    previous_box_id: int
    current_box_id: int
    votes: int
    ttc_lidar: float
    ttc_camera: float
    num_points_prev: int = 0
    num_points_curr: int = 0
    num_matches: int = 0

    @property
    def has_lidar(self) -> bool:
        return bool(np.isfinite(self.ttc_lidar))

    @property
    def has_camera(self) -> bool:
        return bool(np.isfinite(self.ttc_camera))

    @property
    def is_valid(self) -> bool:
        """True if both estimates are finite."""
        return self.has_lidar and self.has_camera

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "previous_box_id": self.previous_box_id,
            "current_box_id": self.current_box_id,
            "votes": self.votes,
            "ttc_lidar": self.ttc_lidar,
            "ttc_camera": self.ttc_camera,
            "num_points_prev": self.num_points_prev,
            "num_points_curr": self.num_points_curr,
            "num_matches": self.num_matches,
        }

    def __repr__(self) -> str:
        return (
            f"TTCResult({self.previous_box_id}->{self.current_box_id}, "
            f"lidar={self.ttc_lidar:.2f}s, camera={self.ttc_camera:.2f}s)"
        )


class TTCPipeline(LoggerMixin):
    """
    Run box matching, clustering and both TTC estimators on a frame pair.

    Attributes:
        calib: Calibration shared by both frames.
        frame_rate: Sensor frame rate in Hz.
        lidar_clusterer: Assigns LiDAR points to boxes.
        box_matcher: Matches boxes across frames.
        keypoint_clusterer: Attaches keypoint matches to boxes.
        lidar_estimator: LiDAR TTC estimator.
        camera_estimator: Camera TTC estimator.
        require_lidar_points: Only report pairs whose boxes both hold points.

    Example:
        >>> pipeline = TTCPipeline.from_config(load_config(), calib)
        >>> results = pipeline.process(prev_frame, curr_frame, matches)
        >>> [r for r in results if r.is_valid]
    """

    def __init__(
        self,
        calib: CalibrationSet,
        frame_rate: float = 10.0,
        shrink_factor: float = 0.10,
        lane_width: float = 4.0,
        min_distance: float = 100.0,
        distance_ratio: float = 0.8,
        unmatched_policy: str = "first",
        require_lidar_points: bool = True,
    ):
        if not frame_rate > 0:
            raise ValueError(f"frame_rate must be positive, got {frame_rate}")

        self.calib = calib
        self.frame_rate = frame_rate
        self.require_lidar_points = require_lidar_points

        self.lidar_clusterer = LidarROIClusterer(calib, shrink_factor)
        self.box_matcher = BoxMatcher(unmatched_policy)
        self.keypoint_clusterer = KeypointROIClusterer(distance_ratio)
        self.lidar_estimator = LidarTTCEstimator(lane_width)
        self.camera_estimator = CameraTTCEstimator(min_distance)

    @classmethod
    def from_config(cls, config: Dict[str, Any], calib: CalibrationSet) -> "TTCPipeline":
        """
        Build from a configuration dictionary (see configs/default.yaml).

        Args:
            config: Configuration dictionary.
            calib: Calibration set.

        Returns:
            Configured pipeline.
        """
        return cls(
            calib=calib,
            frame_rate=get_nested(config, "sensor.frame_rate", 10.0),
            shrink_factor=get_nested(config, "lidar.shrink_factor", 0.10),
            lane_width=get_nested(config, "lidar.lane_width", 4.0),
            min_distance=get_nested(config, "camera.min_distance", 100.0),
            distance_ratio=get_nested(config, "camera.distance_ratio", 0.8),
            unmatched_policy=get_nested(config, "matching.unmatched_policy", "first"),
            require_lidar_points=get_nested(config, "lidar.require_points", True),
        )

    def cluster_lidar(self, frame: Frame) -> None:
        """
        Assign the frame's LiDAR points to its boxes.

        Points and matches left on the boxes by an earlier call are dropped
        first, so re-processing a frame does not accumulate them.
        """
        for box in frame.boxes:
            box.clear()
        self.lidar_clusterer.cluster(frame.boxes, frame.points)

    def process(
        self,
        previous_frame: Frame,
        current_frame: Frame,
        matches: Sequence[MatchedKeypointPair],
        cluster_previous: bool = True,
    ) -> List[TTCResult]:
        """
        Estimate TTC for every matched box pair.

        Args:
            previous_frame: Previous frame (boxes, keypoints, points).
            current_frame: Current frame (boxes, keypoints, points).
            matches: Keypoint matches from previous to current frame.
            cluster_previous: Cluster LiDAR points of the previous frame too.
                Set False when the previous frame was already clustered as
                the current frame of the preceding pair.

        Returns:
            One TTCResult per matched pair, in previous-frame box order.
        """
        if cluster_previous:
            self.cluster_lidar(previous_frame)
        self.cluster_lidar(current_frame)

        mapping = self.box_matcher.match(matches, previous_frame, current_frame)
        votes = self.box_matcher.last_votes

        prev_index = {box.id: i for i, box in enumerate(previous_frame.boxes)}
        curr_index = {box.id: j for j, box in enumerate(current_frame.boxes)}

        results = []
        clustered = set()
        for prev_id, curr_id in mapping.items():
            if curr_id is None:
                continue

            prev_box = previous_frame.boxes[prev_index[prev_id]]
            curr_box = current_frame.boxes[curr_index[curr_id]]

            if self.require_lidar_points and (
                prev_box.num_points == 0 or curr_box.num_points == 0
            ):
                self.logger.debug(f"Skipping pair {prev_id}->{curr_id}: no LiDAR points")
                continue

            ttc_lidar = self.lidar_estimator.estimate(
                prev_box.points, curr_box.points, self.frame_rate
            )

            # Several previous boxes may share one current box
            if curr_id not in clustered:
                self.keypoint_clusterer.cluster(
                    curr_box, previous_frame.keypoints, current_frame.keypoints, matches
                )
                clustered.add(curr_id)

            ttc_camera = self.camera_estimator.estimate(
                previous_frame.keypoints,
                current_frame.keypoints,
                curr_box.matches,
                self.frame_rate,
            )

            result = TTCResult(
                previous_box_id=prev_id,
                current_box_id=curr_id,
                votes=int(votes[prev_index[prev_id], curr_index[curr_id]]),
                ttc_lidar=ttc_lidar,
                ttc_camera=ttc_camera,
                num_points_prev=prev_box.num_points,
                num_points_curr=curr_box.num_points,
                num_matches=len(curr_box.matches),
            )
            self.logger.info(
                f"Frame '{current_frame.frame_id}' box {prev_id}->{curr_id}: "
                f"TTC lidar={ttc_lidar:.2f}s camera={ttc_camera:.2f}s"
            )
            results.append(result)

        return results
