"""
Time-to-Collision Estimation.

Both estimators assume a constant relative velocity between two frames
taken dT = 1 / frame_rate apart.

LiDAR (distance based):
=======================
With d0, d1 the distance to the preceding object in the previous and
current frame:

    v   = (d0 - d1) / dT
    TTC = d1 / v = d1 * dT / (d0 - d1)

The distance is the mean forward coordinate of the points inside the ego
lane. The mean rather than the closest point keeps single stray returns from
dominating, at the cost of a bias when the points are unevenly spread over
the object.

Camera (scale based):
=====================
Under a pinhole model the image distance between two points on the object is
inversely proportional to the object's distance. With h0, h1 the image
distances and ratio = h1 / h0 = d0 / d1:

    TTC = -dT / (1 - ratio)

Every pair of matched keypoints gives one ratio. Mismatches make the ratio
distribution heavy tailed, so the median is used.

Degenerate inputs give NaN. Non-closing motion gives an infinite or negative
TTC; callers must treat any non-finite value as "no estimate".
"""

from typing import Sequence

import numpy as np

from ..data.structures import (
    KeypointsLike,
    MatchedKeypointPair,
    PointsLike,
    keypoints_to_array,
    points_to_array,
)
from ..utils.logger import LoggerMixin

# Minimum previous-frame keypoint distance treated as non-zero
DISTANCE_EPSILON = np.finfo(np.float64).eps


def median_select(values: Sequence[float]) -> float:
    """
    Median by selection, without sorting the whole sequence.

    Uses ``numpy.partition`` (introselect) to place the element(s) of rank
    n // 2 (and n // 2 - 1 for even n) in order.

    Args:
        values: Non-empty sequence of reals.

    Returns:
        Middle element for odd n, mean of the two middle elements for even n.

    Example:
        >>> median_select([3, 1, 2])
        2.0
        >>> median_select([4, 1, 3, 2])
        2.5
    """
    values = np.asarray(values, dtype=np.float64).ravel()
    n = len(values)

    if n == 0:
        raise ValueError("median of an empty sequence is undefined")

    mid = n // 2

    if n % 2 == 1:
        return float(np.partition(values, mid)[mid])

    part = np.partition(values, [mid - 1, mid])
    return float((part[mid - 1] + part[mid]) / 2.0)


def _frame_interval(frame_rate: float) -> float:
    if not frame_rate > 0:
        raise ValueError(f"frame_rate must be positive, got {frame_rate}")
    return 1.0 / frame_rate


class LidarTTCEstimator(LoggerMixin):
    """
    TTC from the forward distance of LiDAR points in the ego lane.

    Attributes:
        lane_width: Width of the ego lane corridor in meters. Points with
            |y| > lane_width / 2 are ignored.

    Example:
        >>> estimator = LidarTTCEstimator(lane_width=4.0)
        >>> estimator.estimate(prev_box.points, curr_box.points, frame_rate=10.0)
        12.5
    """

    def __init__(self, lane_width: float = 4.0):
        if lane_width <= 0:
            raise ValueError(f"lane_width must be positive, got {lane_width}")

        self.lane_width = lane_width

    def filter_lane(self, points: PointsLike) -> np.ndarray:
        """Return the (M, 4) points with |y| <= lane_width / 2."""
        points = points_to_array(points)
        return points[np.abs(points[:, 1]) <= self.lane_width / 2.0]

    def estimate(
        self,
        previous_points: PointsLike,
        current_points: PointsLike,
        frame_rate: float,
    ) -> float:
        """
        Estimate TTC in seconds.

        Args:
            previous_points: Points of the object in the previous frame.
            current_points: Points of the object in the current frame.
            frame_rate: Frame rate in Hz.

        Returns:
            TTC in seconds. NaN if either frame has no point in the ego
            lane; non-finite if the object is not closing in.
        """
        dT = _frame_interval(frame_rate)

        prev_lane = self.filter_lane(previous_points)
        curr_lane = self.filter_lane(current_points)

        if len(prev_lane) == 0 or len(curr_lane) == 0:
            self.logger.debug(
                f"No ego lane points (prev={len(prev_lane)}, curr={len(curr_lane)})"
            )
            return float("nan")

        avg_prev = np.mean(prev_lane[:, 0])
        avg_curr = np.mean(curr_lane[:, 0])

        with np.errstate(divide="ignore", invalid="ignore"):
            ttc = avg_curr * dT / (avg_prev - avg_curr)

        self.logger.debug(
            f"Lidar TTC {ttc:.3f}s (x_prev={avg_prev:.3f}m, x_curr={avg_curr:.3f}m)"
        )
        return float(ttc)


class CameraTTCEstimator(LoggerMixin):
    """
    TTC from the change of keypoint distances within a box.

    Attributes:
        min_distance: Minimum current-frame pixel distance between the two
            keypoints of a pair. Closer pairs give unstable ratios.

    Example:
        >>> estimator = CameraTTCEstimator(min_distance=100.0)
        >>> estimator.estimate(prev_kpts, curr_kpts, box.matches, frame_rate=10.0)
        11.8
    """

    def __init__(self, min_distance: float = 100.0):
        if min_distance < 0:
            raise ValueError(f"min_distance must be non-negative, got {min_distance}")

        self.min_distance = min_distance

    def distance_ratios(
        self,
        previous_keypoints: KeypointsLike,
        current_keypoints: KeypointsLike,
        matches: Sequence[MatchedKeypointPair],
    ) -> np.ndarray:
        """
        Distance ratios of all usable match pairs.

        Pairs (i, j) with i < j in match order are considered once each.

        Args:
            previous_keypoints: (K0, 2) previous-frame keypoints.
            current_keypoints: (K1, 2) current-frame keypoints.
            matches: Matches of one box.

        Returns:
            (R,) array of dist_curr / dist_prev.
        """
        if len(matches) < 2:
            return np.zeros(0)

        previous_keypoints = keypoints_to_array(previous_keypoints)
        current_keypoints = keypoints_to_array(current_keypoints)

        prev_pts = previous_keypoints[[m.previous_index for m in matches]]
        curr_pts = current_keypoints[[m.current_index for m in matches]]

        outer, inner = np.triu_indices(len(matches), k=1)

        dist_curr = np.linalg.norm(curr_pts[outer] - curr_pts[inner], axis=1)
        dist_prev = np.linalg.norm(prev_pts[outer] - prev_pts[inner], axis=1)

        usable = (dist_prev > DISTANCE_EPSILON) & (dist_curr >= self.min_distance)

        return dist_curr[usable] / dist_prev[usable]

    def estimate(
        self,
        previous_keypoints: KeypointsLike,
        current_keypoints: KeypointsLike,
        matches: Sequence[MatchedKeypointPair],
        frame_rate: float,
    ) -> float:
        """
        Estimate TTC in seconds.

        Args:
            previous_keypoints: (K0, 2) previous-frame keypoints.
            current_keypoints: (K1, 2) current-frame keypoints.
            matches: Matches of one box.
            frame_rate: Frame rate in Hz.

        Returns:
            TTC in seconds. NaN if there are no matches or no usable pair.
        """
        dT = _frame_interval(frame_rate)

        if len(matches) == 0:
            return float("nan")

        ratios = self.distance_ratios(previous_keypoints, current_keypoints, matches)

        if len(ratios) == 0:
            self.logger.debug(f"No usable keypoint pairs among {len(matches)} matches")
            return float("nan")

        median_ratio = median_select(ratios)

        with np.errstate(divide="ignore", invalid="ignore"):
            ttc = -dT / (1.0 - np.float64(median_ratio))

        self.logger.debug(
            f"Camera TTC {ttc:.3f}s (median ratio {median_ratio:.4f} over {len(ratios)} pairs)"
        )
        return float(ttc)


def compute_ttc_lidar(
    previous_points: PointsLike,
    current_points: PointsLike,
    frame_rate: float,
    lane_width: float = 4.0,
) -> float:
    """Functional form of ``LidarTTCEstimator.estimate``."""
    return LidarTTCEstimator(lane_width).estimate(previous_points, current_points, frame_rate)


def compute_ttc_camera(
    previous_keypoints: KeypointsLike,
    current_keypoints: KeypointsLike,
    matches: Sequence[MatchedKeypointPair],
    frame_rate: float,
    min_distance: float = 100.0,
) -> float:
    """Functional form of ``CameraTTCEstimator.estimate``."""
    return CameraTTCEstimator(min_distance).estimate(
        previous_keypoints, current_keypoints, matches, frame_rate
    )
