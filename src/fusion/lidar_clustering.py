"""
Association of LiDAR points with 2D bounding boxes.

Every point is projected into the image and assigned to the box whose
shrunk region contains its projection. Regions are shrunk around their
center first so that points on the object border, which often belong to
the background or the road, are less likely to be picked up.

A point inside two or more shrunk regions (overlapping boxes) cannot be
attributed reliably and is dropped, as are points inside none.
"""

from typing import List, Optional

import numpy as np

from ..calibration.calib_set import CalibrationSet
from ..calibration.projection import project_points
from ..data.structures import Box, PointsLike, points_to_array
from ..utils.logger import LoggerMixin


def crop_lidar_points(
    points: PointsLike,
    min_x: float = 2.0,
    max_x: float = 20.0,
    max_y: float = 2.0,
    min_z: float = -1.5,
    max_z: float = -0.9,
    min_r: float = 0.1,
) -> np.ndarray:
    """
    Keep points on the obstacle ahead in the ego lane.

    Args:
        points: (N, 3) or (N, 4) LiDAR points.
        min_x: Minimum forward distance (m).
        max_x: Maximum forward distance (m).
        max_y: Maximum absolute lateral offset (m).
        min_z: Minimum height (m), drops the road surface.
        max_z: Maximum height (m).
        min_r: Minimum reflectivity.

    Returns:
        (M, 4) cropped points.
    """
    points = points_to_array(points)

    mask = (
        (points[:, 0] >= min_x) & (points[:, 0] <= max_x) &
        (np.abs(points[:, 1]) <= max_y) &
        (points[:, 2] >= min_z) & (points[:, 2] <= max_z) &
        (points[:, 3] >= min_r)
    )

    return points[mask]


def assignment_mask(
    pixels: np.ndarray,
    boxes: List[Box],
    shrink_factor: float,
) -> np.ndarray:
    """
    Containment of every pixel in every shrunk box region.

    Args:
        pixels: (N, 2) projected points, NaN rows never match.
        boxes: Boxes to test against.
        shrink_factor: Shrink factor in [0, 1).

    Returns:
        (N, B) boolean matrix, True where pixel n is inside shrunk box b.
    """
    mask = np.zeros((len(pixels), len(boxes)), dtype=bool)

    for j, box in enumerate(boxes):
        mask[:, j] = box.region.shrink(shrink_factor).contains_points(pixels)

    return mask


class LidarROIClusterer(LoggerMixin):
    """
    Group LiDAR points by the bounding box their projection falls into.

    Attributes:
        calib: Calibration used to project points.
        shrink_factor: Fraction by which regions are shrunk, in [0, 1).

    Example:
        >>> clusterer = LidarROIClusterer(calib, shrink_factor=0.1)
        >>> clusterer.cluster(frame.boxes, frame.points)
        >>> frame.boxes[0].points.shape
        (412, 4)
    """

    def __init__(
        self,
        calib: Optional[CalibrationSet] = None,
        shrink_factor: float = 0.10,
    ):
        if not 0.0 <= shrink_factor < 1.0:
            raise ValueError(f"shrink_factor must be in [0, 1), got {shrink_factor}")

        self.calib = calib
        self.shrink_factor = shrink_factor

    def cluster(
        self,
        boxes: List[Box],
        points: PointsLike,
        shrink_factor: Optional[float] = None,
        calib: Optional[CalibrationSet] = None,
    ) -> None:
        """
        Append every unambiguously enclosed point to its box.

        Args:
            boxes: Boxes of one frame, mutated in place.
            points: (N, 3) or (N, 4) LiDAR points of the same frame.
            shrink_factor: Override the instance shrink factor.
            calib: Override the instance calibration.
        """
        calib = calib if calib is not None else self.calib
        if calib is None:
            raise ValueError("No calibration provided")

        shrink_factor = self.shrink_factor if shrink_factor is None else shrink_factor

        points = points_to_array(points)
        if len(points) == 0 or len(boxes) == 0:
            return

        pixels, valid = project_points(points, calib)

        enclosing = assignment_mask(pixels, boxes, shrink_factor)
        enclosing[~valid] = False

        unique = enclosing.sum(axis=1) == 1
        owner = np.argmax(enclosing, axis=1)

        for j, box in enumerate(boxes):
            box.add_points(points[unique & (owner == j)])

        self.logger.debug(
            f"Assigned {int(unique.sum())}/{len(points)} points to {len(boxes)} boxes "
            f"({int((enclosing.sum(axis=1) > 1).sum())} ambiguous, "
            f"{int((~valid).sum())} unprojectable)"
        )


def cluster_lidar_with_roi(
    boxes: List[Box],
    points: PointsLike,
    shrink_factor: float,
    calib: CalibrationSet,
) -> None:
    """Functional form of ``LidarROIClusterer.cluster``."""
    LidarROIClusterer(calib, shrink_factor).cluster(boxes, points)
