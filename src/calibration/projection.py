"""
LiDAR to Image Projection.

Mathematical Background:
========================

A LiDAR point P = (x, y, z) is mapped to the image through the chain

    [u']                                     [x]
    [v'] = P_rect * R_rect(4x4) * RT(4x4) *  [y]
    [w ]                                     [z]
                                             [1]

followed by perspective division:

    u = u' / w,  v = v' / w

w is the depth of the point along the optical axis. For w = 0 the division
is undefined; such points are reported as invalid with NaN pixel
coordinates. Points behind the camera (w < 0) still project (mirrored)
and are left to the caller, matching a plain matrix projection.
"""

from typing import Tuple

import numpy as np

from .calib_set import CalibrationSet
from ..data.structures import Point3D, PointsLike, points_to_array

# |w| at or below this is treated as a zero homogeneous depth
DEPTH_EPSILON = 1e-12


def project_points(
    points: PointsLike,
    calib: CalibrationSet,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Project LiDAR points to pixel coordinates.

    Args:
        points: (N, 3) or (N, 4) LiDAR points, or a sequence of Point3D.
        calib: Calibration set.

    Returns:
        Tuple[np.ndarray, np.ndarray]:
            - pixels: (N, 2) pixel coordinates, NaN where invalid
            - valid: (N,) boolean mask, False where the homogeneous depth is zero

    Example:
        >>> calib = CalibrationSet.identity(fx=100, fy=100, cx=50, cy=50)
        >>> pixels, valid = project_points(np.array([[1.0, 0.0, 10.0]]), calib)
        >>> pixels[0]
        array([60., 50.])
    """
    points = points_to_array(points)
    n_points = len(points)

    if n_points == 0:
        return np.zeros((0, 2)), np.zeros(0, dtype=bool)

    pts_hom = np.hstack([points[:, :3], np.ones((n_points, 1))])  # (N, 4)
    pts_img = (calib.projection_matrix @ pts_hom.T).T  # (N, 3)

    w = pts_img[:, 2]
    valid = np.isfinite(w) & (np.abs(w) > DEPTH_EPSILON)

    pixels = np.full((n_points, 2), np.nan)
    pixels[valid] = pts_img[valid, :2] / w[valid, np.newaxis]

    return pixels, valid


def project_point(point: Point3D, calib: CalibrationSet) -> Tuple[float, float]:
    """
    Project a single point.

    Args:
        point: LiDAR point.
        calib: Calibration set.

    Returns:
        (u, v) pixel coordinates, (nan, nan) if the homogeneous depth is zero.
    """
    pixels, _ = project_points([point], calib)
    return float(pixels[0, 0]), float(pixels[0, 1])


class Projector:
    """
    Project LiDAR points into the image of a calibrated camera.

    Attributes:
        calib: Calibration set used for every projection.

    Example:
        >>> projector = Projector(CalibrationSet.from_kitti_calib("calib/000000.txt"))
        >>> pixels, valid = projector.project_points(lidar_points)
    """

    def __init__(self, calib: CalibrationSet):
        self.calib = calib

    def project(self, point: Point3D) -> Tuple[float, float]:
        """Project a single point, see ``project_point``."""
        return project_point(point, self.calib)

    def project_points(self, points: PointsLike) -> Tuple[np.ndarray, np.ndarray]:
        """Project many points, see ``project_points``."""
        return project_points(points, self.calib)

    def points_in_image(
        self,
        points: PointsLike,
        image_shape: Tuple[int, int],
    ) -> np.ndarray:
        """
        Mask of points in front of the camera that land inside the image.

        Args:
            points: (N, 3) or (N, 4) LiDAR points.
            image_shape: (height, width) of the image.

        Returns:
            (N,) boolean mask.
        """
        points = points_to_array(points)
        height, width = image_shape[:2]
        pixels, valid = self.project_points(points)

        pts_hom = np.hstack([points[:, :3], np.ones((len(points), 1))])
        depth = (self.calib.projection_matrix @ pts_hom.T)[2] if len(points) else np.zeros(0)

        with np.errstate(invalid="ignore"):
            return (
                valid &
                (depth > 0) &
                (pixels[:, 0] >= 0) & (pixels[:, 0] < width) &
                (pixels[:, 1] >= 0) & (pixels[:, 1] < height)
            )

    def __repr__(self) -> str:
        return f"Projector({self.calib!r})"
