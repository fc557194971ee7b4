"""
Calibration and projection for camera-LiDAR geometry.

Classes:
    CalibrationSet: Projection, rectification and extrinsic matrices.
    Projector: Projects LiDAR points with a bound calibration.

Functions:
    project_point: Project a single Point3D to pixels.
    project_points: Vectorised projection with a validity mask.

Example Usage:
    >>> from src.calibration import CalibrationSet, Projector
    >>> calib = CalibrationSet.from_kitti_calib("path/to/calib.txt")
    >>> pixels, valid = Projector(calib).project_points(lidar_points)
"""

from .calib_set import CalibrationSet, rigid_to_homogeneous
from .projection import Projector, project_point, project_points

__all__ = [
    "CalibrationSet",
    "Projector",
    "project_point",
    "project_points",
    "rigid_to_homogeneous",
]
