"""
Camera-LiDAR calibration set.

KITTI Calibration Files:
========================

Object benchmark format (one file per frame, calib/XXXXXX.txt):

    P2: 3x4 projection matrix of the left color camera
    R0_rect: 3x3 rectification matrix
    Tr_velo_to_cam: 3x4 rigid body transformation

Raw sequence format (one pair of files per recording day):

    calib_cam_to_cam.txt: P_rect_02 (3x4), R_rect_00 (3x3), ...
    calib_velo_to_cam.txt: R (3x3, row major), T (3,)

Complete LiDAR to Image Projection:
    p_img = P_rect * R_rect * Tr_velo_to_cam * [P_velo; 1]

Here R_rect is padded to 4x4 and Tr_velo_to_cam is the 4x4 homogeneous
form of [R | T].
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Union

import numpy as np


def _read_calib_file(calib_path: Union[str, Path]) -> Dict[str, np.ndarray]:
    """Parse ``key: v1 v2 ...`` lines into flat float arrays."""
    calib_path = Path(calib_path)
    if not calib_path.exists():
        raise FileNotFoundError(f"Calibration file not found: {calib_path}")

    calib_data = {}
    with open(calib_path, "r") as f:
        for line in f:
            if ":" not in line:
                continue
            key, value = line.split(":", 1)
            try:
                calib_data[key.strip()] = np.array(
                    [float(x) for x in value.strip().split()]
                )
            except ValueError:
                # Non-numeric entries such as calib_time
                continue

    return calib_data


def _require(calib_data: Dict[str, np.ndarray], key: str, size: int, source: Path) -> np.ndarray:
    if key not in calib_data:
        raise ValueError(f"Missing '{key}' in calibration file {source}")
    value = calib_data[key]
    if value.size != size:
        raise ValueError(f"'{key}' must have {size} values, got {value.size} in {source}")
    return value


def rigid_to_homogeneous(R: np.ndarray, t: np.ndarray) -> np.ndarray:
    """
    Build the 4x4 homogeneous transform [R t; 0 1].

    Args:
        R: 3x3 rotation matrix.
        t: (3,) translation vector.

    Returns:
        4x4 transformation matrix.
    """
    T = np.eye(4)
    T[:3, :3] = np.asarray(R, dtype=np.float64).reshape(3, 3)
    T[:3, 3] = np.asarray(t, dtype=np.float64).flatten()
    return T


@dataclass
class CalibrationSet:
    """
    Projection matrices shared read-only by everything that projects points.

    Attributes:
        projection: 3x4 rectified camera projection matrix (P_rect_xx).
        rectification: 3x3 rectifying rotation (R_rect_xx).
        extrinsic: 4x4 LiDAR to camera transformation (RT).

    Example:
        >>> calib = CalibrationSet.from_kitti_raw(
        ...     "calib_cam_to_cam.txt", "calib_velo_to_cam.txt")
        >>> M = calib.projection_matrix  # 3x4, LiDAR -> homogeneous pixel
    """

    projection: np.ndarray
    rectification: np.ndarray
    extrinsic: np.ndarray

    def __post_init__(self):
        """Validate matrix shapes."""
        self.projection = np.asarray(self.projection, dtype=np.float64)
        self.rectification = np.asarray(self.rectification, dtype=np.float64)
        self.extrinsic = np.asarray(self.extrinsic, dtype=np.float64)

        if self.projection.shape != (3, 4):
            raise ValueError(f"projection must be 3x4, got {self.projection.shape}")
        if self.rectification.shape != (3, 3):
            raise ValueError(f"rectification must be 3x3, got {self.rectification.shape}")
        if self.extrinsic.shape == (3, 4):
            self.extrinsic = np.vstack([self.extrinsic, [0.0, 0.0, 0.0, 1.0]])
        if self.extrinsic.shape != (4, 4):
            raise ValueError(f"extrinsic must be 4x4 (or 3x4), got {self.extrinsic.shape}")

    @property
    def rectification_4x4(self) -> np.ndarray:
        """Rectification matrix padded to 4x4."""
        R = np.eye(4)
        R[:3, :3] = self.rectification
        return R

    @property
    def projection_matrix(self) -> np.ndarray:
        """Combined 3x4 matrix ``projection @ rectification @ extrinsic``."""
        return self.projection @ self.rectification_4x4 @ self.extrinsic

    @classmethod
    def identity(cls, fx: float, fy: float, cx: float, cy: float) -> "CalibrationSet":
        """
        Pinhole camera at the sensor origin looking along +z.

        Mostly useful for tests and synthetic data.
        """
        P = np.array([
            [fx, 0.0, cx, 0.0],
            [0.0, fy, cy, 0.0],
            [0.0, 0.0, 1.0, 0.0],
        ])
        return cls(projection=P, rectification=np.eye(3), extrinsic=np.eye(4))

    @classmethod
    def from_kitti_calib(
        cls,
        calib_path: Union[str, Path],
        camera_id: int = 2,
    ) -> "CalibrationSet":
        """
        Load from a KITTI object benchmark calibration file.

        Args:
            calib_path: Path to calib/XXXXXX.txt.
            camera_id: Camera index (2 = left color).

        Returns:
            CalibrationSet for the requested camera.
        """
        calib_path = Path(calib_path)
        calib_data = _read_calib_file(calib_path)

        P = _require(calib_data, f"P{camera_id}", 12, calib_path).reshape(3, 4)
        R0 = calib_data.get("R0_rect", np.eye(3).flatten()).reshape(3, 3)
        Tr = _require(calib_data, "Tr_velo_to_cam", 12, calib_path).reshape(3, 4)

        return cls(projection=P, rectification=R0, extrinsic=Tr)

    @classmethod
    def from_kitti_raw(
        cls,
        cam_to_cam_path: Union[str, Path],
        velo_to_cam_path: Union[str, Path],
        camera_id: int = 2,
    ) -> "CalibrationSet":
        """
        Load from the KITTI raw sequence calibration pair.

        Args:
            cam_to_cam_path: Path to calib_cam_to_cam.txt.
            velo_to_cam_path: Path to calib_velo_to_cam.txt.
            camera_id: Camera index (2 = left color).

        Returns:
            CalibrationSet for the requested camera.
        """
        cam_to_cam_path = Path(cam_to_cam_path)
        velo_to_cam_path = Path(velo_to_cam_path)
        cam_data = _read_calib_file(cam_to_cam_path)
        velo_data = _read_calib_file(velo_to_cam_path)

        P = _require(cam_data, f"P_rect_{camera_id:02d}", 12, cam_to_cam_path).reshape(3, 4)
        R_rect = _require(cam_data, "R_rect_00", 9, cam_to_cam_path).reshape(3, 3)
        R = _require(velo_data, "R", 9, velo_to_cam_path)
        T = _require(velo_data, "T", 3, velo_to_cam_path)

        return cls(projection=P, rectification=R_rect, extrinsic=rigid_to_homogeneous(R, T))

    def to_dict(self) -> Dict[str, list]:
        """Return calibration as nested lists."""
        return {
            "projection": self.projection.tolist(),
            "rectification": self.rectification.tolist(),
            "extrinsic": self.extrinsic.tolist(),
        }

    def __repr__(self) -> str:
        return (
            f"CalibrationSet(fx={self.projection[0, 0]:.1f}, "
            f"fy={self.projection[1, 1]:.1f}, "
            f"cx={self.projection[0, 2]:.1f}, cy={self.projection[1, 2]:.1f})"
        )
