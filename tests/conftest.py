"""Shared fixtures: synthetic calibrations with round numbers."""

import numpy as np
import pytest

# LiDAR (x forward, y left, z up) to camera (x right, y down, z forward)
VELO_TO_CAM = np.array([
    [0.0, -1.0, 0.0, 0.0],
    [0.0, 0.0, -1.0, 0.0],
    [1.0, 0.0, 0.0, 0.0],
    [0.0, 0.0, 0.0, 1.0],
])


def make_velo_calib(f: float, c: float):
    """Calibration projecting LiDAR (x, y, z) to (c - f*y/x, c - f*z/x)."""
    from src.calibration.calib_set import CalibrationSet

    P = np.array([
        [f, 0.0, c, 0.0],
        [0.0, f, c, 0.0],
        [0.0, 0.0, 1.0, 0.0],
    ])
    return CalibrationSet(projection=P, rectification=np.eye(3), extrinsic=VELO_TO_CAM)


@pytest.fixture
def camera_calib():
    """Pinhole camera at the origin, fx = fy = 100, principal point (50, 50)."""
    from src.calibration.calib_set import CalibrationSet

    return CalibrationSet.identity(fx=100.0, fy=100.0, cx=50.0, cy=50.0)


@pytest.fixture
def velo_calib():
    """LiDAR-to-image calibration with f = 100 and principal point (50, 50)."""
    return make_velo_calib(100.0, 50.0)


@pytest.fixture
def wide_calib():
    """LiDAR-to-image calibration with f = 1000 and principal point (500, 500)."""
    return make_velo_calib(1000.0, 500.0)
