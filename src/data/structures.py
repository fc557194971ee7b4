"""
Core data structures shared by the TTC components.

Coordinate Systems:
==================
  - Sensor (LiDAR): x forward, y left, z up, in meters
  - Image: origin at top-left, x increases right, y increases down
  - Region format: [x, y, width, height] where (x, y) is the top-left corner

Point clouds and keypoint sets are carried as numpy arrays:
  - points: (N, 4) float64 array [x, y, z, reflectivity]
  - keypoints: (K, 2) float64 array [x, y] in pixels

The single-element dataclasses (Point3D, Keypoint) exist for callers that
produce individual records; use points_to_array / keypoints_to_array to
convert sequences of them.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np


# =============================================================================
# Points and Keypoints
# =============================================================================

@dataclass(frozen=True)
class Point3D:
    """
    Single 3D point in sensor coordinates.

    Attributes:
        x: Forward distance in meters.
        y: Lateral offset in meters (positive to the left).
        z: Height in meters (positive up).
        reflectivity: Return intensity, 0 when unknown.
    """

    x: float
    y: float
    z: float
    reflectivity: float = 0.0

    def to_array(self) -> np.ndarray:
        """Return [x, y, z, reflectivity]."""
        return np.array([self.x, self.y, self.z, self.reflectivity], dtype=np.float64)


@dataclass(frozen=True)
class Keypoint:
    """Pixel location of a keypoint, scoped to one frame."""

    x: float
    y: float

    @classmethod
    def from_cv(cls, keypoint: Any) -> "Keypoint":
        """Create from an OpenCV ``cv2.KeyPoint``."""
        return cls(x=float(keypoint.pt[0]), y=float(keypoint.pt[1]))


@dataclass(frozen=True)
class MatchedKeypointPair:
    """
    Tentative correspondence between two keypoints of consecutive frames.

    Attributes:
        previous_index: Index into the previous frame's keypoints.
        current_index: Index into the current frame's keypoints.
        descriptor_distance: Non-negative descriptor dissimilarity.
    """

    previous_index: int
    current_index: int
    descriptor_distance: float = 0.0

    def __post_init__(self):
        if self.descriptor_distance < 0:
            raise ValueError(
                f"descriptor_distance must be non-negative, got {self.descriptor_distance}"
            )

    @classmethod
    def from_cv(cls, match: Any) -> "MatchedKeypointPair":
        """Create from an OpenCV ``cv2.DMatch`` (query = previous, train = current)."""
        return cls(
            previous_index=int(match.queryIdx),
            current_index=int(match.trainIdx),
            descriptor_distance=float(match.distance),
        )


PointsLike = Union[np.ndarray, Sequence[Point3D]]
KeypointsLike = Union[np.ndarray, Sequence[Keypoint]]


def points_to_array(points: PointsLike) -> np.ndarray:
    """
    Convert a point collection to an (N, 4) float64 array.

    Args:
        points: (N, 3) or (N, 4) array, or a sequence of Point3D.

    Returns:
        (N, 4) array [x, y, z, reflectivity]. Missing reflectivity is 0.
    """
    if not isinstance(points, np.ndarray):
        if len(points) == 0:
            return np.zeros((0, 4))
        if isinstance(points[0], Point3D):
            return np.stack([p.to_array() for p in points])
        points = np.asarray(points, dtype=np.float64)

    points = np.asarray(points, dtype=np.float64)
    if points.size == 0:
        return np.zeros((0, 4))
    points = np.atleast_2d(points)

    if points.shape[1] == 3:
        points = np.hstack([points, np.zeros((len(points), 1))])
    elif points.shape[1] != 4:
        raise ValueError(f"points must be (N, 3) or (N, 4), got {points.shape}")

    return points


def keypoints_to_array(keypoints: KeypointsLike) -> np.ndarray:
    """
    Convert a keypoint collection to a (K, 2) float64 array.

    Args:
        keypoints: (K, 2) array, or a sequence of Keypoint.

    Returns:
        (K, 2) array of pixel coordinates.
    """
    if not isinstance(keypoints, np.ndarray):
        if len(keypoints) == 0:
            return np.zeros((0, 2))
        if isinstance(keypoints[0], Keypoint):
            return np.array([[kp.x, kp.y] for kp in keypoints], dtype=np.float64)

    keypoints = np.asarray(keypoints, dtype=np.float64)
    if keypoints.size == 0:
        return np.zeros((0, 2))
    keypoints = np.atleast_2d(keypoints)

    if keypoints.shape[1] != 2:
        raise ValueError(f"keypoints must be (K, 2), got {keypoints.shape}")

    return keypoints


# =============================================================================
# Regions and Boxes
# =============================================================================

@dataclass(frozen=True)
class Region:
    """
    Axis-aligned rectangle in pixel space.

    Containment follows OpenCV's ``cv::Rect::contains``: the left and top
    edges are inside, the right and bottom edges are not.
    """

    x: float
    y: float
    width: float
    height: float

    def __post_init__(self):
        if self.width < 0 or self.height < 0:
            raise ValueError(
                f"Region size must be non-negative, got {self.width}x{self.height}"
            )

    @classmethod
    def from_xyxy(cls, x1: float, y1: float, x2: float, y2: float) -> "Region":
        """Create from corner coordinates [x1, y1, x2, y2]."""
        return cls(x=x1, y=y1, width=x2 - x1, height=y2 - y1)

    @property
    def xyxy(self) -> Tuple[float, float, float, float]:
        """Corner coordinates (x1, y1, x2, y2)."""
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    @property
    def center(self) -> Tuple[float, float]:
        """Region center (x, y)."""
        return (self.x + self.width / 2.0, self.y + self.height / 2.0)

    @property
    def area(self) -> float:
        return self.width * self.height

    def contains(self, px: float, py: float) -> bool:
        """Return True if pixel (px, py) lies inside the region."""
        return region_contains(self, px, py)

    def contains_points(self, pixels: np.ndarray) -> np.ndarray:
        """Vectorised containment for (N, 2) pixels; NaN pixels are outside."""
        pixels = np.atleast_2d(pixels)
        x1, y1, x2, y2 = self.xyxy
        return (
            (pixels[:, 0] >= x1) &
            (pixels[:, 0] < x2) &
            (pixels[:, 1] >= y1) &
            (pixels[:, 1] < y2)
        )

    def shrink(self, factor: float) -> "Region":
        """
        Scale the region by ``(1 - factor)`` around its center.

        Args:
            factor: Shrink factor in [0, 1).

        Returns:
            New, smaller region with the same center.
        """
        if not 0.0 <= factor < 1.0:
            raise ValueError(f"shrink factor must be in [0, 1), got {factor}")

        return Region(
            x=self.x + factor * self.width / 2.0,
            y=self.y + factor * self.height / 2.0,
            width=self.width * (1.0 - factor),
            height=self.height * (1.0 - factor),
        )


def region_contains(region: Region, px: float, py: float) -> bool:
    """Pure containment query for a single pixel."""
    return (
        region.x <= px < region.x + region.width
        and region.y <= py < region.y + region.height
    )


@dataclass
class Box:
    """
    Detected object in one frame.

    The region is fixed at detection time; ``points`` and ``matches`` are
    appended to by the clusterers during one frame-pair computation.

    Attributes:
        id: Box id, unique within its frame.
        region: Bounding box in pixels.
        points: (M, 4) LiDAR points assigned to this box.
        matches: Keypoint matches whose current keypoint lies in the box.
        class_id: Optional detector class id.
        confidence: Optional detector confidence.
    """

    id: int
    region: Region
    points: np.ndarray = field(default_factory=lambda: np.zeros((0, 4)))
    matches: List[MatchedKeypointPair] = field(default_factory=list)
    class_id: Optional[int] = None
    confidence: Optional[float] = None

    def __post_init__(self):
        if not isinstance(self.region, Region):
            self.region = Region(*self.region)
        self.points = points_to_array(self.points)

    @property
    def num_points(self) -> int:
        return len(self.points)

    def add_points(self, points: np.ndarray) -> None:
        """Append (M, 4) points."""
        if len(points) == 0:
            return
        self.points = np.vstack([self.points, points_to_array(points)])

    def add_matches(self, matches: Sequence[MatchedKeypointPair]) -> None:
        """Append keypoint matches."""
        self.matches.extend(matches)

    def clear(self) -> None:
        """Drop clustered points and matches, keeping the region."""
        self.points = np.zeros((0, 4))
        self.matches = []

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "region": [self.region.x, self.region.y, self.region.width, self.region.height],
            "num_points": self.num_points,
            "num_matches": len(self.matches),
            "class_id": self.class_id,
            "confidence": self.confidence,
        }

    def __repr__(self) -> str:
        return (
            f"Box(id={self.id}, "
            f"region=[{self.region.x:.0f}, {self.region.y:.0f}, "
            f"{self.region.width:.0f}, {self.region.height:.0f}], "
            f"points={self.num_points}, matches={len(self.matches)})"
        )


@dataclass
class Frame:
    """
    One synchronized camera/LiDAR frame.

    Attributes:
        boxes: Detected boxes, ids unique within the frame.
        keypoints: (K, 2) keypoint pixel locations.
        points: (N, 4) LiDAR points.
        frame_id: Optional identifier (e.g. '0000000010').
    """

    boxes: List[Box] = field(default_factory=list)
    keypoints: np.ndarray = field(default_factory=lambda: np.zeros((0, 2)))
    points: np.ndarray = field(default_factory=lambda: np.zeros((0, 4)))
    frame_id: str = ""

    def __post_init__(self):
        self.keypoints = keypoints_to_array(self.keypoints)
        self.points = points_to_array(self.points)

        ids = [box.id for box in self.boxes]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Box ids must be unique within a frame, got {ids}")

    def box_by_id(self, box_id: int) -> Box:
        """Look up a box by id."""
        for box in self.boxes:
            if box.id == box_id:
                return box
        raise KeyError(f"No box with id {box_id} in frame '{self.frame_id}'")
