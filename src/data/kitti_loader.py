"""
KITTI raw sequence loader.

Expected layout (one recording drive):

    <root>/
        image_02/data/0000000000.png
        velodyne_points/data/0000000000.bin
        calib_cam_to_cam.txt          (optional, may live in <root>/..)
        calib_velo_to_cam.txt
        detections.yaml               (optional)

Velodyne binaries are float32 records [x, y, z, reflectivity].

Detections are produced by an external 2D detector and stored per frame as
YAML or JSON:

    "0000000000":
      - [x, y, width, height]
      - {region: [x, y, width, height], class_id: 2, confidence: 0.91}
      - {region: [x, y, width, height], class_id: null}

class_id and confidence are optional and may be null. Frame ids are read
verbatim, quoted or not.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import cv2
import numpy as np
import yaml

from ..calibration.calib_set import CalibrationSet
from .structures import Box, Frame, Region


def load_velodyne(path: Union[str, Path]) -> np.ndarray:
    """
    Load a Velodyne scan.

    Args:
        path: Path to a .bin file.

    Returns:
        (N, 4) float64 array [x, y, z, reflectivity].
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Point cloud not found: {path}")

    points = np.fromfile(path, dtype=np.float32).reshape(-1, 4)
    return points.astype(np.float64)


def parse_detections(raw: Any) -> List[Box]:
    """
    Build boxes from one frame's detection entries.

    Box ids are the entry positions.
    """
    boxes = []
    for box_id, entry in enumerate(raw or []):
        if isinstance(entry, dict):
            region = entry["region"]
            class_id = entry.get("class_id")
            confidence = entry.get("confidence")
            class_id = int(class_id) if class_id is not None else None
            confidence = float(confidence) if confidence is not None else None
        else:
            region, class_id, confidence = entry, None, None

        if len(region) != 4:
            raise ValueError(f"Detection region must be [x, y, w, h], got {region}")

        boxes.append(Box(
            id=box_id,
            region=Region(*[float(v) for v in region]),
            class_id=class_id,
            confidence=confidence,
        ))

    return boxes


def load_detections(path: Union[str, Path]) -> Dict[str, List[Box]]:
    """
    Load per-frame detections from a YAML/JSON file.

    Args:
        path: Detection file.

    Returns:
        Mapping frame id -> boxes.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Detection file not found: {path}")

    with open(path, "r") as f:
        loader = yaml.SafeLoader(f)
        try:
            root = loader.get_single_node()
            if root is None:
                return {}
            if not isinstance(root, yaml.MappingNode):
                raise ValueError(f"Detection file root must be a mapping: {path}")

            # Frame ids are taken as written; resolved, an unquoted
            # 0000000010 would become the octal integer 8
            return {
                str(key_node.value): parse_detections(
                    loader.construct_object(value_node, deep=True)
                )
                for key_node, value_node in root.value
            }
        finally:
            loader.dispose()


class KITTISequenceLoader:
    """
    Load frames of a KITTI raw drive.

    Usage:
        loader = KITTISequenceLoader("data/2011_09_26_drive_0001_sync")
        calib = loader.load_calib()
        frame = loader.load_frame(0)
        image = loader.load_image(frame.frame_id)
    """

    def __init__(
        self,
        root_dir: Union[str, Path],
        detections_file: Optional[Union[str, Path]] = None,
        camera_id: int = 2,
    ):
        """
        Initialize the loader.

        Args:
            root_dir: Drive directory.
            detections_file: Detection file (defaults to <root>/detections.yaml
                when present).
            camera_id: Camera index used for images and calibration.
        """
        self.root_dir = Path(root_dir)
        self.camera_id = camera_id
        self.image_dir = self.root_dir / f"image_{camera_id:02d}" / "data"
        self.velodyne_dir = self.root_dir / "velodyne_points" / "data"

        if detections_file is None and (self.root_dir / "detections.yaml").exists():
            detections_file = self.root_dir / "detections.yaml"
        self.detections = load_detections(detections_file) if detections_file else {}

        self._load_frame_list()

    def _load_frame_list(self) -> None:
        """Index frames that have both an image and a scan."""
        if not self.image_dir.exists():
            raise FileNotFoundError(f"Image directory not found: {self.image_dir}")
        if not self.velodyne_dir.exists():
            raise FileNotFoundError(f"Velodyne directory not found: {self.velodyne_dir}")

        image_ids = {f.stem for f in self.image_dir.glob("*.png")}
        scan_ids = {f.stem for f in self.velodyne_dir.glob("*.bin")}
        self.frame_ids = sorted(image_ids & scan_ids)

        if len(self.frame_ids) == 0:
            raise ValueError(f"No synchronized frames found in {self.root_dir}")

    def __len__(self) -> int:
        return len(self.frame_ids)

    def _find_calib_file(self, name: str) -> Path:
        for directory in (self.root_dir, self.root_dir.parent):
            if (directory / name).exists():
                return directory / name
        raise FileNotFoundError(f"{name} not found in {self.root_dir} or its parent")

    def load_calib(self) -> CalibrationSet:
        """Load the drive's calibration."""
        return CalibrationSet.from_kitti_raw(
            self._find_calib_file("calib_cam_to_cam.txt"),
            self._find_calib_file("calib_velo_to_cam.txt"),
            camera_id=self.camera_id,
        )

    def load_image(self, frame_id: str) -> np.ndarray:
        """Load the BGR image of a frame."""
        path = self.image_dir / f"{frame_id}.png"
        image = cv2.imread(str(path))
        if image is None:
            raise FileNotFoundError(f"Failed to load image: {path}")
        return image

    def load_points(self, frame_id: str) -> np.ndarray:
        """Load the (N, 4) scan of a frame."""
        return load_velodyne(self.velodyne_dir / f"{frame_id}.bin")

    def load_frame(self, index: Union[int, str]) -> Frame:
        """
        Load a frame without keypoints.

        Args:
            index: Frame position or frame id.

        Returns:
            Frame with boxes (from the detection file) and points.
        """
        frame_id = index if isinstance(index, str) else self.frame_ids[index]

        boxes = [
            Box(id=b.id, region=b.region, class_id=b.class_id, confidence=b.confidence)
            for b in self.detections.get(frame_id, [])
        ]

        return Frame(boxes=boxes, points=self.load_points(frame_id), frame_id=frame_id)
