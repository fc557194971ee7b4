"""
OpenCV keypoint adapters.

Keypoint detection, description and matching are done by OpenCV; this module
only converts its outputs into the pipeline's data types and wraps a few
common detector/matcher configurations.

OpenCV conventions:
===================
  - cv2.KeyPoint.pt: (x, y) pixel location as floats
  - cv2.DMatch.queryIdx: index into the first descriptor set passed to
    ``match`` / ``knnMatch`` (here: previous frame)
  - cv2.DMatch.trainIdx: index into the second set (here: current frame)
  - cv2.DMatch.distance: descriptor distance (Hamming or L2)

Supported detectors:
====================
  ORB, BRISK, AKAZE: binary descriptors, Hamming distance
  SIFT:              float descriptors, L2 distance
"""

from typing import Any, List, Optional, Sequence, Tuple

import cv2
import numpy as np

from ..data.structures import MatchedKeypointPair
from ..utils.logger import LoggerMixin

BINARY_DETECTORS = ("ORB", "BRISK", "AKAZE")
DETECTORS = BINARY_DETECTORS + ("SIFT",)
MATCHERS = ("BF", "FLANN")
SELECTORS = ("NN", "KNN")


def keypoints_from_cv(keypoints: Sequence[Any]) -> np.ndarray:
    """
    Convert OpenCV keypoints to a (K, 2) array of pixel locations.

    Args:
        keypoints: Sequence of ``cv2.KeyPoint``.

    Returns:
        (K, 2) float64 array.
    """
    if len(keypoints) == 0:
        return np.zeros((0, 2))
    return np.array([kp.pt for kp in keypoints], dtype=np.float64)


def matches_from_cv(matches: Sequence[Any]) -> List[MatchedKeypointPair]:
    """
    Convert OpenCV matches to MatchedKeypointPair records.

    Args:
        matches: Sequence of ``cv2.DMatch`` with previous-frame queries.

    Returns:
        List of MatchedKeypointPair in the same order.
    """
    return [MatchedKeypointPair.from_cv(m) for m in matches]


class KeypointMatcher(LoggerMixin):
    """
    Detect, describe and match keypoints between consecutive images.

    Attributes:
        detector_type: One of ORB, BRISK, AKAZE, SIFT.
        matcher_type: BF (brute force) or FLANN.
        selector_type: NN (best match, cross-checked for BF) or KNN (ratio test).
        ratio: Lowe ratio for the KNN selector.

    Example:
        >>> matcher = KeypointMatcher(detector_type="ORB")
        >>> kpts_prev, desc_prev = matcher.detect(prev_image)
        >>> kpts_curr, desc_curr = matcher.detect(curr_image)
        >>> matches = matcher.match(desc_prev, desc_curr)
    """

    def __init__(
        self,
        detector_type: str = "ORB",
        matcher_type: str = "BF",
        selector_type: str = "KNN",
        ratio: float = 0.8,
        max_keypoints: int = 2000,
    ):
        detector_type = detector_type.upper()
        matcher_type = matcher_type.upper()
        selector_type = selector_type.upper()

        if detector_type not in DETECTORS:
            raise ValueError(f"detector_type must be one of {DETECTORS}, got '{detector_type}'")
        if matcher_type not in MATCHERS:
            raise ValueError(f"matcher_type must be one of {MATCHERS}, got '{matcher_type}'")
        if selector_type not in SELECTORS:
            raise ValueError(f"selector_type must be one of {SELECTORS}, got '{selector_type}'")

        self.detector_type = detector_type
        self.matcher_type = matcher_type
        self.selector_type = selector_type
        self.ratio = ratio
        self.max_keypoints = max_keypoints

        self._detector = self._create_detector()
        self._matcher = self._create_matcher()

    @property
    def is_binary(self) -> bool:
        return self.detector_type in BINARY_DETECTORS

    def _create_detector(self):
        if self.detector_type == "ORB":
            return cv2.ORB_create(nfeatures=self.max_keypoints)
        if self.detector_type == "BRISK":
            return cv2.BRISK_create()
        if self.detector_type == "AKAZE":
            return cv2.AKAZE_create()
        return cv2.SIFT_create(nfeatures=self.max_keypoints)

    def _create_matcher(self):
        if self.matcher_type == "FLANN":
            return cv2.FlannBasedMatcher()

        norm = cv2.NORM_HAMMING if self.is_binary else cv2.NORM_L2
        cross_check = self.selector_type == "NN"
        return cv2.BFMatcher(norm, crossCheck=cross_check)

    def detect(
        self,
        image: np.ndarray,
        mask: Optional[np.ndarray] = None,
    ) -> Tuple[np.ndarray, Optional[np.ndarray]]:
        """
        Detect keypoints and compute descriptors.

        Args:
            image: BGR or grayscale image.
            mask: Optional uint8 mask restricting detection.

        Returns:
            Tuple of (K, 2) keypoint locations and (K, D) descriptors
            (None if nothing was detected).
        """
        gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY) if image.ndim == 3 else image

        keypoints, descriptors = self._detector.detectAndCompute(gray, mask)
        self.logger.debug(f"{self.detector_type}: {len(keypoints)} keypoints")

        return keypoints_from_cv(keypoints), descriptors

    def match(
        self,
        descriptors_prev: Optional[np.ndarray],
        descriptors_curr: Optional[np.ndarray],
    ) -> List[MatchedKeypointPair]:
        """
        Match previous-frame descriptors against current-frame descriptors.

        Args:
            descriptors_prev: (K0, D) descriptors of the previous frame.
            descriptors_curr: (K1, D) descriptors of the current frame.

        Returns:
            Matches with previous_index into the previous frame.
        """
        if descriptors_prev is None or descriptors_curr is None:
            return []
        if len(descriptors_prev) == 0 or len(descriptors_curr) == 0:
            return []

        if self.matcher_type == "FLANN":
            # FLANN's default KD-tree index needs float descriptors
            descriptors_prev = descriptors_prev.astype(np.float32)
            descriptors_curr = descriptors_curr.astype(np.float32)

        if self.selector_type == "NN":
            cv_matches = list(self._matcher.match(descriptors_prev, descriptors_curr))
        else:
            cv_matches = []
            for candidates in self._matcher.knnMatch(descriptors_prev, descriptors_curr, k=2):
                if len(candidates) < 2:
                    continue
                best, second = candidates
                if best.distance < self.ratio * second.distance:
                    cv_matches.append(best)

        self.logger.debug(f"{self.matcher_type}/{self.selector_type}: {len(cv_matches)} matches")

        return matches_from_cv(cv_matches)

    def __repr__(self) -> str:
        return (
            f"KeypointMatcher({self.detector_type}, "
            f"{self.matcher_type}/{self.selector_type}, ratio={self.ratio})"
        )
