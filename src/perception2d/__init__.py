"""
Keypoint detection and matching through OpenCV.

Classes:
    KeypointMatcher: Detector/descriptor/matcher wrapper

Functions:
    keypoints_from_cv: cv2.KeyPoint list -> (K, 2) array
    matches_from_cv: cv2.DMatch list -> MatchedKeypointPair list
"""

from .keypoints import KeypointMatcher, keypoints_from_cv, matches_from_cv

__all__ = ["KeypointMatcher", "keypoints_from_cv", "matches_from_cv"]
