"""Association of keypoint matches with a bounding box."""

from typing import Optional, Sequence

import numpy as np

from ..data.structures import Box, KeypointsLike, MatchedKeypointPair, keypoints_to_array
from ..utils.logger import LoggerMixin


class KeypointROIClusterer(LoggerMixin):
    """
    Attach to a box the matches whose current keypoint lies inside it.

    Matches are then thinned by descriptor distance: anything at or above
    ``distance_ratio`` times the mean distance of the in-box matches is
    treated as a mismatch and dropped. Only the upper tail is cut, a small
    descriptor distance is never suspicious.

    Attributes:
        distance_ratio: Threshold as a fraction of the mean descriptor distance.

    Example:
        >>> clusterer = KeypointROIClusterer(distance_ratio=0.8)
        >>> clusterer.cluster(box, prev_keypoints, curr_keypoints, matches)
        >>> len(box.matches)
        54
    """

    def __init__(self, distance_ratio: float = 0.8):
        if distance_ratio <= 0:
            raise ValueError(f"distance_ratio must be positive, got {distance_ratio}")

        self.distance_ratio = distance_ratio

    def cluster(
        self,
        box: Box,
        previous_keypoints: Optional[KeypointsLike],
        current_keypoints: KeypointsLike,
        matches: Sequence[MatchedKeypointPair],
    ) -> None:
        """
        Append the filtered in-box matches to ``box.matches``.

        Args:
            box: Current-frame box, mutated in place.
            previous_keypoints: Previous-frame keypoints (unused by the
                filter, accepted for a symmetric call signature).
            current_keypoints: (K, 2) current-frame keypoints.
            matches: All matches between the two frames.
        """
        current_keypoints = keypoints_to_array(current_keypoints)

        in_box = [
            m for m in matches
            if box.region.contains(*current_keypoints[m.current_index])
        ]
        self.logger.debug(f"Box {box.id}: {len(in_box)} matches inside ROI")

        if not in_box:
            return

        distances = np.array([m.descriptor_distance for m in in_box])
        threshold = self.distance_ratio * float(np.mean(distances))

        kept = [m for m, d in zip(in_box, distances) if d < threshold]
        box.add_matches(kept)

        self.logger.debug(
            f"Box {box.id}: {len(kept)} matches kept below distance {threshold:.2f}"
        )


def cluster_kpt_matches_with_roi(
    box: Box,
    previous_keypoints: Optional[KeypointsLike],
    current_keypoints: KeypointsLike,
    matches: Sequence[MatchedKeypointPair],
    distance_ratio: float = 0.8,
) -> None:
    """Functional form of ``KeypointROIClusterer.cluster``."""
    KeypointROIClusterer(distance_ratio).cluster(
        box, previous_keypoints, current_keypoints, matches
    )
