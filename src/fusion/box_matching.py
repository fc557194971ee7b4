"""
Bounding box correspondence between consecutive frames.

Each keypoint match votes for every (previous box, current box) pair whose
regions contain the match's previous and current keypoint respectively.
Overlapping boxes all receive the vote. A previous box is then paired with
the current box holding the most votes; on equal counts the first current
box in frame order wins.

Boxes that receive no vote at all have no evidence for any pairing. What
they map to is governed by ``unmatched_policy``:

    "first": the first current-frame box (index 0). Keeps the
             mapping total over current ids, but the pairing is
             arbitrary and downstream TTC values for such boxes are
             meaningless.
    "none":  ``None``.
"""

from typing import Dict, List, Optional, Sequence

import numpy as np

from ..data.structures import Frame, MatchedKeypointPair
from ..utils.logger import LoggerMixin

UNMATCHED_POLICIES = ("first", "none")


class BoxMatcher(LoggerMixin):
    """
    Match boxes of the previous frame to boxes of the current frame.

    Attributes:
        unmatched_policy: Mapping for previous boxes without votes.

    Example:
        >>> matcher = BoxMatcher()
        >>> mapping = matcher.match(matches, prev_frame, curr_frame)
        >>> mapping
        {0: 0, 1: 2, 2: 1}
        >>> matcher.last_votes[0, 0]
        37
    """

    def __init__(self, unmatched_policy: str = "first"):
        if unmatched_policy not in UNMATCHED_POLICIES:
            raise ValueError(
                f"unmatched_policy must be one of {UNMATCHED_POLICIES}, got '{unmatched_policy}'"
            )

        self.unmatched_policy = unmatched_policy
        self._last_votes = np.zeros((0, 0), dtype=np.int64)

    def count_votes(
        self,
        matches: Sequence[MatchedKeypointPair],
        previous_frame: Frame,
        current_frame: Frame,
    ) -> np.ndarray:
        """
        Build the vote table.

        Args:
            matches: Keypoint matches between the two frames.
            previous_frame: Frame holding the query keypoints.
            current_frame: Frame holding the train keypoints.

        Returns:
            (P, C) integer array, P and C being the box counts of the previous
            and current frame; entry (i, j) counts matches inside both
            previous box i and current box j.
        """
        n_prev = len(previous_frame.boxes)
        n_curr = len(current_frame.boxes)
        votes = np.zeros((n_prev, n_curr), dtype=np.int64)

        if len(matches) == 0 or n_prev == 0 or n_curr == 0:
            return votes

        prev_idx = np.array([m.previous_index for m in matches], dtype=np.int64)
        curr_idx = np.array([m.current_index for m in matches], dtype=np.int64)

        prev_pts = previous_frame.keypoints[prev_idx]
        curr_pts = current_frame.keypoints[curr_idx]

        # (M, P) and (M, C) containment per match
        in_prev = np.stack(
            [box.region.contains_points(prev_pts) for box in previous_frame.boxes], axis=1
        ).astype(np.int64)
        in_curr = np.stack(
            [box.region.contains_points(curr_pts) for box in current_frame.boxes], axis=1
        ).astype(np.int64)

        # Every (prev box, curr box) pair of a match gets one vote
        votes += in_prev.T @ in_curr

        return votes

    def match(
        self,
        matches: Sequence[MatchedKeypointPair],
        previous_frame: Frame,
        current_frame: Frame,
    ) -> Dict[int, Optional[int]]:
        """
        Find the best current box for each previous box.

        Args:
            matches: Keypoint matches between the two frames.
            previous_frame: Previous frame with boxes and keypoints.
            current_frame: Current frame with boxes and keypoints.

        Returns:
            Mapping previous box id -> current box id, with one entry per
            previous box. Values are ``None`` under the "none" policy for
            boxes without votes, or when the current frame has no boxes.
        """
        votes = self.count_votes(matches, previous_frame, current_frame)
        self._last_votes = votes

        curr_ids = [box.id for box in current_frame.boxes]
        mapping: Dict[int, Optional[int]] = {}

        for i, box in enumerate(previous_frame.boxes):
            if not curr_ids:
                mapping[box.id] = None
                continue

            # argmax returns the first maximum, which settles ties
            best = int(np.argmax(votes[i]))

            if votes[i, best] > 0:
                mapping[box.id] = curr_ids[best]
            elif self.unmatched_policy == "first":
                self.logger.debug(f"Box {box.id} has no votes, falling back to box {curr_ids[0]}")
                mapping[box.id] = curr_ids[0]
            else:
                self.logger.debug(f"Box {box.id} has no votes, left unmatched")
                mapping[box.id] = None

        for prev_id, curr_id in mapping.items():
            self.logger.debug(f"Box {prev_id} matches box {curr_id}")

        return mapping

    def votes_for(
        self,
        previous_frame: Frame,
        current_frame: Frame,
        previous_id: int,
        current_id: int,
    ) -> int:
        """Votes recorded by the last ``match`` call for a pair of box ids."""
        prev_ids: List[int] = [box.id for box in previous_frame.boxes]
        curr_ids: List[int] = [box.id for box in current_frame.boxes]
        return int(self._last_votes[prev_ids.index(previous_id), curr_ids.index(current_id)])

    @property
    def last_votes(self) -> np.ndarray:
        """Vote table of the last ``match`` call."""
        return self._last_votes


def match_bounding_boxes(
    matches: Sequence[MatchedKeypointPair],
    previous_frame: Frame,
    current_frame: Frame,
    unmatched_policy: str = "first",
) -> Dict[int, Optional[int]]:
    """Functional form of ``BoxMatcher.match``."""
    return BoxMatcher(unmatched_policy).match(matches, previous_frame, current_frame)
