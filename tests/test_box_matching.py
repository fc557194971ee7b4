"""Tests for bounding box correspondence between frames."""

import numpy as np
import pytest


def _frame(regions, keypoints, ids=None):
    from src.data.structures import Box, Frame

    ids = ids if ids is not None else range(len(regions))
    return Frame(
        boxes=[Box(id=i, region=r) for i, r in zip(ids, regions)],
        keypoints=np.asarray(keypoints, dtype=np.float64),
    )


def _matches(pairs):
    from src.data.structures import MatchedKeypointPair

    return [MatchedKeypointPair(p, c, 10.0) for p, c in pairs]


class TestBoxMatcher:
    """Tests for BoxMatcher."""

    def test_single_box_end_to_end(self):
        """Three matches inside one box in both frames give {0: 0} with 3 votes."""
        from src.fusion.box_matching import BoxMatcher

        keypoints = [[10, 10], [50, 50], [90, 90]]
        prev = _frame([(0, 0, 100, 100)], keypoints)
        curr = _frame([(0, 0, 100, 100)], keypoints)

        matcher = BoxMatcher()
        mapping = matcher.match(_matches([(0, 0), (1, 1), (2, 2)]), prev, curr)

        assert mapping == {0: 0}
        assert matcher.last_votes[0, 0] == 3
        assert matcher.votes_for(prev, curr, 0, 0) == 3

    def test_majority_wins(self):
        """Each previous box maps to the current box with the most votes."""
        from src.fusion.box_matching import BoxMatcher

        prev = _frame(
            [(0, 0, 50, 50), (50, 0, 50, 50)],
            [[10, 10], [20, 20], [30, 30], [60, 10], [70, 20]],
        )
        # Boxes swapped order in the current frame
        curr = _frame(
            [(50, 0, 50, 50), (0, 0, 50, 50)],
            [[12, 10], [22, 20], [62, 30], [62, 10], [72, 20]],
        )
        matches = _matches([(0, 0), (1, 1), (2, 2), (3, 3), (4, 4)])

        matcher = BoxMatcher()
        mapping = matcher.match(matches, prev, curr)

        assert mapping == {0: 1, 1: 0}
        np.testing.assert_array_equal(matcher.last_votes, [[1, 2], [2, 0]])

    def test_mapping_is_total(self):
        """Every previous box id appears exactly once, values are current ids."""
        from src.fusion.box_matching import BoxMatcher

        rng = np.random.default_rng(4)
        prev_kpts = rng.uniform(0, 200, size=(50, 2))
        curr_kpts = prev_kpts + rng.normal(0, 3, size=(50, 2))
        prev = _frame([(0, 0, 100, 100), (100, 0, 100, 100), (0, 100, 200, 100)], prev_kpts)
        curr = _frame([(0, 0, 120, 200), (120, 0, 80, 200)], curr_kpts)
        matches = _matches([(i, i) for i in range(50)])

        mapping = BoxMatcher().match(matches, prev, curr)

        assert sorted(mapping) == [0, 1, 2]
        assert all(v in (0, 1) for v in mapping.values())

    def test_vote_table_shape_uses_own_box_counts(self):
        """Frames with different box counts give a (P, C) table."""
        from src.fusion.box_matching import BoxMatcher

        prev = _frame([(0, 0, 10, 10), (20, 0, 10, 10), (40, 0, 10, 10)], [[5, 5]])
        curr = _frame([(0, 0, 10, 10)], [[5, 5]])

        matcher = BoxMatcher()
        mapping = matcher.match(_matches([(0, 0)]), prev, curr)

        assert matcher.last_votes.shape == (3, 1)
        assert mapping == {0: 0, 1: 0, 2: 0}

    def test_tie_goes_to_first_current_box(self):
        """Equal vote counts resolve to the earliest current box."""
        from src.fusion.box_matching import BoxMatcher

        prev = _frame([(0, 0, 100, 100)], [[10, 10], [60, 10]])
        curr = _frame([(50, 0, 50, 100), (0, 0, 50, 100)], [[10, 10], [60, 10]], ids=[7, 3])

        mapping = BoxMatcher().match(_matches([(0, 0), (1, 1)]), prev, curr)

        assert mapping == {0: 7}

    def test_overlapping_boxes_all_receive_votes(self):
        """A match inside two current boxes votes for both."""
        from src.fusion.box_matching import BoxMatcher

        prev = _frame([(0, 0, 100, 100)], [[50, 50]])
        curr = _frame([(0, 0, 100, 100), (40, 40, 20, 20)], [[50, 50]])

        matcher = BoxMatcher()
        matcher.match(_matches([(0, 0)]), prev, curr)

        np.testing.assert_array_equal(matcher.last_votes, [[1, 1]])

    def test_unmatched_falls_back_to_first(self):
        """A box without votes maps to the first current box by default."""
        from src.fusion.box_matching import BoxMatcher

        prev = _frame([(0, 0, 10, 10), (500, 500, 10, 10)], [[5, 5]])
        curr = _frame([(100, 100, 10, 10), (0, 0, 10, 10)], [[5, 5]], ids=[4, 9])

        mapping = BoxMatcher().match(_matches([(0, 0)]), prev, curr)

        assert mapping == {0: 9, 1: 4}

    def test_unmatched_policy_none(self):
        """With the "none" policy boxes without votes map to None."""
        from src.fusion.box_matching import BoxMatcher

        prev = _frame([(0, 0, 10, 10), (500, 500, 10, 10)], [[5, 5]])
        curr = _frame([(0, 0, 10, 10)], [[5, 5]])

        mapping = BoxMatcher(unmatched_policy="none").match(_matches([(0, 0)]), prev, curr)

        assert mapping == {0: 0, 1: None}

    def test_empty_current_frame(self):
        """Without current boxes every previous box maps to None."""
        from src.fusion.box_matching import BoxMatcher

        prev = _frame([(0, 0, 10, 10), (20, 0, 10, 10)], [[5, 5]])
        curr = _frame([], [[5, 5]])

        matcher = BoxMatcher()
        mapping = matcher.match(_matches([(0, 0)]), prev, curr)

        assert mapping == {0: None, 1: None}
        assert matcher.last_votes.shape == (2, 0)

    def test_empty_previous_frame(self):
        """Without previous boxes the mapping is empty."""
        from src.fusion.box_matching import BoxMatcher

        prev = _frame([], [[5, 5]])
        curr = _frame([(0, 0, 10, 10)], [[5, 5]])

        assert BoxMatcher().match(_matches([(0, 0)]), prev, curr) == {}

    def test_no_matches(self):
        """Without matches all votes are zero."""
        from src.fusion.box_matching import match_bounding_boxes

        prev = _frame([(0, 0, 10, 10)], np.zeros((0, 2)))
        curr = _frame([(0, 0, 10, 10)], np.zeros((0, 2)))

        assert match_bounding_boxes([], prev, curr, unmatched_policy="none") == {0: None}

    def test_invalid_policy(self):
        """Unknown policies are rejected."""
        from src.fusion.box_matching import BoxMatcher

        with pytest.raises(ValueError):
            BoxMatcher(unmatched_policy="nearest")
