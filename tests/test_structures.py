"""Tests for the shared data structures."""

import numpy as np
import pytest


class TestRegion:
    """Tests for Region containment and shrinking."""

    def test_contains_is_half_open(self):
        """Left/top edges are inside, right/bottom edges are not."""
        from src.data.structures import Region

        region = Region(10, 20, 30, 40)

        assert region.contains(10, 20)
        assert region.contains(39.999, 59.999)
        assert not region.contains(40, 30)
        assert not region.contains(20, 60)
        assert not region.contains(9.999, 30)

    def test_contains_points_matches_scalar(self):
        """Vectorised containment agrees with the scalar query."""
        from src.data.structures import Region, region_contains

        region = Region(0, 0, 100, 50)
        rng = np.random.default_rng(0)
        pixels = rng.uniform(-20, 120, size=(200, 2))

        mask = region.contains_points(pixels)
        expected = [region_contains(region, px, py) for px, py in pixels]

        np.testing.assert_array_equal(mask, expected)

    def test_nan_pixels_are_outside(self):
        """Unprojectable points never fall inside a region."""
        from src.data.structures import Region

        region = Region(0, 0, 100, 100)
        pixels = np.array([[np.nan, np.nan], [50.0, 50.0]])

        np.testing.assert_array_equal(region.contains_points(pixels), [False, True])

    def test_shrink_keeps_center(self):
        """Shrinking scales the size and keeps the center."""
        from src.data.structures import Region

        region = Region(0, 0, 100, 200)
        smaller = region.shrink(0.1)

        assert smaller.x == pytest.approx(5.0)
        assert smaller.y == pytest.approx(10.0)
        assert smaller.width == pytest.approx(90.0)
        assert smaller.height == pytest.approx(180.0)
        assert smaller.center == pytest.approx(region.center)

    def test_shrink_zero_is_identity(self):
        """A zero shrink factor returns the same rectangle."""
        from src.data.structures import Region

        region = Region(3, 4, 5, 6)
        assert region.shrink(0.0) == region

    @pytest.mark.parametrize("factor", [-0.1, 1.0, 1.5])
    def test_shrink_invalid_factor(self, factor):
        """Factors outside [0, 1) are rejected."""
        from src.data.structures import Region

        with pytest.raises(ValueError):
            Region(0, 0, 10, 10).shrink(factor)

    def test_negative_size_rejected(self):
        """Negative width or height is rejected."""
        from src.data.structures import Region

        with pytest.raises(ValueError):
            Region(0, 0, -1, 10)

    def test_xyxy_roundtrip(self):
        """Corner form converts back to the same region."""
        from src.data.structures import Region

        region = Region.from_xyxy(10, 20, 50, 80)

        assert (region.width, region.height) == (40, 60)
        assert region.xyxy == (10, 20, 50, 80)
        assert region.area == 2400


class TestConversions:
    """Tests for point and keypoint conversion helpers."""

    def test_points_from_point3d(self):
        """Point3D sequences become (N, 4) arrays."""
        from src.data.structures import Point3D, points_to_array

        points = points_to_array([Point3D(1, 2, 3, 0.5), Point3D(4, 5, 6)])

        np.testing.assert_array_equal(points, [[1, 2, 3, 0.5], [4, 5, 6, 0]])

    def test_points_pad_reflectivity(self):
        """(N, 3) arrays get a zero reflectivity column."""
        from src.data.structures import points_to_array

        points = points_to_array(np.array([[1.0, 2.0, 3.0]]))

        assert points.shape == (1, 4)
        assert points[0, 3] == 0.0

    def test_points_empty(self):
        """Empty inputs give (0, 4) arrays."""
        from src.data.structures import points_to_array

        assert points_to_array([]).shape == (0, 4)
        assert points_to_array(np.zeros((0, 3))).shape == (0, 4)

    def test_points_bad_shape(self):
        """Arrays that are neither (N, 3) nor (N, 4) are rejected."""
        from src.data.structures import points_to_array

        with pytest.raises(ValueError):
            points_to_array(np.zeros((5, 2)))

    def test_keypoints_from_dataclass(self):
        """Keypoint sequences become (K, 2) arrays."""
        from src.data.structures import Keypoint, keypoints_to_array

        keypoints = keypoints_to_array([Keypoint(1.5, 2.5), Keypoint(3.0, 4.0)])

        np.testing.assert_array_equal(keypoints, [[1.5, 2.5], [3.0, 4.0]])

    def test_negative_descriptor_distance(self):
        """Descriptor distances must be non-negative."""
        from src.data.structures import MatchedKeypointPair

        with pytest.raises(ValueError):
            MatchedKeypointPair(0, 0, -1.0)


class TestBoxAndFrame:
    """Tests for Box and Frame."""

    def test_box_accepts_region_tuple(self):
        """A plain [x, y, w, h] sequence is converted to a Region."""
        from src.data.structures import Box, Region

        box = Box(id=0, region=(0, 0, 10, 10))

        assert isinstance(box.region, Region)
        assert box.num_points == 0
        assert box.matches == []

    def test_box_add_points_appends(self):
        """Points are appended, never replaced."""
        from src.data.structures import Box

        box = Box(id=0, region=(0, 0, 10, 10))
        box.add_points(np.ones((2, 4)))
        box.add_points(np.zeros((3, 3)))
        box.add_points(np.zeros((0, 4)))

        assert box.num_points == 5

    def test_box_clear(self):
        """Clearing drops points and matches but keeps the region."""
        from src.data.structures import Box, MatchedKeypointPair

        box = Box(id=1, region=(1, 2, 3, 4))
        box.add_points(np.ones((2, 4)))
        box.add_matches([MatchedKeypointPair(0, 0)])
        box.clear()

        assert box.num_points == 0
        assert box.matches == []
        assert box.region.xyxy == (1, 2, 4, 6)

    def test_box_to_dict(self):
        """Dictionary form reports counts, not raw data."""
        from src.data.structures import Box

        box = Box(id=3, region=(0, 0, 10, 20), class_id=2, confidence=0.9)
        box.add_points(np.ones((4, 4)))

        result = box.to_dict()

        assert result["id"] == 3
        assert result["region"] == [0, 0, 10, 20]
        assert result["num_points"] == 4
        assert result["num_matches"] == 0

    def test_boxes_do_not_share_defaults(self):
        """Default points and matches are per instance."""
        from src.data.structures import Box, MatchedKeypointPair

        a = Box(id=0, region=(0, 0, 1, 1))
        b = Box(id=1, region=(0, 0, 1, 1))
        a.add_matches([MatchedKeypointPair(0, 0)])

        assert b.matches == []

    def test_frame_rejects_duplicate_ids(self):
        """Box ids must be unique within a frame."""
        from src.data.structures import Box, Frame

        with pytest.raises(ValueError):
            Frame(boxes=[Box(id=0, region=(0, 0, 1, 1)), Box(id=0, region=(1, 1, 1, 1))])

    def test_frame_box_by_id(self):
        """Boxes are looked up by id."""
        from src.data.structures import Box, Frame

        frame = Frame(boxes=[Box(id=7, region=(0, 0, 1, 1))])

        assert frame.box_by_id(7).id == 7
        with pytest.raises(KeyError):
            frame.box_by_id(8)

    def test_empty_frame(self):
        """An empty frame has empty arrays of the right width."""
        from src.data.structures import Frame

        frame = Frame()

        assert frame.keypoints.shape == (0, 2)
        assert frame.points.shape == (0, 4)
        assert frame.boxes == []
