"""Tests for the mask primitives."""

import numpy as np
import pytest


class TestThreshold:
    """Tests for threshold_probability."""

    def test_float_probabilities_cut_at_half(self):
        """Test that 0.5 is foreground and just below is background."""
        from sproutmeasure.masks.primitives import threshold_probability

        prob = np.array([[0.0, 0.49], [0.5, 1.0]], dtype=np.float32)
        mask = threshold_probability(prob)

        assert mask.dtype == np.uint8
        assert mask.tolist() == [[0, 0], [255, 255]]

    def test_binary_uint8_mask(self):
        """Test that a {0, 255} mask passes through unchanged."""
        from sproutmeasure.masks.primitives import threshold_probability

        img = np.zeros((10, 10), dtype=np.uint8)
        img[2:5, 2:5] = 255
        mask = threshold_probability(img)

        assert np.array_equal(mask, img)

    def test_zero_one_label_mask(self):
        """Test that an integer {0, 1} mask is treated as binary."""
        from sproutmeasure.masks.primitives import threshold_probability

        img = np.zeros((5, 5), dtype=np.uint8)
        img[1, 1] = 1
        mask = threshold_probability(img)

        assert mask[1, 1] == 255
        assert np.count_nonzero(mask) == 1

    def test_uint16_scaled_by_dtype_max(self):
        """Test that 16-bit probabilities are scaled before thresholding."""
        from sproutmeasure.masks.primitives import threshold_probability

        img = np.array([[30000, 40000]], dtype=np.uint16)
        mask = threshold_probability(img)

        assert mask.tolist() == [[0, 255]]

    def test_channel_selection(self):
        """Test that multichannel probability maps use the requested channel."""
        from sproutmeasure.masks.primitives import threshold_probability

        img = np.zeros((4, 4, 2), dtype=np.float32)
        img[..., 0] = 0.9
        img[..., 1] = 0.1

        assert threshold_probability(img, channel=0).all()
        assert not threshold_probability(img, channel=1).any()

    def test_bad_channel_raises(self):
        """Test that an out-of-range channel is a primitive failure."""
        from sproutmeasure.errors import PrimitiveFailure
        from sproutmeasure.masks.primitives import threshold_probability

        with pytest.raises(PrimitiveFailure):
            threshold_probability(np.zeros((4, 4, 2), dtype=np.float32), channel=5)


class TestMorphology:
    """Tests for disk opening and dilation."""

    def test_disk_shape(self):
        """Test that the disk element has diameter 2r+1 and is round."""
        from sproutmeasure.masks.primitives import disk

        se = disk(5)
        assert se.shape == (11, 11)
        assert se[5, 5] == 1
        assert se[0, 0] == 0

    def test_open_removes_thin_line(self):
        """Test that opening removes structures narrower than the disk."""
        from sproutmeasure.masks.primitives import open_mask

        img = np.zeros((100, 100), dtype=np.uint8)
        img[48:52, 10:90] = 255
        assert not open_mask(img, 5).any()

    def test_open_keeps_large_square(self):
        """Test that opening keeps a square much larger than the disk."""
        from sproutmeasure.masks.primitives import open_mask

        img = np.zeros((100, 100), dtype=np.uint8)
        img[20:80, 20:80] = 255
        opened = open_mask(img, 5)

        assert opened[50, 50] == 255
        assert np.count_nonzero(opened) > 0.95 * 60 * 60

    def test_dilate_grows_point_to_disk(self):
        """Test that dilating a single pixel gives a disk of the radius."""
        from sproutmeasure.masks.primitives import dilate_mask

        img = np.zeros((41, 41), dtype=np.uint8)
        img[20, 20] = 255
        grown = dilate_mask(img, 10)

        assert grown[20, 30] == 255
        assert grown[20, 31] == 0
        assert grown[12, 12] == 0

    def test_zero_radius_is_identity(self):
        from sproutmeasure.masks.primitives import dilate_mask, open_mask

        img = np.zeros((10, 10), dtype=np.uint8)
        img[3, 3] = 255
        assert np.array_equal(open_mask(img, 0), img)
        assert np.array_equal(dilate_mask(img, 0), img)


class TestLabelComponents:
    """Tests for connected-component labeling."""

    def test_diagonal_pixels_are_connected(self):
        """Test 8-connectivity: diagonal neighbours form one component."""
        from sproutmeasure.masks.primitives import label_components

        img = np.zeros((10, 10), dtype=np.uint8)
        img[2, 2] = 255
        img[3, 3] = 255

        regions = label_components(img)
        assert len(regions) == 1
        assert regions[0].area == 2

    def test_min_area_filter(self):
        """Test that components smaller than min_area are dropped."""
        from sproutmeasure.masks.primitives import label_components

        img = np.zeros((50, 50), dtype=np.uint8)
        img[5:10, 5:10] = 255
        img[30:32, 30:32] = 255

        regions = label_components(img, min_area=10)
        assert [r.area for r in regions] == [25]

    def test_border_exclusion(self):
        """Test that border-touching components are flagged and excludable."""
        from sproutmeasure.masks.primitives import label_components

        img = np.zeros((50, 50), dtype=np.uint8)
        img[0:5, 20:25] = 255
        img[20:25, 20:25] = 255

        all_regions = label_components(img)
        assert [r.touches_border for r in all_regions] == [True, False]
        assert len(label_components(img, exclude_border=True)) == 1

    def test_region_geometry(self):
        """Test bbox, cropped mask and containment of a labeled region."""
        from sproutmeasure.masks.primitives import label_components

        img = np.zeros((30, 30), dtype=np.uint8)
        img[10:15, 5:20] = 255

        region = label_components(img)[0]
        assert region.bbox == [5, 10, 19, 14]
        assert region.mask.shape == (5, 15)
        assert region.contains(5, 10)
        assert not region.contains(4, 10)
        assert np.array_equal(region.full_mask(img.shape), img)

    def test_region_exposes_only_pixel_queries(self):
        """Regions answer containment and painting; geometry comes from bbox."""
        from sproutmeasure.models import Region

        public = {name for name in vars(Region) if not name.startswith("_")}
        assert {"contains", "full_mask", "from_mask"} <= public
        assert not public & {"width", "height", "centroid"}


class TestSkeletonAndDistance:
    """Tests for skeletonization and the distance transform."""

    def test_skeleton_of_empty_mask(self):
        from sproutmeasure.masks.primitives import skeletonize_mask

        skeleton = skeletonize_mask(np.zeros((20, 20), dtype=np.uint8))
        assert skeleton.shape == (20, 20)
        assert not skeleton.any()

    def test_skeleton_is_thin_and_inside(self):
        """Test that the skeleton of a bar is a subset of the bar."""
        from sproutmeasure.masks.primitives import skeletonize_mask

        img = np.zeros((40, 100), dtype=np.uint8)
        img[15:25, 10:90] = 255
        skeleton = skeletonize_mask(img)

        assert skeleton.any()
        assert set(np.unique(skeleton).tolist()) == {0, 255}
        assert not np.any((skeleton > 0) & (img == 0))
        assert np.count_nonzero(skeleton) < np.count_nonzero(img) / 5

    def test_distance_is_euclidean(self):
        """Test distances to a single reference pixel."""
        from sproutmeasure.masks.primitives import distance_transform

        ref = np.zeros((20, 20), dtype=np.uint8)
        ref[0, 0] = 255
        field = distance_transform(ref)

        assert field.dtype == np.float32
        assert field[0, 0] == 0.0
        assert field[4, 3] == pytest.approx(5.0)
        assert field[0, 7] == pytest.approx(7.0)

    def test_empty_reference_raises(self):
        from sproutmeasure.errors import PrimitiveFailure
        from sproutmeasure.masks.primitives import distance_transform

        with pytest.raises(PrimitiveFailure):
            distance_transform(np.zeros((5, 5), dtype=np.uint8))
