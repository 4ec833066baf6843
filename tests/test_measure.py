"""Tests for endpoint matching and per-seed aggregation."""

import math

import numpy as np
import pytest


def _region(shape, rows, cols, label=1):
    from sproutmeasure.models import Region

    mask = np.zeros(shape, dtype=np.uint8)
    mask[rows, cols] = 255
    return Region.from_mask(mask, label=label)


@pytest.fixture
def core_and_protrusions():
    """A square core on the left and two horizontal protrusions."""
    from sproutmeasure.masks.primitives import distance_transform

    shape = (60, 100)
    core = np.zeros(shape, dtype=np.uint8)
    core[10:50, 0:20] = 255
    field = distance_transform(core)

    upper = _region(shape, slice(15, 20), slice(20, 80), label=1)
    lower = _region(shape, slice(40, 45), slice(20, 60), label=2)
    return field, [upper, lower]


class TestMatchEndpoints:
    """Tests for the endpoint-distance matcher."""

    def test_distances_and_maxima(self, core_and_protrusions):
        from sproutmeasure.measure.endpoints import match_endpoints

        field, protrusions = core_and_protrusions
        endpoints = [(79, 17), (50, 17), (59, 42)]
        match = match_endpoints(endpoints, field, protrusions)

        assert match.per_endpoint_distance == [pytest.approx(60.0), pytest.approx(31.0), pytest.approx(40.0)]
        assert match.max_distance_per_protrusion == [pytest.approx(60.0), pytest.approx(40.0)]
        assert match.max_endpoints == [(79, 17), (59, 42)]
        assert match.unassigned == 0

    def test_unassigned_endpoint_counts_in_sum_only(self, core_and_protrusions):
        """An endpoint outside all protrusions adds to the sum, not to a maximum."""
        from sproutmeasure.measure.endpoints import match_endpoints
        from sproutmeasure.tracer import get_tracer

        field, protrusions = core_and_protrusions
        tracer = get_tracer()
        before = tracer.counters["unassigned_endpoints"]

        match = match_endpoints([(90, 30), (40, 17)], field, protrusions)

        assert match.unassigned == 1
        assert match.distance_sum == pytest.approx(71.0 + 21.0)
        assert match.max_distance_per_protrusion == [pytest.approx(21.0), 0.0]
        assert tracer.counters["unassigned_endpoints"] == before + 1

    def test_ties_keep_first_endpoint(self, core_and_protrusions):
        from sproutmeasure.measure.endpoints import match_endpoints

        field, protrusions = core_and_protrusions
        match = match_endpoints([(70, 15), (70, 19)], field, protrusions)

        assert match.max_endpoints[0] == (70, 15)

    def test_protrusion_without_endpoint_keeps_zero(self, core_and_protrusions):
        from sproutmeasure.measure.endpoints import match_endpoints

        field, protrusions = core_and_protrusions
        match = match_endpoints([], field, protrusions)

        assert match.max_distance_per_protrusion == [0.0, 0.0]
        assert match.max_endpoints == [None, None]
        assert match.per_endpoint_distance == []

    def test_maxima_keep_fractional_distance(self):
        """A diagonal tip keeps its Euclidean distance, not a whole-pixel one."""
        from sproutmeasure.masks.primitives import distance_transform
        from sproutmeasure.measure.endpoints import match_endpoints

        shape = (20, 20)
        core = np.zeros(shape, dtype=np.uint8)
        core[0:5, 0:5] = 255
        sprout = _region(shape, slice(5, 15), slice(5, 15))

        match = match_endpoints([(12, 11)], distance_transform(core), [sprout])

        assert match.max_distance_per_protrusion == [pytest.approx(math.hypot(8, 7))]
        assert match.max_distance_per_protrusion[0] != int(match.max_distance_per_protrusion[0])

    def test_region_index_partition(self, core_and_protrusions):
        from sproutmeasure.measure.endpoints import region_index

        field, protrusions = core_and_protrusions
        index = region_index(protrusions, field.shape)

        assert index[17, 50] == 0
        assert index[42, 30] == 1
        assert index[30, 50] == -1
        assert np.count_nonzero(index >= 0) == sum(p.area for p in protrusions)


class TestAggregate:
    """Tests for the per-seed aggregation."""

    def _skeleton(self, counts, lengths, junctions, endpoints):
        from sproutmeasure.skeleton.analyze import SkeletonResult

        return SkeletonResult(
            branch_counts=counts,
            branch_lengths=lengths,
            junction_counts=junctions,
            endpoint_counts=endpoints,
        )

    def test_means(self):
        from sproutmeasure.measure.aggregate import aggregate_seed
        from sproutmeasure.measure.endpoints import EndpointMatch

        protrusions = [
            _region((20, 20), slice(0, 2), slice(0, 5)),    # area 10
            _region((20, 20), slice(5, 10), slice(0, 6)),   # area 30
        ]
        skeleton = self._skeleton([2, 1], [10.0, 4.0], [1, 0], [3, 2])
        match = EndpointMatch(
            per_endpoint_distance=[1.0, 2.0, 3.0, 4.0, 5.0],
            max_distance_per_protrusion=[3.0, 5.0],
        )

        row = aggregate_seed("img.tif", 500, protrusions, skeleton, match, seed_index=2, seed_area=580)

        assert row.num_protrusions == 2
        assert row.num_end_points == 5
        assert row.num_junctions == 1
        assert row.seed_core_area == 500.0
        assert row.mean_protrusion_area == pytest.approx(20.0)
        assert row.mean_protrusion_length == pytest.approx((2 * 10.0 + 1 * 4.0) / 2)
        assert row.mean_end_point_distance == pytest.approx(3.0)
        assert row.mean_max_end_point_distance == pytest.approx(4.0)

    def test_mean_max_divides_by_protrusions(self):
        """A protrusion without endpoints still counts in the denominator."""
        from sproutmeasure.measure.aggregate import aggregate_seed
        from sproutmeasure.measure.endpoints import EndpointMatch

        protrusions = [_region((20, 20), slice(0, 2), slice(0, 5)), _region((20, 20), slice(5, 7), slice(0, 5))]
        skeleton = self._skeleton([1], [8.0], [0], [2])
        match = EndpointMatch(per_endpoint_distance=[8.0, 2.0], max_distance_per_protrusion=[8.0, 0.0])

        row = aggregate_seed("img.tif", 100, protrusions, skeleton, match)
        assert row.mean_max_end_point_distance == pytest.approx(4.0)

    def test_no_protrusions_gives_nan(self):
        """Zero protrusions: counts are zero and means are NaN, not zero."""
        from sproutmeasure.measure.aggregate import aggregate_seed
        from sproutmeasure.measure.endpoints import EndpointMatch
        from sproutmeasure.skeleton.analyze import SkeletonResult

        row = aggregate_seed("img.tif", 7800, [], SkeletonResult(), EndpointMatch())

        assert row.num_protrusions == 0
        assert row.num_end_points == 0
        assert math.isnan(row.mean_protrusion_area)
        assert math.isnan(row.mean_protrusion_length)
        assert math.isnan(row.mean_end_point_distance)
        assert math.isnan(row.mean_max_end_point_distance)

    def test_results_table_sorted_with_columns(self):
        from sproutmeasure.measure.aggregate import aggregate_seed, results_table
        from sproutmeasure.measure.endpoints import EndpointMatch
        from sproutmeasure.models import RESULT_COLUMNS
        from sproutmeasure.skeleton.analyze import SkeletonResult

        rows = [
            aggregate_seed("b.tif", 1, [], SkeletonResult(), EndpointMatch(), image_index=1, seed_index=0),
            aggregate_seed("a.tif", 2, [], SkeletonResult(), EndpointMatch(), image_index=0, seed_index=1),
            aggregate_seed("a.tif", 3, [], SkeletonResult(), EndpointMatch(), image_index=0, seed_index=0),
        ]
        table = results_table(rows)

        assert list(table.columns) == RESULT_COLUMNS
        assert table["seedCoreArea"].tolist() == [3.0, 2.0, 1.0]
        assert table["meanProtrusionArea"].isna().all()

    def test_empty_results_table(self):
        from sproutmeasure.measure.aggregate import results_table
        from sproutmeasure.models import RESULT_COLUMNS

        table = results_table([])
        assert table.empty
        assert list(table.columns) == RESULT_COLUMNS
