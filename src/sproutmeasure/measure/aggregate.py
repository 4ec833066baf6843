"""
Per-seed aggregation for Sprout Measure.

Reduces one seed's decomposition, protrusions, skeleton and endpoint match
into a SeedStatistics row, and collects rows into the results table.
"""

import math

import pandas as pd

from sproutmeasure.models import RESULT_COLUMNS, SeedStatistics


def safe_mean(total, count):
    """total / count, NaN when count is zero."""
    return total / count if count else math.nan


def aggregate_seed(filename, core_area, protrusions, skeleton, match,
                   image_index=0, seed_index=0, seed_area=0):
    """
    Build the statistics row of one seed.

    Every mean divides by a count of the same seed. The mean maximum
    endpoint distance divides by the number of protrusions: one maximum is
    kept per protrusion even when it branches.
    """
    num_protrusions = len(protrusions)
    num_endpoints = skeleton.num_endpoints

    return SeedStatistics(
        filename=filename,
        seed_core_area=float(core_area),
        num_protrusions=num_protrusions,
        num_end_points=num_endpoints,
        num_junctions=skeleton.num_junctions,
        mean_protrusion_area=safe_mean(sum(p.area for p in protrusions), num_protrusions),
        mean_protrusion_length=safe_mean(skeleton.total_length, num_protrusions),
        mean_end_point_distance=safe_mean(match.distance_sum, num_endpoints),
        mean_max_end_point_distance=safe_mean(sum(match.max_distance_per_protrusion), num_protrusions),
        image_index=image_index,
        seed_index=seed_index,
        seed_area=seed_area,
        unassigned_endpoints=match.unassigned,
    )


def sort_rows(rows):
    """Deterministic presentation order: by image, then by seed."""
    return sorted(rows, key=lambda r: (r.image_index, r.seed_index))


def results_table(rows):
    """Exported results as a DataFrame with the CSV columns in order."""
    records = [row.to_row() for row in sort_rows(rows)]
    return pd.DataFrame.from_records(records, columns=RESULT_COLUMNS)
