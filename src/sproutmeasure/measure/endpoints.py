"""
Endpoint-to-core distance matching for Sprout Measure.

Each skeleton endpoint gets its distance to the seed core from the distance
field and is attributed to the protrusion containing it. Skeletonization
does not keep component identity, so attribution goes through a region
index image painted from the protrusion Regions (one lookup per endpoint).
"""

from typing import List, Optional, Tuple

import numpy as np
from pydantic import BaseModel, Field

from sproutmeasure.tracer import get_tracer, trace


class EndpointMatch(BaseModel):
    """Distances of all endpoints and the farthest endpoint of each protrusion."""
    per_endpoint_distance: List[float] = Field(default_factory=list)
    max_distance_per_protrusion: List[float] = Field(default_factory=list)
    max_endpoints: List[Optional[Tuple[int, int]]] = Field(default_factory=list)
    unassigned: int = 0

    @property
    def distance_sum(self):
        return float(sum(self.per_endpoint_distance))


def region_index(protrusions, shape):
    """
    Image of protrusion indices (-1 where no protrusion).

    Protrusions partition their mask, so painting order does not matter.
    """
    index = np.full(shape[:2], -1, dtype=np.int32)
    for idx, region in enumerate(protrusions):
        min_x, min_y, max_x, max_y = region.bbox
        index[min_y:max_y + 1, min_x:max_x + 1][region.mask] = idx
    return index


@trace(label="match_endpoints")
def match_endpoints(endpoints, distance_field, protrusions):
    """
    Match skeleton endpoints (x, y) to protrusions and core distances.

    The running maximum of each protrusion starts at 0 and only a strictly
    larger distance replaces it, so ties keep the first endpoint seen.
    Endpoints outside every protrusion still count towards the distance sum
    and are tallied in `unassigned`.
    """
    tracer = get_tracer()
    field = np.asarray(distance_field)
    index = region_index(protrusions, field.shape)

    match = EndpointMatch(
        max_distance_per_protrusion=[0.0] * len(protrusions),
        max_endpoints=[None] * len(protrusions),
    )

    for x, y in endpoints:
        dist = float(field[y, x])
        match.per_endpoint_distance.append(dist)

        idx = int(index[y, x])
        if idx < 0:
            match.unassigned += 1
            continue
        if dist > match.max_distance_per_protrusion[idx]:
            match.max_distance_per_protrusion[idx] = dist
            match.max_endpoints[idx] = (x, y)

    if match.unassigned:
        tracer.increment("unassigned_endpoints", match.unassigned)
        tracer.event(f"{match.unassigned} endpoint(s) outside every protrusion", level="WARN")

    return match
