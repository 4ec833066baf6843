"""
Protrusion labeling for Sprout Measure.
"""

import numpy as np

from sproutmeasure.masks.primitives import label_components
from sproutmeasure.tracer import get_tracer, trace


@trace(label="label_protrusions")
def label_protrusions(mask, min_area):
    """
    Label the protrusion mask into protrusion Regions.

    No border exclusion: sprouts legitimately reach the frame edge.
    """
    if not np.any(mask):
        return []
    regions = label_components(mask, min_area=min_area, exclude_border=False)
    get_tracer().event(f"Protrusions: {len(regions)}", min_area=min_area)
    return regions


def protrusions_to_mask(regions, shape):
    """Union of the protrusion Regions as a uint8 {0, 255} mask."""
    out = np.zeros(shape[:2], dtype=np.uint8)
    for region in regions:
        min_x, min_y, max_x, max_y = region.bbox
        out[min_y:max_y + 1, min_x:max_x + 1][region.mask] = 255
    return out
