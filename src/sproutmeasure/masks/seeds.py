"""
Seed extraction for Sprout Measure.

A seed is one cell cluster: an 8-connected component of the thresholded
mask that is large enough and, by default, fully inside the field of view.
Clusters clipped by the frame would bias area and length statistics.
"""

from sproutmeasure.masks.primitives import label_components
from sproutmeasure.tracer import get_tracer, trace


@trace(label="extract_seeds")
def extract_seeds(mask, min_area, exclude_border=True):
    """
    Return the seed Regions of a binary mask in label order.

    Small components are background noise and are dropped without notice.
    """
    seeds = label_components(mask, min_area=min_area, exclude_border=exclude_border)
    get_tracer().event(f"Seeds found: {len(seeds)}", min_area=min_area, exclude_border=exclude_border)
    return seeds
