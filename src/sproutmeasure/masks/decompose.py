"""
Core/protrusion decomposition for Sprout Measure.

An opening with a large disk keeps the solid body of a seed and removes the
thin sprouts radiating from it. A small dilation of that body makes it
reach over the sprout bases, so subtracting it from the seed leaves each
sprout as a separate piece instead of pieces joined by 1-pixel bridges.

All work happens in a crop around the seed. The crop is padded by both
radii so that morphology near the seed never sees the crop edge.
"""

from typing import Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict

from sproutmeasure.masks.primitives import dilate_mask, open_mask
from sproutmeasure.models import Region
from sproutmeasure.tracer import get_tracer, trace


class Decomposition(BaseModel):
    """
    Result of splitting one seed.

    Masks are uint8 {0, 255} crops; offset is the (x, y) of the crop origin
    in the full image.
    """
    core: Region
    seed_mask: np.ndarray
    core_mask: np.ndarray
    protrusion_mask: np.ndarray
    offset: Tuple[int, int] = (0, 0)
    core_fallback: bool = False

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    @property
    def core_area(self):
        return self.core.area

    @property
    def shape(self):
        return self.seed_mask.shape


def crop_seed(seed, image_shape, pad):
    """
    Paint a seed into a padded crop of the image frame.

    Returns (mask, (x0, y0)).
    """
    height, width = image_shape[:2]
    min_x, min_y, max_x, max_y = seed.bbox
    pad = int(np.ceil(pad))

    x0, y0 = max(0, min_x - pad), max(0, min_y - pad)
    x1, y1 = min(width - 1, max_x + pad), min(height - 1, max_y + pad)

    crop = np.zeros((y1 - y0 + 1, x1 - x0 + 1), dtype=np.uint8)
    crop[min_y - y0:max_y - y0 + 1, min_x - x0:max_x - x0 + 1][seed.mask] = 255
    return crop, (x0, y0)


@trace(label="decompose")
def decompose(seed, image_shape, open_radius, dilate_radius):
    """
    Split a seed into its core and its protrusion mask.

    core = dilate(open(seed, open_radius), dilate_radius) AND seed
    protrusion_mask = seed AND NOT core

    A seed with no part wide enough to survive the opening has no separate
    core: the whole seed is taken as core and the protrusion mask is empty.
    """
    tracer = get_tracer()
    seed_mask, offset = crop_seed(seed, image_shape, open_radius + dilate_radius + 2)

    with tracer.span("core", module="decompose", open_radius=open_radius, dilate_radius=dilate_radius):
        opened = open_mask(seed_mask, open_radius)
        fallback = not opened.any()
        if fallback:
            tracer.event("Opening consumed the seed, using seed as core", level="WARN", seed=seed.label)
            core_mask = seed_mask.copy()
        else:
            core_mask = dilate_mask(opened, dilate_radius)
            # the dilated core may poke outside a concave seed
            core_mask = np.where(seed_mask > 0, core_mask, 0).astype(np.uint8)

    protrusion_mask = np.where((seed_mask > 0) & (core_mask == 0), 255, 0).astype(np.uint8)
    core = Region.from_mask(core_mask, label=seed.label)

    tracer.event(
        f"Core area={core.area}, protrusion pixels={int(np.count_nonzero(protrusion_mask))}",
        seed=seed.label,
    )

    return Decomposition(
        core=core,
        seed_mask=seed_mask,
        core_mask=core_mask,
        protrusion_mask=protrusion_mask,
        offset=offset,
        core_fallback=fallback,
    )
