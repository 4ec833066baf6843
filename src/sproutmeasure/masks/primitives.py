"""
Mask primitives for Sprout Measure.

The fixed set of binary-image operations the decomposition is built from.
Semantics are part of the contract:

- masks are uint8 with 0 background and 255 foreground
- structuring elements are discrete disks of diameter 2r+1
- connected components use 8-connectivity
- distances are Euclidean, in pixels

Library errors are wrapped in PrimitiveFailure so callers can skip the
current seed or image.
"""

import cv2
import numpy as np
from scipy.ndimage import distance_transform_edt
from skimage.morphology import skeletonize

from sproutmeasure.errors import PrimitiveFailure
from sproutmeasure.models import Region
from sproutmeasure.tracer import get_tracer


CONNECTIVITY = 8


def as_mask(img):
    """Normalize any binary-like array to uint8 {0, 255}."""
    arr = np.asarray(img)
    if arr.ndim != 2:
        raise PrimitiveFailure("as_mask", f"expected a 2D mask, got shape {arr.shape}")
    return np.where(arr > 0, 255, 0).astype(np.uint8)


def threshold_probability(image, cutoff=0.5, channel=0):
    """
    Threshold a segmentation image into a binary mask.

    Float images are probabilities: foreground is value >= cutoff.
    Integer images whose maximum is at most 1 are label masks (foreground
    is > 0); other integer images are scaled by their dtype maximum and
    then treated as probabilities. Multichannel images use `channel`.
    """
    img = np.asarray(image)
    if img.ndim == 3:
        if not 0 <= channel < img.shape[2]:
            raise PrimitiveFailure("threshold", f"channel {channel} out of range for {img.shape[2]} channels")
        img = img[..., channel]
    if img.ndim != 2:
        raise PrimitiveFailure("threshold", f"unsupported image shape {img.shape}")

    if img.dtype == bool:
        fg = img
    elif np.issubdtype(img.dtype, np.integer):
        if img.size and img.max() <= 1:
            fg = img > 0
        else:
            fg = img.astype(np.float64) / np.iinfo(img.dtype).max >= cutoff
    else:
        fg = img >= cutoff

    return np.where(fg, 255, 0).astype(np.uint8)


def disk(radius):
    """Disk structuring element of the given radius (diameter 2r+1)."""
    r = int(round(radius))
    if r < 0:
        raise PrimitiveFailure("disk", f"negative radius {radius}")
    return cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (2 * r + 1, 2 * r + 1))


def open_mask(mask, radius):
    """Binary opening (erode then dilate) with a disk."""
    if int(round(radius)) <= 0:
        return as_mask(mask)
    try:
        return cv2.morphologyEx(as_mask(mask), cv2.MORPH_OPEN, disk(radius))
    except cv2.error as e:
        raise PrimitiveFailure("open", str(e)) from e


def dilate_mask(mask, radius):
    """Binary dilation with a disk."""
    if int(round(radius)) <= 0:
        return as_mask(mask)
    try:
        return cv2.dilate(as_mask(mask), disk(radius))
    except cv2.error as e:
        raise PrimitiveFailure("dilate", str(e)) from e


def label_components(mask, min_area=0, exclude_border=False):
    """
    Label 8-connected components and return them as Regions.

    Components with area < min_area are dropped, as are components touching
    the frame when exclude_border is set. Regions come back in label
    (raster scan) order.
    """
    binary = as_mask(mask)
    height, width = binary.shape

    try:
        num, labels, stats, _ = cv2.connectedComponentsWithStats(
            binary, connectivity=CONNECTIVITY, ltype=cv2.CV_32S,
        )
    except cv2.error as e:
        raise PrimitiveFailure("label", str(e)) from e

    regions = []
    for i in range(1, num):
        area = int(stats[i, cv2.CC_STAT_AREA])
        if area < min_area:
            continue

        x = int(stats[i, cv2.CC_STAT_LEFT])
        y = int(stats[i, cv2.CC_STAT_TOP])
        w = int(stats[i, cv2.CC_STAT_WIDTH])
        h = int(stats[i, cv2.CC_STAT_HEIGHT])
        touches = x == 0 or y == 0 or x + w == width or y + h == height
        if exclude_border and touches:
            continue

        regions.append(Region(
            label=i,
            area=area,
            bbox=[x, y, x + w - 1, y + h - 1],
            mask=labels[y:y + h, x:x + w] == i,
            touches_border=touches,
        ))

    get_tracer().event(f"Labeled {num - 1} components, kept {len(regions)}", level="DEBUG")
    return regions


def skeletonize_mask(mask):
    """
    Thin a mask to a 1-pixel-wide skeleton (uint8 {0, 255}).

    Uses Lee's thinning: Zhang's method forks a straight sprout into a Y
    where its base meets the concave edge of the core.
    """
    binary = as_mask(mask)
    if not binary.any():
        return binary
    try:
        skeleton = skeletonize(binary > 0, method="lee")
    except (ValueError, RuntimeError) as e:
        raise PrimitiveFailure("skeletonize", str(e)) from e
    return np.where(skeleton > 0, 255, 0).astype(np.uint8)


def distance_transform(reference_mask):
    """
    Euclidean distance from every pixel to the nearest reference pixel.

    Pixels inside the reference get 0. Computed as the EDT of the inverted
    reference mask.
    """
    reference = as_mask(reference_mask) > 0
    if not reference.any():
        raise PrimitiveFailure("distance_transform", "reference mask is empty")
    try:
        return distance_transform_edt(~reference).astype(np.float32)
    except (ValueError, RuntimeError, MemoryError) as e:
        raise PrimitiveFailure("distance_transform", str(e)) from e
