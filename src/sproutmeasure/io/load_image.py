"""
Input discovery and loading for Sprout Measure.

Raw images and their segmentation (probability) images live in two
directories. A raw image `<stem>.<ext>` is paired with the probability file
`<stem><probability_match>`. Decoding is left to OpenCV.
"""

import os
from typing import Optional

import cv2
import numpy as np
from pydantic import BaseModel

from sproutmeasure.errors import InputShapeError
from sproutmeasure.tracer import get_tracer, trace


class ImagePair(BaseModel):
    """A raw image and its probability image (None when not found)."""
    image_path: str
    probability_path: Optional[str] = None

    @property
    def filename(self):
        return os.path.basename(self.image_path)


def find_image_pairs(image_dir, probability_dir, image_ext="tif", probability_match="_Probabilities.tif"):
    """
    Pair raw images with their probability images.

    Raw images are files ending in image_ext that do not contain the
    probability match term. Returns pairs sorted by raw filename.
    """
    ext = image_ext if image_ext.startswith(".") else "." + image_ext

    raw_names = sorted(
        name for name in os.listdir(image_dir)
        if name.endswith(ext) and probability_match not in name
        and os.path.isfile(os.path.join(image_dir, name))
    )
    probability_names = set(os.listdir(probability_dir)) if os.path.isdir(probability_dir) else set()

    pairs = []
    for name in raw_names:
        stem = name[:-len(ext)]
        prob_name = stem + probability_match
        prob_path = os.path.join(probability_dir, prob_name) if prob_name in probability_names else None
        pairs.append(ImagePair(image_path=os.path.join(image_dir, name), probability_path=prob_path))

    get_tracer().event(
        f"Found {len(pairs)} raw images, {sum(p.probability_path is not None for p in pairs)} with probabilities"
    )
    return pairs


def read_unchanged(path):
    """
    Read an image keeping bit depth and channels.

    Raises FileNotFoundError if path does not exist.
    Raises ValueError if the image cannot be decoded.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Image not found: {path}")

    img = cv2.imread(path, cv2.IMREAD_UNCHANGED)
    if img is None:
        raise ValueError(f"Failed to load image: {path}")
    return img


@trace(label="load_pair")
def load_pair(pair):
    """
    Load the raw and probability images of a pair.

    Raises InputShapeError when their height/width differ.
    """
    raw = read_unchanged(pair.image_path)
    probability = read_unchanged(pair.probability_path)

    if raw.shape[:2] != probability.shape[:2]:
        raise InputShapeError(raw.shape[:2], probability.shape[:2], pair.filename)

    get_tracer().event(f"Loaded {pair.filename}: {raw.shape[1]}x{raw.shape[0]}", dtype=str(probability.dtype))
    return raw, probability


def to_display_rgb(img):
    """
    Convert a raw image of any depth to 8-bit RGB for overlays.

    Intensities are stretched between the 1st and 99th percentiles.
    """
    arr = np.asarray(img)
    if arr.ndim == 3 and arr.shape[2] == 4:
        arr = arr[..., :3]

    if arr.dtype != np.uint8:
        data = arr.astype(np.float32)
        lo, hi = np.percentile(data, (1, 99)) if data.size else (0.0, 1.0)
        if hi <= lo:
            hi = lo + 1.0
        arr = (np.clip((data - lo) / (hi - lo), 0, 1) * 255).astype(np.uint8)

    if arr.ndim == 2:
        return cv2.cvtColor(arr, cv2.COLOR_GRAY2RGB)
    if arr.shape[2] == 3:
        return cv2.cvtColor(arr, cv2.COLOR_BGR2RGB)
    # other channel counts: show the first channel
    return cv2.cvtColor(np.ascontiguousarray(arr[..., 0]), cv2.COLOR_GRAY2RGB)
