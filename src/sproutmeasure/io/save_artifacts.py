"""
Artifact saving utilities for Sprout Measure.

Handles the results CSV, JSON files and per-seed debug overlays.
"""

import json
import os

import cv2
import numpy as np

from sproutmeasure.tracer import get_tracer


# RGB overlay colours
SEED_COLOR = (255, 255, 0)
CORE_COLOR = (0, 128, 255)
PROTRUSION_COLOR = (0, 255, 0)
SKELETON_COLOR = (255, 0, 255)
ENDPOINT_COLOR = (255, 0, 0)


def ensure_dir(path):
    """Create directory if it does not exist."""
    if path:
        os.makedirs(path, exist_ok=True)


def save_image(img, path, max_edge=None):
    """
    Save an RGB or grayscale image to disk.

    Optionally downscales to max_edge while preserving aspect ratio.
    """
    if max_edge and max(img.shape[:2]) > max_edge:
        scale = max_edge / max(img.shape[:2])
        new_size = (int(img.shape[1] * scale), int(img.shape[0] * scale))
        img = cv2.resize(img, new_size, interpolation=cv2.INTER_AREA)

    if img.ndim == 3 and img.shape[2] == 3:
        img = cv2.cvtColor(img, cv2.COLOR_RGB2BGR)

    ensure_dir(os.path.dirname(path))
    cv2.imwrite(path, img)
    get_tracer().event(f"Saved image: {path}", level="DEBUG")


def save_json(data, path, indent=2):
    """Save a dictionary or pydantic model to JSON."""
    ensure_dir(os.path.dirname(path))

    if hasattr(data, "model_dump"):
        data = data.model_dump(mode="json")

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=indent, default=str)

    get_tracer().event(f"Saved JSON: {path}")


def write_results_csv(table, path):
    """Write the results DataFrame as CSV; NaN cells are written as 'NaN'."""
    ensure_dir(os.path.dirname(path))
    table.to_csv(path, index=False, na_rep="NaN")
    get_tracer().event(f"Saved results: {path}", rows=len(table))


def _outline(img, mask, color, offset):
    contours, _ = cv2.findContours(
        (np.asarray(mask) > 0).astype(np.uint8), cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_NONE,
        offset=offset,
    )
    cv2.drawContours(img, contours, -1, color, 1)


def draw_seed_overlay(base_rgb, decomposition, protrusion_mask=None, skeleton=None, endpoints=None):
    """
    Draw one seed's decomposition on an RGB image.

    Masks and points are in the decomposition crop; they are shifted by its
    offset. Outlines: seed, core, protrusions; skeleton pixels and the
    farthest endpoint of each protrusion are drawn filled.
    """
    overlay = base_rgb.copy()
    offset = tuple(int(v) for v in decomposition.offset)
    x0, y0 = offset

    _outline(overlay, decomposition.seed_mask, SEED_COLOR, offset)
    _outline(overlay, decomposition.core_mask, CORE_COLOR, offset)
    if protrusion_mask is not None:
        _outline(overlay, protrusion_mask, PROTRUSION_COLOR, offset)

    if skeleton is not None:
        ys, xs = np.nonzero(skeleton)
        ys, xs = ys + y0, xs + x0
        inside = (ys < overlay.shape[0]) & (xs < overlay.shape[1])
        overlay[ys[inside], xs[inside]] = SKELETON_COLOR

    for point in endpoints or ():
        if point is None:
            continue
        cv2.circle(overlay, (int(point[0]) + x0, int(point[1]) + y0), 3, ENDPOINT_COLOR, -1)

    return overlay


class DebugArtifactWriter:
    """
    Writes debug artifacts for one image under <out_dir>/debug/<image stem>/.

    Does nothing when disabled.
    """

    def __init__(self, out_dir, image_name, enabled=True, max_edge=1600):
        self.out_dir = out_dir
        self.image_stem = os.path.splitext(os.path.basename(image_name))[0]
        self.enabled = enabled
        self.max_edge = max_edge

    def get_dir(self, sub_dir=""):
        path = os.path.join(self.out_dir, "debug", self.image_stem, sub_dir)
        ensure_dir(path)
        return path

    def save_image(self, img, sub_dir, filename):
        if not self.enabled:
            return
        save_image(img, os.path.join(self.get_dir(sub_dir), filename), max_edge=self.max_edge)

    def save_json(self, data, sub_dir, filename):
        if not self.enabled:
            return
        save_json(data, os.path.join(self.get_dir(sub_dir), filename))

    def save_seed(self, seed_index, base_rgb, decomposition, protrusion_mask, skeleton, endpoints, row=None):
        """Save overlay, masks and the statistics row of one seed."""
        if not self.enabled:
            return
        sub_dir = f"seed_{seed_index:03d}"
        overlay = draw_seed_overlay(base_rgb, decomposition, protrusion_mask, skeleton, endpoints)
        self.save_image(overlay, sub_dir, "01_overlay.png")
        self.save_image(decomposition.core_mask, sub_dir, "02_core_mask.png")
        self.save_image(decomposition.protrusion_mask, sub_dir, "03_protrusion_mask.png")
        if skeleton is not None:
            self.save_image(skeleton, sub_dir, "04_skeleton.png")
        if row is not None:
            self.save_json(row.model_dump(mode="json"), sub_dir, "seed_metrics.json")
