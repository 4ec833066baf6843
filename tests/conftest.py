"""Pytest fixtures for Sprout Measure tests."""

import math
import os
import tempfile

import cv2
import numpy as np
import pytest


SPOKE_CENTER = (350, 350)
SPOKE_DISK_RADIUS = 50
SPOKE_LENGTH = 200
SPOKE_WIDTH = 10
SPOKE_ANGLES = (0.0, 120.0, 240.0)


def draw_spoked_seed(img, center, disk_radius=SPOKE_DISK_RADIUS, length=SPOKE_LENGTH,
                     width=SPOKE_WIDTH, angles=SPOKE_ANGLES):
    """Draw a disk with thin spokes reaching `length` px beyond its edge."""
    cx, cy = center
    cv2.circle(img, (cx, cy), disk_radius, 255, -1)
    for angle in angles:
        rad = math.radians(angle)
        tip = (
            int(round(cx + (disk_radius + length) * math.cos(rad))),
            int(round(cy + (disk_radius + length) * math.sin(rad))),
        )
        cv2.line(img, (cx, cy), tip, 255, width)
    return img


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test outputs."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def default_config():
    """Create default pipeline configuration."""
    from sproutmeasure.config import PipelineConfig
    return PipelineConfig()


@pytest.fixture
def disk_mask():
    """A single solid disk of radius 50 without protrusions."""
    img = np.zeros((300, 300), dtype=np.uint8)
    cv2.circle(img, (150, 150), 50, 255, -1)
    return img


@pytest.fixture
def spoked_mask():
    """A disk of radius 50 with three 10 px wide spokes, 200 px long."""
    img = np.zeros((700, 700), dtype=np.uint8)
    return draw_spoked_seed(img, SPOKE_CENTER)


@pytest.fixture
def two_spoked_mask():
    """Two separate spoked seeds side by side."""
    img = np.zeros((400, 800), dtype=np.uint8)
    draw_spoked_seed(img, (200, 200), length=120, angles=(90.0, 270.0))
    draw_spoked_seed(img, (600, 200), length=120, angles=(0.0, 90.0, 270.0))
    return img


@pytest.fixture
def gap_mask():
    """Two squares separated by a single empty pixel column."""
    img = np.zeros((200, 300), dtype=np.uint8)
    img[50:150, 40:140] = 255
    img[50:150, 141:241] = 255
    return img


@pytest.fixture
def empty_mask():
    return np.zeros((200, 200), dtype=np.uint8)


@pytest.fixture
def pair_dirs(temp_dir, spoked_mask, disk_mask):
    """
    Raw and probability directories with two valid pairs.

    Probabilities are float32 maps in [0, 1].
    """
    image_dir = os.path.join(temp_dir, "images")
    prob_dir = os.path.join(temp_dir, "probabilities")
    os.makedirs(image_dir)
    os.makedirs(prob_dir)

    for stem, mask in (("a_spoked", spoked_mask), ("b_disk", disk_mask)):
        raw = (mask // 2 + 20).astype(np.uint8)
        cv2.imwrite(os.path.join(image_dir, f"{stem}.tif"), raw)
        prob = (mask.astype(np.float32) / 255.0) * 0.9
        cv2.imwrite(os.path.join(prob_dir, f"{stem}_Probabilities.tif"), prob)

    return image_dir, prob_dir
