"""
Error taxonomy for Sprout Measure.

Per-seed and per-image failures are isolated by the pipeline; these classes
let it tell which scope a failure belongs to.
"""


class SproutMeasureError(Exception):
    """Base class for all Sprout Measure errors."""


class ConfigError(SproutMeasureError):
    """Invalid configuration parameters."""


class InputShapeError(SproutMeasureError):
    """Raw image and segmentation mask of a pair have different dimensions."""

    def __init__(self, raw_shape, mask_shape, filename=""):
        self.raw_shape = tuple(raw_shape)
        self.mask_shape = tuple(mask_shape)
        self.filename = filename
        super().__init__(
            f"Raw image {self.raw_shape} and mask {self.mask_shape} differ in size"
            + (f" ({filename})" if filename else "")
        )


class PrimitiveFailure(SproutMeasureError):
    """An image primitive (labeling, morphology, skeleton, EDM) failed."""

    def __init__(self, operation, message):
        self.operation = operation
        super().__init__(f"{operation} failed: {message}")
