"""
Pydantic data models for Sprout Measure.

Regions are immutable once labeled. Statistics rows, issues and reports
are plain validated records serialized with model_dump().
"""

from enum import Enum
from typing import List, Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field


class IssueKind(str, Enum):
    """Kinds of problems recorded while processing a batch."""
    INPUT_SHAPE = "input_shape"
    PRIMITIVE_FAILURE = "primitive_failure"
    MISSING_PROBABILITY = "missing_probability"
    LOAD_FAILURE = "load_failure"
    UNASSIGNED_ENDPOINTS = "unassigned_endpoints"


class Region(BaseModel):
    """
    A connected set of foreground pixels.

    bbox is [min_x, min_y, max_x, max_y] (inclusive) in the coordinates of
    the image the region was labeled in; mask is a boolean array cropped to
    the bbox.
    """
    label: int
    area: int
    bbox: List[int] = Field(..., min_length=4, max_length=4)
    mask: np.ndarray
    touches_border: bool = False

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    def contains(self, x, y):
        """Whether pixel (x, y) belongs to the region."""
        min_x, min_y, max_x, max_y = self.bbox
        if not (min_x <= x <= max_x and min_y <= y <= max_y):
            return False
        return bool(self.mask[y - min_y, x - min_x])

    def full_mask(self, shape):
        """Paint the region into a uint8 {0, 255} image of the given shape."""
        out = np.zeros(shape[:2], dtype=np.uint8)
        min_x, min_y, max_x, max_y = self.bbox
        view = out[min_y:max_y + 1, min_x:max_x + 1]
        view[self.mask] = 255
        return out

    @classmethod
    def from_mask(cls, mask, label=1):
        """
        Build a region from a full-frame mask (any nonzero pixel is foreground).

        The pixels need not be connected. Returns None for an empty mask.
        """
        fg = np.asarray(mask) > 0
        ys, xs = np.nonzero(fg)
        if len(xs) == 0:
            return None

        min_x, max_x = int(xs.min()), int(xs.max())
        min_y, max_y = int(ys.min()), int(ys.max())
        height, width = fg.shape[:2]

        return cls(
            label=label,
            area=int(len(xs)),
            bbox=[min_x, min_y, max_x, max_y],
            mask=fg[min_y:max_y + 1, min_x:max_x + 1].copy(),
            touches_border=(min_x == 0 or min_y == 0 or max_x == width - 1 or max_y == height - 1),
        )


# Exported CSV columns, in order
RESULT_COLUMNS = [
    "filename",
    "seedCoreArea",
    "numProtrusions",
    "numEndPoints",
    "numJunctions",
    "meanProtrusionArea",
    "meanProtrusionLength",
    "meanEndPointDistance",
    "meanMaxEndPointDistance",
]


class SeedStatistics(BaseModel):
    """One output row: the statistics of a single seed."""
    filename: str
    seed_core_area: float = Field(alias="seedCoreArea")
    num_protrusions: int = Field(alias="numProtrusions", ge=0)
    num_end_points: int = Field(alias="numEndPoints", ge=0)
    num_junctions: int = Field(alias="numJunctions", ge=0)
    mean_protrusion_area: float = Field(alias="meanProtrusionArea")
    mean_protrusion_length: float = Field(alias="meanProtrusionLength")
    mean_end_point_distance: float = Field(alias="meanEndPointDistance")
    mean_max_end_point_distance: float = Field(alias="meanMaxEndPointDistance")

    # bookkeeping, not exported to the CSV
    image_index: int = 0
    seed_index: int = 0
    seed_area: int = 0
    unassigned_endpoints: int = 0

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    def to_row(self):
        """Exported columns keyed by their CSV names."""
        dumped = self.model_dump(by_alias=True)
        return {col: dumped[col] for col in RESULT_COLUMNS}


class ProcessingIssue(BaseModel):
    """A skipped image/seed or a data-quality note."""
    kind: IssueKind
    filename: str = ""
    seed_index: Optional[int] = None
    message: str = ""

    model_config = ConfigDict(extra="forbid")


class ImageResult(BaseModel):
    """Rows and issues of one processed image."""
    filename: str
    image_index: int = 0
    num_seeds: int = 0
    rows: List[SeedStatistics] = Field(default_factory=list)
    issues: List[ProcessingIssue] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class BatchReport(BaseModel):
    """Everything a batch run produced."""
    images_total: int = 0
    images_processed: int = 0
    interrupted: bool = False
    rows: List[SeedStatistics] = Field(default_factory=list)
    issues: List[ProcessingIssue] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    @property
    def skipped_images(self):
        """Filenames of images that produced an image-level issue."""
        return sorted({
            i.filename for i in self.issues
            if i.seed_index is None and i.kind != IssueKind.UNASSIGNED_ENDPOINTS
        })

    @property
    def unassigned_endpoint_count(self):
        return sum(r.unassigned_endpoints for r in self.rows)

    def issues_of(self, kind):
        return [i for i in self.issues if i.kind == kind]
