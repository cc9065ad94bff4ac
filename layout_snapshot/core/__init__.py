"""Pure comparison engine: image buffers, slicing, diffing and tolerance."""

from layout_snapshot.core.differ import DiffOptions, DiffResult, diff_images
from layout_snapshot.core.errors import (
    CaptureError,
    CaptureTimeout,
    ConfigurationError,
    DecodeError,
    DimensionMismatch,
    LayoutSnapshotError,
    MissingInputFile,
    ToleranceExceeded,
)
from layout_snapshot.core.image_buffer import ImageBuffer
from layout_snapshot.core.slicer import Slice, join_slices, slice_bounds, slice_image, slice_regions
from layout_snapshot.core.tolerance import ToleranceVerdict, allowed_pixels, evaluate

__all__ = [
    "CaptureError",
    "CaptureTimeout",
    "ConfigurationError",
    "DecodeError",
    "DiffOptions",
    "DiffResult",
    "DimensionMismatch",
    "ImageBuffer",
    "LayoutSnapshotError",
    "MissingInputFile",
    "Slice",
    "ToleranceExceeded",
    "ToleranceVerdict",
    "allowed_pixels",
    "diff_images",
    "evaluate",
    "join_slices",
    "slice_bounds",
    "slice_image",
    "slice_regions",
]
