"""layout-snapshot: visual regression checks of a web page against a reference image."""

from layout_snapshot.config import SnapshotConfig
from layout_snapshot.core import (
    DiffOptions,
    DiffResult,
    ImageBuffer,
    ToleranceVerdict,
    diff_images,
    evaluate,
    slice_image,
)
from layout_snapshot.runner import RunResult, SnapshotRunner

__all__ = [
    "DiffOptions",
    "DiffResult",
    "ImageBuffer",
    "RunResult",
    "SnapshotConfig",
    "SnapshotRunner",
    "ToleranceVerdict",
    "diff_images",
    "evaluate",
    "slice_image",
]
