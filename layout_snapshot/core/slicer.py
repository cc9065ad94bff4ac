"""Horizontal strip slicing for tall screenshots.

Strips share a common height of ``ceil(height / parts)`` so tiles from
different runs line up; only the last strip may be shorter.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from layout_snapshot.core.image_buffer import ImageBuffer


@dataclass(frozen=True)
class Slice:
    index: int  # 1-based, used for the file suffix
    source_width: int
    y_start: int
    y_end: int  # exclusive
    image: ImageBuffer

    @property
    def height(self) -> int:
        return self.y_end - self.y_start


def strip_height(height: int, parts: int) -> int:
    if parts < 1:
        raise ValueError(f"parts must be >= 1, got {parts}")
    return math.ceil(height / parts)


def slice_bounds(height: int, parts: int) -> list[tuple[int, int]]:
    """Row ranges for each non-empty strip, in top-to-bottom order."""
    step = strip_height(height, parts)
    bounds: list[tuple[int, int]] = []
    for i in range(parts):
        y_start = i * step
        y_end = min(y_start + step, height)
        if y_end <= y_start:
            continue
        bounds.append((y_start, y_end))
    return bounds


def slice_regions(image: ImageBuffer, parts: int) -> list[Slice]:
    slices: list[Slice] = []
    for position, (y_start, y_end) in enumerate(slice_bounds(image.height, parts)):
        strip = ImageBuffer(
            width=image.width,
            height=y_end - y_start,
            pixels=image.rows(y_start, y_end),
        )
        slices.append(
            Slice(
                index=position + 1,
                source_width=image.width,
                y_start=y_start,
                y_end=y_end,
                image=strip,
            )
        )
    return slices


def slice_image(image: ImageBuffer, parts: int) -> list[ImageBuffer]:
    """Split ``image`` into at most ``parts`` strips, byte-identical to the source rows."""
    return [item.image for item in slice_regions(image, parts)]


def join_slices(slices: list[ImageBuffer]) -> ImageBuffer:
    """Stack strips vertically; the inverse of :func:`slice_image`."""
    if not slices:
        return ImageBuffer(width=0, height=0, pixels=b"")
    width = slices[0].width
    for strip in slices:
        if strip.width != width:
            raise ValueError(f"strip width {strip.width} does not match {width}")
    return ImageBuffer(
        width=width,
        height=sum(strip.height for strip in slices),
        pixels=b"".join(strip.pixels for strip in slices),
    )
