from __future__ import annotations

import math
from dataclasses import dataclass

DEFAULT_SHIFT_TOLERANCE = 12


@dataclass(frozen=True)
class ToleranceVerdict:
    allowed_pixels: int
    actual_pixels: int

    @property
    def passed(self) -> bool:
        return self.actual_pixels <= self.allowed_pixels

    @property
    def excess_pixels(self) -> int:
        return max(0, self.actual_pixels - self.allowed_pixels)

    def to_dict(self) -> dict[str, int | bool]:
        return {
            "allowed_pixels": self.allowed_pixels,
            "actual_pixels": self.actual_pixels,
            "passed": self.passed,
        }


def allowed_pixels(image_width: int, shift_tolerance: float) -> int:
    """Pixel budget for a uniform horizontal shift of ``shift_tolerance`` px per row.

    Scaled by width, not area. Halves round up.
    """
    if image_width < 0:
        raise ValueError(f"image_width must be >= 0, got {image_width}")
    if not math.isfinite(shift_tolerance) or shift_tolerance < 0:
        raise ValueError(f"shift_tolerance must be a finite number >= 0, got {shift_tolerance}")
    return int(math.floor(image_width * shift_tolerance + 0.5))


def evaluate(diff_pixel_count: int, image_width: int, shift_tolerance: float = DEFAULT_SHIFT_TOLERANCE) -> ToleranceVerdict:
    if diff_pixel_count < 0:
        raise ValueError(f"diff_pixel_count must be >= 0, got {diff_pixel_count}")
    return ToleranceVerdict(
        allowed_pixels=allowed_pixels(image_width, shift_tolerance),
        actual_pixels=diff_pixel_count,
    )
