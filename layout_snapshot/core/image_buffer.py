from __future__ import annotations

from dataclasses import dataclass

CHANNELS = 4


@dataclass(frozen=True)
class ImageBuffer:
    """Decoded RGBA raster, row-major, 8 bits per channel."""

    width: int
    height: int
    pixels: bytes

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            raise ValueError(f"negative image size {self.width}x{self.height}")
        if not isinstance(self.pixels, bytes):
            # bytearray/memoryview input is frozen into an immutable copy.
            object.__setattr__(self, "pixels", bytes(self.pixels))
        expected = self.width * self.height * CHANNELS
        if len(self.pixels) != expected:
            raise ValueError(
                f"pixel buffer holds {len(self.pixels)} bytes, expected {expected} "
                f"for {self.width}x{self.height} RGBA"
            )

    @classmethod
    def blank(cls, width: int, height: int, rgba: tuple[int, int, int, int] = (0, 0, 0, 0)) -> "ImageBuffer":
        return cls(width=width, height=height, pixels=bytes(rgba) * (width * height))

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)

    @property
    def stride(self) -> int:
        return self.width * CHANNELS

    def same_size(self, other: "ImageBuffer") -> bool:
        return self.width == other.width and self.height == other.height

    def rows(self, y_start: int, y_end: int) -> bytes:
        """Return the raw bytes of the half-open row range [y_start, y_end)."""
        if not 0 <= y_start <= y_end <= self.height:
            raise IndexError(f"row range [{y_start}, {y_end}) outside 0..{self.height}")
        return self.pixels[y_start * self.stride : y_end * self.stride]

    def pixel(self, x: int, y: int) -> tuple[int, int, int, int]:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"pixel ({x}, {y}) outside {self.width}x{self.height}")
        offset = (y * self.width + x) * CHANNELS
        r, g, b, a = self.pixels[offset : offset + CHANNELS]
        return (r, g, b, a)
