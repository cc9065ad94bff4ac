"""Per-pixel screenshot comparison.

Colour distance is measured in YIQ space (luma weighted heaviest), with
semi-transparent pixels blended onto white first. A pixel differs when its
squared YIQ delta exceeds ``MAX_YIQ_DELTA * threshold ** 2``.

Repeated renders of the same page often disagree by a pixel or two along
font and shape edges. When ``detect_antialiasing`` is on, a differing
pixel whose 3x3 neighbourhood looks like an anti-aliased edge in either
image is painted ``aa_color`` and left out of the count.

Usage:
    result = diff_images(reference, current, DiffOptions(threshold=0.1))
    if result.diff_pixel_count:
        codec.encode(result.diff_buffer)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from layout_snapshot.core.errors import DimensionMismatch
from layout_snapshot.core.image_buffer import CHANNELS, ImageBuffer

logger = logging.getLogger(__name__)

# Largest possible squared YIQ delta (black against white).
MAX_YIQ_DELTA = 35215.0


@dataclass(frozen=True)
class DiffOptions:
    """Tuning knobs for :func:`diff_images`.

    Parameters
    ----------
    threshold : float
        Matching sensitivity in 0.0..1.0; smaller is stricter. Default 0.1.
    detect_antialiasing : bool
        Exclude pixels that look like anti-aliased edges from the count.
    alpha : float
        Opacity of the reference image shown under the diff. Default 0.1.
    diff_color : tuple[int, int, int]
        Colour for differing pixels.
    aa_color : tuple[int, int, int]
        Colour for pixels classified as anti-aliasing.
    diff_mask : bool
        Render matching pixels fully transparent instead of dimmed.
    """

    threshold: float = 0.1
    detect_antialiasing: bool = True
    alpha: float = 0.1
    diff_color: tuple[int, int, int] = (255, 0, 0)
    aa_color: tuple[int, int, int] = (255, 255, 0)
    diff_mask: bool = False

    def __post_init__(self) -> None:
        if not 0.0 <= self.threshold <= 1.0:
            raise ValueError(f"threshold must be within 0.0..1.0, got {self.threshold}")
        if not 0.0 <= self.alpha <= 1.0:
            raise ValueError(f"alpha must be within 0.0..1.0, got {self.alpha}")

    @property
    def max_delta(self) -> float:
        return MAX_YIQ_DELTA * self.threshold * self.threshold


@dataclass(frozen=True)
class DiffResult:
    diff_pixel_count: int
    diff_buffer: ImageBuffer
    antialiased_pixels: int = 0
    dimensions_match: bool = True

    @property
    def total_pixels(self) -> int:
        return self.diff_buffer.width * self.diff_buffer.height

    @property
    def diff_ratio(self) -> float:
        total = self.total_pixels
        return self.diff_pixel_count / total if total else 0.0


# ─────────────────────────────────────────────
# Colour math
# ─────────────────────────────────────────────


def _blend(channel, alpha):
    return 255.0 + (channel - 255.0) * alpha


def _rgb2y(r, g, b):
    return r * 0.29889531 + g * 0.58662247 + b * 0.11448223


def _rgb2i(r, g, b):
    return r * 0.59597799 - g * 0.27417610 - b * 0.32180189


def _rgb2q(r, g, b):
    return r * 0.21147017 - g * 0.52261711 + b * 0.31114694


def _as_array(image: ImageBuffer) -> np.ndarray:
    return np.frombuffer(image.pixels, dtype=np.uint8).reshape(-1, CHANNELS)


def _blended_rgb(pixels: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    values = pixels.astype(np.float64)
    alpha = values[:, 3] / 255.0
    return (
        _blend(values[:, 0], alpha),
        _blend(values[:, 1], alpha),
        _blend(values[:, 2], alpha),
    )


def color_deltas(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Signed squared YIQ delta for every pixel pair; negative when ``a`` is brighter."""
    r1, g1, b1 = _blended_rgb(a)
    r2, g2, b2 = _blended_rgb(b)
    y1 = _rgb2y(r1, g1, b1)
    y2 = _rgb2y(r2, g2, b2)
    y = y1 - y2
    i = _rgb2i(r1, g1, b1) - _rgb2i(r2, g2, b2)
    q = _rgb2q(r1, g1, b1) - _rgb2q(r2, g2, b2)
    delta = 0.5053 * y * y + 0.299 * i * i + 0.1957 * q * q
    return np.where(y1 > y2, -delta, delta)


def _luma_plane(image: ImageBuffer) -> np.ndarray:
    r, g, b = _blended_rgb(_as_array(image))
    return _rgb2y(r, g, b).reshape(image.height, image.width)


def _packed_plane(image: ImageBuffer) -> np.ndarray:
    # One uint32 per pixel so RGBA equality is a single comparison.
    return np.frombuffer(image.pixels, dtype=np.uint32).reshape(image.height, image.width)


# ─────────────────────────────────────────────
# Anti-aliasing detection
# ─────────────────────────────────────────────

# Neighbour offsets (dx, dy) in scan order: column by column, top to bottom.
_NEIGHBOURS = ((-1, -1), (-1, 0), (-1, 1), (0, -1), (0, 1), (1, -1), (1, 0), (1, 1))

# Candidates processed per batch, bounding the temporary arrays.
_AA_BATCH = 1 << 18


def _edge_counts(xs: np.ndarray, ys: np.ndarray, width: int, height: int) -> np.ndarray:
    # Pixels on the image border start with one "identical" neighbour.
    on_edge = (xs == 0) | (xs == width - 1) | (ys == 0) | (ys == height - 1)
    return on_edge.astype(np.int8)


def _shifted(
    plane: np.ndarray,
    xs: np.ndarray,
    ys: np.ndarray,
    dx: int,
    dy: int,
) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    height, width = plane.shape
    nx = xs + dx
    ny = ys + dy
    inside = (nx >= 0) & (nx < width) & (ny >= 0) & (ny < height)
    values = plane[np.clip(ny, 0, height - 1), np.clip(nx, 0, width - 1)]
    return values, inside, nx, ny


def _many_siblings(packed: np.ndarray, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
    """More than two neighbours identical to the pixel itself (border counts as one)."""
    height, width = packed.shape
    count = _edge_counts(xs, ys, width, height)
    center = packed[ys, xs]
    for dx, dy in _NEIGHBOURS:
        values, inside, _, _ = _shifted(packed, xs, ys, dx, dy)
        count += inside & (values == center)
    return count > 2


def _antialiased(
    luma: np.ndarray,
    packed: np.ndarray,
    other_packed: np.ndarray,
    xs: np.ndarray,
    ys: np.ndarray,
) -> np.ndarray:
    height, width = luma.shape
    zeroes = _edge_counts(xs, ys, width, height)
    center = luma[ys, xs]
    min_delta = np.zeros(xs.shape, dtype=np.float64)
    max_delta = np.zeros(xs.shape, dtype=np.float64)
    min_x = np.zeros_like(xs)
    min_y = np.zeros_like(ys)
    max_x = np.zeros_like(xs)
    max_y = np.zeros_like(ys)

    for dx, dy in _NEIGHBOURS:
        values, inside, nx, ny = _shifted(luma, xs, ys, dx, dy)
        delta = center - values
        zeroes += inside & (delta == 0)
        # Strict comparisons keep the first extreme neighbour in scan order.
        darker = inside & (delta < min_delta)
        min_delta = np.where(darker, delta, min_delta)
        min_x = np.where(darker, nx, min_x)
        min_y = np.where(darker, ny, min_y)
        brighter = inside & (delta > max_delta)
        max_delta = np.where(brighter, delta, max_delta)
        max_x = np.where(brighter, nx, max_x)
        max_y = np.where(brighter, ny, max_y)

    result = np.zeros(xs.shape, dtype=bool)
    edge_like = np.flatnonzero((zeroes <= 2) & (min_delta != 0) & (max_delta != 0))
    if edge_like.size:
        mx, my = min_x[edge_like], min_y[edge_like]
        bx, by = max_x[edge_like], max_y[edge_like]
        result[edge_like] = (
            _many_siblings(packed, mx, my) & _many_siblings(other_packed, mx, my)
        ) | (
            _many_siblings(packed, bx, by) & _many_siblings(other_packed, bx, by)
        )
    return result


def detect_antialiased(a: ImageBuffer, b: ImageBuffer, candidates: np.ndarray) -> np.ndarray:
    """Flag which flat pixel indices in ``candidates`` sit on an anti-aliased edge.

    A pixel qualifies, in either image, when it has both a darker and a
    brighter neighbour and at most two identical ones, and the darkest or
    brightest neighbour lies in a flat region of both images.
    """
    width = a.width
    mask = np.zeros(candidates.size, dtype=bool)
    if not candidates.size:
        return mask
    luma_a, luma_b = _luma_plane(a), _luma_plane(b)
    packed_a, packed_b = _packed_plane(a), _packed_plane(b)
    for start in range(0, candidates.size, _AA_BATCH):
        batch = candidates[start : start + _AA_BATCH].astype(np.int64)
        ys, xs = np.divmod(batch, width)
        mask[start : start + batch.size] = _antialiased(luma_a, packed_a, packed_b, xs, ys) | _antialiased(
            luma_b, packed_b, packed_a, xs, ys
        )
    return mask


# ─────────────────────────────────────────────
# Diff
# ─────────────────────────────────────────────


def _gray_background(pixels: np.ndarray, alpha: float) -> np.ndarray:
    values = pixels.astype(np.float64)
    luma = _rgb2y(values[:, 0], values[:, 1], values[:, 2])
    gray = _blend(luma, alpha * values[:, 3] / 255.0)
    gray = np.clip(np.rint(gray), 0, 255).astype(np.uint8)
    out = np.empty_like(pixels)
    out[:, 0] = gray
    out[:, 1] = gray
    out[:, 2] = gray
    out[:, 3] = 255
    return out


def diff_images(a: ImageBuffer, b: ImageBuffer, options: DiffOptions | None = None) -> DiffResult:
    """Compare ``a`` (reference) against ``b`` (current) pixel by pixel.

    Raises
    ------
    DimensionMismatch
        When the two images are not the same size. No diff is rendered.
    """
    opts = options or DiffOptions()
    if not a.same_size(b):
        raise DimensionMismatch(expected=a.size, actual=b.size)

    width, height = a.size
    pixels_a = _as_array(a)
    pixels_b = _as_array(b)

    if opts.diff_mask:
        output = np.zeros_like(pixels_a)
    else:
        output = _gray_background(pixels_a, opts.alpha)

    if a.pixels == b.pixels:
        return DiffResult(diff_pixel_count=0, diff_buffer=_to_buffer(output, width, height))

    deltas = color_deltas(pixels_a, pixels_b)
    candidates = np.flatnonzero(np.abs(deltas) > opts.max_delta)

    if opts.detect_antialiasing and candidates.size:
        aa_mask = detect_antialiased(a, b, candidates)
        aa_pixels = candidates[aa_mask]
        diff_pixels = candidates[~aa_mask]
    else:
        aa_pixels = candidates[:0]
        diff_pixels = candidates

    if not opts.diff_mask:
        output[aa_pixels] = (*opts.aa_color, 255)
    output[diff_pixels] = (*opts.diff_color, 255)

    logger.debug(
        "Diff %dx%d: %d candidates, %d anti-aliased, %d different (threshold=%.3f)",
        width,
        height,
        candidates.size,
        aa_pixels.size,
        diff_pixels.size,
        opts.threshold,
    )

    return DiffResult(
        diff_pixel_count=int(diff_pixels.size),
        diff_buffer=_to_buffer(output, width, height),
        antialiased_pixels=int(aa_pixels.size),
    )


def _to_buffer(pixels: np.ndarray, width: int, height: int) -> ImageBuffer:
    return ImageBuffer(width=width, height=height, pixels=pixels.tobytes())
