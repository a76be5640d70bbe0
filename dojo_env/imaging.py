"""Pixel-level helpers: luma conversion, morphology, life bars and drawing.

RGB images are ``numpy`` arrays of shape ``(height, width, 3)`` and dtype
``uint8``; grey masks are arrays of shape ``(height, width)``. Pixels are
addressed as ``img[y, x]`` while coordinates passed around as tuples are
``(x, y)``.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

LIFE_BAR_Y = 54
# Life bars are 152 pixels wide
PLAYER_1_LIFE_BAR_X = (12, 164)
PLAYER_2_LIFE_BAR_X = (204, 356)
VISUALIZATION_BAR_HEIGHT = 7

LIFE_TAKEN_COLOR = (0, 0, 255)
LIFE_REMAINING_COLOR = (0, 255, 0)
HIT_DAMAGE_COLOR = (255, 0, 0)
CENTROID_COLOR = (0, 255, 0)
X_LIMITS_COLOR = (0, 128, 0)

_LUMA_WEIGHTS = np.array([2126, 7152, 722], dtype=np.uint32)


@dataclass
class LifeInfo:
    """Fractions of a life bar that are remaining and being lost to a hit."""

    life: float = 1.0
    damage: float = 0.0


def to_luma(img) -> np.ndarray:
    """Convert an RGB image to an 8-bit luma image (sRGB weights, truncated)."""
    rgb = np.asarray(img, dtype=np.uint32)
    return ((rgb @ _LUMA_WEIGHTS) // 10000).astype(np.uint8)


def luma_to_rgb(mask) -> np.ndarray:
    """Replicate a grey image into three identical channels."""
    gray = np.asarray(mask, dtype=np.uint8)
    return np.repeat(gray[:, :, np.newaxis], 3, axis=2)


def dilate(mask, k: int) -> np.ndarray:
    """Binary dilation with an L1 ball of radius ``k``.

    Every pixel within L1 distance ``k`` of a non-zero pixel becomes 255,
    everything else 0.
    """
    grown = np.asarray(mask) != 0
    height, width = grown.shape
    for _ in range(min(int(k), height + width)):
        step = grown.copy()
        step[1:, :] |= grown[:-1, :]
        step[:-1, :] |= grown[1:, :]
        step[:, 1:] |= grown[:, :-1]
        step[:, :-1] |= grown[:, 1:]
        if np.array_equal(step, grown):
            break
        grown = step
    return np.where(grown, 255, 0).astype(np.uint8)


def compute_mse(img1, img2) -> float:
    """Mean squared error over all pixels and channels of two RGB images."""
    a = np.asarray(img1)
    b = np.asarray(img2)
    if a.shape != b.shape:
        raise ValueError("Images must have the same dimensions for MSE calculation")
    if a.size == 0:
        return float("nan")
    diff = a.astype(np.int64) - b.astype(np.int64)
    return float(np.sum(diff * diff)) / a.size


def apply_thresholds(img, red_thresholds, green_thresholds, blue_thresholds) -> np.ndarray:
    """Zero every channel value that lies inside its inclusive threshold band.

    The rightmost column is always cleared, to drop stray bright dots there.
    """
    src = np.asarray(img, dtype=np.uint8)
    out = np.zeros_like(src)
    usable = max(src.shape[1] - 1, 0)
    region = src[:, :usable, :]
    for channel, (low, high) in enumerate((red_thresholds, green_thresholds, blue_thresholds)):
        values = region[:, :, channel]
        keep = (values < low) | (values > high)
        out[:, :usable, channel] = np.where(keep, values, 0)
    return out


def _life_bar_row(gray, x_limits) -> np.ndarray:
    start, end = x_limits
    return gray[LIFE_BAR_Y, start:end]


def _life_info_for_player(gray, x_limits) -> LifeInfo:
    row = _life_bar_row(gray, x_limits)
    total = x_limits[1] - x_limits[0]
    life_count = int(np.count_nonzero((row > 100) & (row <= 200)))
    damage_count = int(np.count_nonzero(row > 200))
    return LifeInfo(life=life_count / total, damage=damage_count / total)


def get_life_info(img) -> tuple[LifeInfo, LifeInfo]:
    """Read both players' life bars from a full frame."""
    gray = to_luma(img)
    return (
        _life_info_for_player(gray, PLAYER_1_LIFE_BAR_X),
        _life_info_for_player(gray, PLAYER_2_LIFE_BAR_X),
    )


def _draw_visualized_life_bar(gray, color_img, x_limits) -> None:
    start, end = x_limits
    row = _life_bar_row(gray, x_limits)
    colors = np.empty((row.shape[0], 3), dtype=np.uint8)
    colors[row <= 100] = LIFE_TAKEN_COLOR
    colors[(row > 100) & (row <= 200)] = LIFE_REMAINING_COLOR
    colors[row > 200] = HIT_DAMAGE_COLOR
    half = VISUALIZATION_BAR_HEIGHT // 2
    color_img[LIFE_BAR_Y - half:LIFE_BAR_Y + half, start:end] = colors[np.newaxis, :, :]


def visualize_life_bars(img) -> np.ndarray:
    """Return a greyscale copy of the frame with both life bars colour-coded."""
    gray = to_luma(img)
    color_img = luma_to_rgb(gray)
    _draw_visualized_life_bar(gray, color_img, PLAYER_1_LIFE_BAR_X)
    _draw_visualized_life_bar(gray, color_img, PLAYER_2_LIFE_BAR_X)
    return color_img


def draw_border(img: np.ndarray, color) -> None:
    """Paint the outermost ring of pixels of ``img`` in place."""
    img[0, :] = color
    img[-1, :] = color
    img[:, 0] = color
    img[:, -1] = color


def enclose_with_q(img: np.ndarray, q: float) -> None:
    """Frame ``img`` in green for positive ``q`` and red for negative ``q``."""
    if q == 0.0:
        return
    intensity = int(min(max(abs(q) * 255.0, 0.0), 255.0))
    color = (0, intensity, 0) if q > 0.0 else (intensity, 0, 0)
    draw_border(img, color)


def get_x_limits(img) -> tuple[int, int]:
    """Leftmost and rightmost columns holding a non-black pixel.

    A fully black image gives ``(width, 0)``.
    """
    src = np.asarray(img)
    width = src.shape[1]
    columns = np.flatnonzero(np.any(src != 0, axis=(0, 2)))
    if columns.size == 0:
        return width, 0
    return int(columns[0]), int(columns[-1])


def draw_x_limits(img: np.ndarray, x_limits) -> None:
    """Draw two vertical lines at the given columns, in place."""
    left, right = x_limits
    img[:, left] = X_LIMITS_COLOR
    img[:, right] = X_LIMITS_COLOR


def add_to_trace(img, trace, amount: int) -> np.ndarray:
    """Overlay ``img`` on a fading trace of earlier frames.

    Pixels with red or blue in ``img`` are copied; elsewhere the trace's red
    and blue fade by ``255 / amount`` and green is dropped.
    """
    src = np.asarray(img, dtype=np.uint8)
    old = np.asarray(trace, dtype=np.int64)
    intensity_lost = int(255.0 / amount) if amount else np.iinfo(np.int32).max
    faded = np.zeros_like(src)
    faded[:, :, 0] = np.maximum(old[:, :, 0] - intensity_lost, 0)
    faded[:, :, 2] = np.maximum(old[:, :, 2] - intensity_lost, 0)
    present = (src[:, :, 0] > 0) | (src[:, :, 2] > 0)
    return np.where(present[:, :, np.newaxis], src, faded).astype(np.uint8)


def _square_corners(img, centroid, radius):
    height, width = img.shape[:2]
    cx, cy = centroid
    corner1 = (max(cx - radius, 0), max(cy - radius, 0))
    corner2 = (min(cx + radius, width - 1), min(cy + radius, height - 1))
    return corner1, corner2


def _draw_filled_square(img, centroid, radius) -> None:
    (x1, y1), (x2, y2) = _square_corners(img, centroid, radius)
    if x2 > x1 and y2 > y1:
        img[y1:y2, x1:x2] = CENTROID_COLOR


def _draw_square(img, centroid, radius) -> None:
    (x1, y1), (x2, y2) = _square_corners(img, centroid, radius)
    if x2 > x1:
        img[y1, x1:x2] = CENTROID_COLOR
        img[y2, x1:x2] = CENTROID_COLOR
    if y2 > y1:
        img[y1:y2, x1] = CENTROID_COLOR
        img[y1:y2, x2] = CENTROID_COLOR


def draw_centroid(img: np.ndarray, centroid, radius: int) -> None:
    """Mark ``centroid`` with a small dot and a square of half-side ``radius``."""
    _draw_filled_square(img, centroid, 2)
    _draw_square(img, centroid, radius)