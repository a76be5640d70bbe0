"""Character segmentation of a fighting-game frame.

A frame is cropped below the life bars, thresholded into a mask, split into
two characters by region growing, and segmented with per-character colour
histograms that are learned while the characters stand apart.

Colour histograms are dictionaries mapping ``(r, g, b)`` tuples to
``(count, total)`` pairs: how often a pixel of that colour belonged to the
character, out of how often the colour was seen.
"""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field

import numpy as np

from dojo_env.imaging import dilate, luma_to_rgb, to_luma

CROP_X = 0
CROP_Y = 100
CROP_WIDTH = 368
CROP_HEIGHT = 480

RED = (255, 0, 0)
GREEN = (0, 255, 0)
BLUE = (0, 0, 255)
PURPLE = (255, 0, 255)

_NEIGHBOURS = (
    (-1, -1),
    (0, -1),
    (1, -1),
    (-1, 0),
    (1, 0),
    (-1, 1),
    (0, 1),
    (1, 1),
)


def _empty_rgb() -> np.ndarray:
    return np.zeros((0, 0, 3), dtype=np.uint8)


@dataclass(eq=False)
class FrameAbstraction:
    """A segmented frame together with the two characters' centroids."""

    frame: np.ndarray
    char1_centroid: tuple[int, int]
    char2_centroid: tuple[int, int]


@dataclass(eq=False)
class VisionStages:
    """Intermediate images of the segmentation pipeline, for display."""

    cropped_frame: np.ndarray = field(default_factory=_empty_rgb)
    contrast_frame: np.ndarray = field(default_factory=_empty_rgb)
    mask: np.ndarray = field(default_factory=_empty_rgb)
    masked_frame: np.ndarray = field(default_factory=_empty_rgb)
    centroids_hud: np.ndarray = field(default_factory=_empty_rgb)
    chars_hud: np.ndarray = field(default_factory=_empty_rgb)
    segmented_frame: np.ndarray = field(default_factory=_empty_rgb)


@dataclass(eq=False)
class Character:
    """A grown character region: its mask and inclusive bounding box."""

    mask: np.ndarray
    corner1: tuple[int, int]
    corner2: tuple[int, int]


def _encode(img) -> np.ndarray:
    rgb = np.asarray(img, dtype=np.int64)
    return (rgb[..., 0] << 16) | (rgb[..., 1] << 8) | rgb[..., 2]


def _decode(code: int) -> tuple[int, int, int]:
    return (code >> 16) & 0xFF, (code >> 8) & 0xFF, code & 0xFF


def _probability(table, code: int) -> float:
    count, total = table.get(_decode(code), (0, 1))
    if total == 0:
        return math.nan if count == 0 else math.inf
    return count / total


def _draw_frame(img: np.ndarray, corner1, corner2, color) -> None:
    x1, y1 = corner1
    x2, y2 = corner2
    if x2 > x1:
        img[y1, x1:x2] = color
        img[y2, x1:x2] = color
    if y2 > y1:
        img[y1:y2, x1] = color
        img[y1:y2, x2] = color


def find_corners(mask) -> tuple[tuple[int, int], tuple[int, int]]:
    """Bounding box (inclusive) of the non-zero pixels of ``mask``.

    An empty mask gives ``((width, height), (0, 0))``.
    """
    src = np.asarray(mask)
    height, width = src.shape[:2]
    ys, xs = np.nonzero(src)
    if xs.size == 0:
        return (width, height), (0, 0)
    return (int(xs.min()), int(ys.min())), (int(xs.max()), int(ys.max()))


def find_centroid(mask, corner1, corner2) -> tuple[int, int]:
    """Column and row with the most non-zero pixels inside ``[corner1, corner2)``.

    Ties go to the lowest coordinate; an axis without any pixel gives 0.
    """
    src = np.asarray(mask)
    x1, y1 = corner1
    x2, y2 = corner2
    centroid_x = centroid_y = 0
    if x2 <= x1 or y2 <= y1:
        return centroid_x, centroid_y
    region = src[y1:y2, x1:x2] != 0
    column_counts = region.sum(axis=0)
    if column_counts.size and column_counts.max() > 0:
        centroid_x = x1 + int(np.argmax(column_counts))
    row_counts = region.sum(axis=1)
    if row_counts.size and row_counts.max() > 0:
        centroid_y = y1 + int(np.argmax(row_counts))
    return centroid_x, centroid_y


def _find_centroids(mask, corner1, corner2):
    half_x = corner1[0] + (corner2[0] - corner1[0]) // 2
    left = find_centroid(mask, corner1, (half_x, corner2[1]))
    right = find_centroid(mask, (half_x, corner1[1]), corner2)
    return left, right


def _draw_centroids_hud(img, corner1, corner2, centroid1, centroid2) -> None:
    _draw_frame(img, corner1, corner2, GREEN)
    x1, y1 = corner1
    x2, y2 = corner2
    if x2 > x1:
        img[centroid1[1], x1:x2] = RED
        img[centroid2[1], x1:x2] = BLUE
    if y2 > y1:
        img[y1:y2, centroid1[0]] = RED
        img[y1:y2, centroid2[0]] = BLUE


def grow_region(mask, centroid, corner1, corner2) -> Character:
    """Flood-fill the 8-connected foreground reachable from ``centroid``.

    Neighbours are only taken inside ``[corner1, corner2)``. The seed itself
    is always part of the region.
    """
    src = np.asarray(mask)
    height, width = src.shape[:2]
    mask_out = np.zeros((height, width), dtype=np.uint8)
    region_corner1 = (max(width - 1, 0), max(height - 1, 0))
    region_corner2 = (0, 0)
    if src.size == 0:
        return Character(mask_out, region_corner1, region_corner2)

    foreground = (src > 0).tolist()
    x_lo, y_lo = corner1
    x_hi, y_hi = corner2
    visited: set[tuple[int, int]] = set()
    reached: list[tuple[int, int]] = []
    queue = deque([(int(centroid[0]), int(centroid[1]))])
    while queue:
        x, y = queue.popleft()
        reached.append((x, y))
        for dx, dy in _NEIGHBOURS:
            nx, ny = x + dx, y + dy
            if not (x_lo <= nx < x_hi and y_lo <= ny < y_hi):
                continue
            if (nx, ny) in visited or not foreground[ny][nx]:
                continue
            visited.add((nx, ny))
            queue.append((nx, ny))

    xs = [x for x, _ in reached]
    ys = [y for _, y in reached]
    mask_out[ys, xs] = 255
    region_corner1 = (min(region_corner1[0], min(xs)), min(region_corner1[1], min(ys)))
    region_corner2 = (max(region_corner2[0], max(xs)), max(region_corner2[1], max(ys)))
    return Character(mask_out, region_corner1, region_corner2)


def _swap_if_needed(char1, char2, char1_probability, char2_probability, frame):
    colors = _encode(frame)[char1.mask > 0]
    codes, counts = np.unique(colors, return_counts=True)
    count1 = count2 = 0
    for code, n in zip(codes.tolist(), counts.tolist()):
        prob1 = _probability(char1_probability, code)
        prob2 = _probability(char2_probability, code)
        if prob1 > prob2:
            count1 += n
        if prob2 > prob1:
            count2 += n
    if count2 > count1:
        return char2, char1
    return char1, char2


def _merge_chars_masks(mask1, mask2) -> np.ndarray:
    return np.where((mask1 > 0) | (mask2 > 0), 255, 0).astype(np.uint8)


def _enclose(char1: Character, char2: Character):
    return (
        (min(char1.corner1[0], char2.corner1[0]), min(char1.corner1[1], char2.corner1[1])),
        (max(char1.corner2[0], char2.corner2[0]), max(char1.corner2[1], char2.corner2[1])),
    )


def _draw_framed_disjoint_chars(char1: Character, char2: Character) -> np.ndarray:
    img = np.zeros(char1.mask.shape + (3,), dtype=np.uint8)
    img[char1.mask > 0] = RED
    _draw_frame(img, char1.corner1, char1.corner2, RED)
    img[char2.mask > 0] = BLUE
    _draw_frame(img, char2.corner1, char2.corner2, BLUE)
    return img


def _draw_framed_overlapped_chars(char1: Character, char2: Character) -> np.ndarray:
    img = np.zeros(char1.mask.shape + (3,), dtype=np.uint8)
    (x1, y1), (x2, y2) = corner1, corner2 = _enclose(char1, char2)
    either = (char1.mask[y1:y2, x1:x2] > 0) | (char2.mask[y1:y2, x1:x2] > 0)
    img[y1:y2, x1:x2][either] = PURPLE
    _draw_frame(img, corner1, corner2, PURPLE)
    return img


def _update_probabilities(char: Character, img, table) -> None:
    codes = _encode(img).ravel()
    hits = (char.mask > 0).ravel()
    unique, inverse, totals = np.unique(codes, return_inverse=True, return_counts=True)
    inverse = inverse.ravel()
    hit_counts = np.bincount(inverse[hits], minlength=unique.size)
    for code, hit, total in zip(unique.tolist(), hit_counts.tolist(), totals.tolist()):
        key = _decode(code)
        count, seen = table.get(key, (0, 0))
        table[key] = (count + int(hit), seen + int(total))


def _segment_by_probability(mask, corner1, corner2, img, table, threshold) -> np.ndarray:
    height, width = np.asarray(img).shape[:2]
    out = np.zeros((height, width), dtype=np.uint8)
    x1, y1 = corner1
    x2, y2 = corner2
    if x2 <= x1 or y2 <= y1:
        return out
    region_mask = mask[y1:y2, x1:x2] > 0
    colors = _encode(img[y1:y2, x1:x2])[region_mask]
    codes, inverse = np.unique(colors, return_inverse=True)
    probs = np.array([_probability(table, code) for code in codes.tolist()], dtype=float)
    selected = np.zeros_like(region_mask)
    selected[region_mask] = probs[inverse.ravel()] > threshold
    out[y1:y2, x1:x2][selected] = 255
    return out


def _merge_segmented_chars(segmented1, segmented2, char1, char2) -> np.ndarray:
    merged = np.zeros(segmented1.shape + (3,), dtype=np.uint8)
    (x1, y1), (x2, y2) = _enclose(char1, char2)
    first = segmented1[y1:y2, x1:x2] > 0
    second = segmented2[y1:y2, x1:x2] > 0
    region = merged[y1:y2, x1:x2]
    region[first & second] = PURPLE
    region[first & ~second] = RED
    region[second & ~first] = BLUE
    return merged


def get_frame_abstraction(
    frame,
    red_thresholds,
    green_thresholds,
    blue_thresholds,
    dilate_k,
    char1_pixel_probability,
    char2_pixel_probability,
    char1_probability_threshold,
    char2_probability_threshold,
    char1_dilate_k,
    char2_dilate_k,
) -> tuple[FrameAbstraction, VisionStages]:
    """Segment both characters of ``frame``.

    The colour histograms are updated in place whenever the two characters
    are apart; when they overlap, both are segmented from the merged region.
    """
    from dojo_env.imaging import apply_thresholds

    src = np.asarray(frame, dtype=np.uint8)
    cropped_frame = src[CROP_Y:CROP_Y + CROP_HEIGHT, CROP_X:CROP_X + CROP_WIDTH].copy()

    contrast_frame = apply_thresholds(
        cropped_frame, red_thresholds, green_thresholds, blue_thresholds
    )

    mask = dilate(to_luma(contrast_frame), dilate_k)

    multiplier = mask.astype(np.float32) / 255.0
    masked_frame = (cropped_frame.astype(np.float32) * multiplier[:, :, np.newaxis]).astype(
        np.uint8
    )

    corner1, corner2 = find_corners(mask)
    centroid1, centroid2 = _find_centroids(mask, corner1, corner2)
    centroids_hud = luma_to_rgb(mask)
    _draw_centroids_hud(centroids_hud, corner1, corner2, centroid1, centroid2)

    char1 = grow_region(mask, centroid1, corner1, corner2)
    char2 = grow_region(mask, centroid2, corner1, corner2)

    disjoint = (
        char1.corner2[0] < char2.corner1[0]
        or char1.corner1[0] > char2.corner2[0]
        or char1.corner2[1] < char2.corner1[1]
        or char1.corner1[1] > char2.corner2[1]
    )

    if disjoint:
        char1, char2 = _swap_if_needed(
            char1, char2, char1_pixel_probability, char2_pixel_probability, cropped_frame
        )
        chars_hud = _draw_framed_disjoint_chars(char1, char2)
        _update_probabilities(char1, cropped_frame, char1_pixel_probability)
        _update_probabilities(char2, cropped_frame, char2_pixel_probability)
        segmented1 = _segment_by_probability(
            char1.mask, char1.corner1, char1.corner2, cropped_frame,
            char1_pixel_probability, char1_probability_threshold,
        )
        segmented2 = _segment_by_probability(
            char2.mask, char2.corner1, char2.corner2, cropped_frame,
            char2_pixel_probability, char2_probability_threshold,
        )
    else:
        chars_hud = _draw_framed_overlapped_chars(char1, char2)
        merged = _merge_chars_masks(char1.mask, char2.mask)
        enclosed1, enclosed2 = _enclose(char1, char2)
        segmented1 = _segment_by_probability(
            merged, enclosed1, enclosed2, cropped_frame,
            char1_pixel_probability, char1_probability_threshold,
        )
        segmented2 = _segment_by_probability(
            merged, enclosed1, enclosed2, cropped_frame,
            char2_pixel_probability, char2_probability_threshold,
        )

    segmented1 = dilate(segmented1, char1_dilate_k)
    segmented2 = dilate(segmented2, char2_dilate_k)

    if disjoint:
        char1_centroid = find_centroid(segmented1, char1.corner1, char1.corner2)
        char2_centroid = find_centroid(segmented2, char2.corner1, char2.corner2)
    else:
        char1_centroid = find_centroid(segmented1, corner1, corner2)
        char2_centroid = find_centroid(segmented2, corner1, corner2)

    segmented_frame = _merge_segmented_chars(segmented1, segmented2, char1, char2)

    abstraction = FrameAbstraction(segmented_frame.copy(), char1_centroid, char2_centroid)
    stages = VisionStages(
        cropped_frame=cropped_frame,
        contrast_frame=contrast_frame,
        mask=luma_to_rgb(mask),
        masked_frame=masked_frame,
        centroids_hud=centroids_hud,
        chars_hud=chars_hud,
        segmented_frame=segmented_frame,
    )
    return abstraction, stages