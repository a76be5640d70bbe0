import numpy as np
import pytest

from dojo_env.imaging import (
    LifeInfo,
    add_to_trace,
    apply_thresholds,
    compute_mse,
    dilate,
    draw_border,
    draw_centroid,
    draw_x_limits,
    enclose_with_q,
    get_life_info,
    get_x_limits,
    luma_to_rgb,
    to_luma,
    visualize_life_bars,
)


def _frame_with_bars(value1, value2, height=60, width=368):
    frame = np.zeros((height, width, 3), dtype=np.uint8)
    frame[54, 12:164] = value1
    frame[54, 204:356] = value2
    return frame


def test_life_info_defaults():
    info = LifeInfo()
    assert info.life == 1.0
    assert info.damage == 0.0


@pytest.mark.parametrize("value", [0, 17, 128, 200, 255])
def test_to_luma_of_grey_is_identity(value):
    img = np.full((2, 3, 3), value, dtype=np.uint8)
    luma = to_luma(img)
    assert luma.shape == (2, 3)
    assert luma.tolist() == [[value, value, value], [value, value, value]]


def test_to_luma_weights_green_most():
    img = np.array([[[255, 0, 0], [0, 255, 0], [0, 0, 255]]], dtype=np.uint8)
    luma = to_luma(img)[0]
    assert luma[1] > luma[0] > luma[2]


def test_luma_to_rgb_round_trip():
    gray = np.arange(12, dtype=np.uint8).reshape(3, 4)
    rgb = luma_to_rgb(gray)
    assert rgb.shape == (3, 4, 3)
    assert np.array_equal(to_luma(rgb), gray)


def test_dilate_zero_binarizes():
    mask = np.zeros((5, 5), dtype=np.uint8)
    mask[2, 2] = 7
    out = dilate(mask, 0)
    assert out[2, 2] == 255
    assert np.count_nonzero(out) == 1


def test_dilate_uses_l1_ball():
    mask = np.zeros((9, 9), dtype=np.uint8)
    mask[4, 4] = 255
    one = dilate(mask, 1)
    two = dilate(mask, 2)
    assert one[3, 4] == 255 and one[4, 5] == 255
    assert one[3, 3] == 0
    assert two[3, 3] == 255
    assert two[4, 6] == 255
    assert two[2, 3] == 0
    assert np.all(two[one == 255] == 255)


def test_dilate_empty_stays_empty():
    mask = np.zeros((4, 4), dtype=np.uint8)
    assert np.count_nonzero(dilate(mask, 3)) == 0


def test_compute_mse_identical_is_zero():
    img = np.random.default_rng(1).integers(0, 256, (6, 5, 3), dtype=np.uint8)
    assert compute_mse(img, img.copy()) == 0.0


def test_compute_mse_is_symmetric():
    rng = np.random.default_rng(2)
    a = rng.integers(0, 256, (4, 4, 3), dtype=np.uint8)
    b = rng.integers(0, 256, (4, 4, 3), dtype=np.uint8)
    assert compute_mse(a, b) == compute_mse(b, a)
    assert compute_mse(a, b) > 0


def test_compute_mse_full_contrast():
    black = np.zeros((2, 2, 3), dtype=np.uint8)
    white = np.full((2, 2, 3), 255, dtype=np.uint8)
    assert compute_mse(black, white) == 255.0 * 255.0


def test_compute_mse_rejects_different_shapes():
    with pytest.raises(ValueError):
        compute_mse(np.zeros((2, 2, 3), np.uint8), np.zeros((3, 2, 3), np.uint8))


def test_apply_thresholds_keeps_outside_band_and_clears_last_column():
    img = np.zeros((2, 3, 3), dtype=np.uint8)
    img[:, :] = (10, 100, 250)
    out = apply_thresholds(img, (50, 200), (50, 200), (50, 200))
    assert tuple(out[0, 0]) == (10, 0, 250)
    assert tuple(out[1, 1]) == (10, 0, 250)
    assert np.all(out[:, -1] == 0)


def test_apply_thresholds_inclusive_bounds():
    img = np.full((1, 2, 3), 50, dtype=np.uint8)
    out = apply_thresholds(img, (50, 60), (40, 49), (51, 60))
    assert tuple(out[0, 0]) == (0, 50, 50)


def test_get_life_info_full_and_empty():
    p1, p2 = get_life_info(_frame_with_bars(150, 0))
    assert p1 == LifeInfo(life=1.0, damage=0.0)
    assert p2 == LifeInfo(life=0.0, damage=0.0)


def test_get_life_info_damage():
    p1, p2 = get_life_info(_frame_with_bars(255, 150))
    assert p1.damage == 1.0 and p1.life == 0.0
    assert p2.life == 1.0


def test_get_life_info_half_bar():
    frame = _frame_with_bars(0, 0)
    frame[54, 12:88] = 150
    p1, _ = get_life_info(frame)
    assert p1.life == 0.5


def test_visualize_life_bars_colours():
    out = visualize_life_bars(_frame_with_bars(150, 255))
    assert tuple(out[54, 20]) == (0, 255, 0)
    assert tuple(out[51, 20]) == (0, 255, 0)
    assert tuple(out[54, 300]) == (255, 0, 0)
    assert tuple(out[54, 180]) == (0, 0, 0)
    assert tuple(out[57, 20]) == (0, 0, 0)


def test_draw_border_paints_only_edges():
    img = np.zeros((4, 5, 3), dtype=np.uint8)
    draw_border(img, (128, 0, 0))
    assert tuple(img[0, 2]) == (128, 0, 0)
    assert tuple(img[3, 4]) == (128, 0, 0)
    assert tuple(img[2, 0]) == (128, 0, 0)
    assert np.all(img[1:3, 1:4] == 0)


def test_enclose_with_q():
    zero = np.zeros((3, 3, 3), dtype=np.uint8)
    enclose_with_q(zero, 0.0)
    assert np.count_nonzero(zero) == 0

    positive = np.zeros((3, 3, 3), dtype=np.uint8)
    enclose_with_q(positive, 1.0)
    assert tuple(positive[0, 0]) == (0, 255, 0)

    negative = np.zeros((3, 3, 3), dtype=np.uint8)
    enclose_with_q(negative, -1.0)
    assert tuple(negative[2, 1]) == (255, 0, 0)


def test_get_x_limits():
    img = np.zeros((4, 10, 3), dtype=np.uint8)
    assert get_x_limits(img) == (10, 0)
    img[1, 3] = (0, 0, 1)
    img[2, 7] = (5, 0, 0)
    assert get_x_limits(img) == (3, 7)


def test_draw_x_limits_round_trip():
    img = np.zeros((4, 10, 3), dtype=np.uint8)
    draw_x_limits(img, (2, 6))
    assert tuple(img[3, 2]) == (0, 128, 0)
    assert get_x_limits(img) == (2, 6)


def test_add_to_trace_copies_and_fades():
    img = np.zeros((2, 2, 3), dtype=np.uint8)
    img[0, 0] = (200, 10, 0)
    trace = np.full((2, 2, 3), 180, dtype=np.uint8)
    out = add_to_trace(img, trace, 1)
    assert tuple(out[0, 0]) == (200, 10, 0)
    assert np.all(out[1, 1] == 0)


def test_add_to_trace_never_brightens():
    rng = np.random.default_rng(3)
    img = np.zeros((5, 5, 3), dtype=np.uint8)
    trace = rng.integers(0, 256, (5, 5, 3), dtype=np.uint8)
    out = add_to_trace(img, trace, 10)
    assert out.shape == (5, 5, 3)
    red_gain = out[:, :, 0].astype(int) - trace[:, :, 0].astype(int)
    blue_gain = out[:, :, 2].astype(int) - trace[:, :, 2].astype(int)
    assert int(red_gain.max()) <= 0
    assert int(blue_gain.max()) <= 0
    assert out[:, :, 1].tolist() == [[0] * 5] * 5


def test_draw_centroid_marks_point_and_square():
    img = np.zeros((40, 40, 3), dtype=np.uint8)
    draw_centroid(img, (20, 20), 10)
    assert tuple(img[20, 20]) == (0, 255, 0)
    assert tuple(img[10, 15]) == (0, 255, 0)
    assert tuple(img[25, 10]) == (0, 255, 0)
    assert tuple(img[15, 15]) == (0, 0, 0)
    assert tuple(img[5, 5]) == (0, 0, 0)
    assert np.all(img[:, :, 0] == 0)


def test_draw_centroid_clips_at_edges():
    img = np.zeros((10, 10, 3), dtype=np.uint8)
    draw_centroid(img, (1, 1), 30)
    assert tuple(img[0, 5]) == (0, 255, 0)
    assert tuple(img[9, 5]) == (0, 255, 0)
    assert tuple(img[5, 9]) == (0, 255, 0)