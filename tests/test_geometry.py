from __future__ import annotations

import math

import pytest

from image_studio.geometry import (
    fit_scale,
    handle_compensation,
    normalize_rotation,
    rotated_bounding_box,
    screen_delta_to_image,
)
from image_studio.models import ViewTransform


def test_bounding_box_right_angles() -> None:
    assert rotated_bounding_box(100, 50, 0) == pytest.approx((100, 50))
    assert rotated_bounding_box(100, 50, 90) == pytest.approx((50, 100))
    assert rotated_bounding_box(100, 50, 180) == pytest.approx((100, 50))
    # A full turn is the identity box, up to float noise.
    assert rotated_bounding_box(100, 50, 360) == pytest.approx((100, 50))


def test_bounding_box_45_degrees() -> None:
    w, h = rotated_bounding_box(100, 50, 45)
    expected = 150 * math.sqrt(2) / 2
    assert w == pytest.approx(expected)
    assert h == pytest.approx(expected)


def test_delta_identity() -> None:
    assert screen_delta_to_image(10, -4, ViewTransform()) == pytest.approx((10, -4))


def test_delta_undoes_scale() -> None:
    view = ViewTransform(fit_scale=0.5)
    assert screen_delta_to_image(10, 5, view) == pytest.approx((20, 10))

    view = ViewTransform(fit_scale=0.5, user_scale=2.0)
    assert screen_delta_to_image(10, 5, view) == pytest.approx((10, 5))


def test_delta_undoes_rotation() -> None:
    # Rotated 90 clockwise: moving right on screen walks toward smaller image y.
    view = ViewTransform(rotation_deg=90)
    dx, dy = screen_delta_to_image(10, 0, view)
    assert dx == pytest.approx(0, abs=1e-9)
    assert dy == pytest.approx(-10)


def test_delta_undoes_rotation_then_flip() -> None:
    view = ViewTransform(rotation_deg=90, flip_x=True)
    assert screen_delta_to_image(10, 0, view) == pytest.approx((0, -10), abs=1e-9)
    assert screen_delta_to_image(0, 10, view) == pytest.approx((-10, 0), abs=1e-9)


def test_delta_undoes_flip_per_axis() -> None:
    assert screen_delta_to_image(10, 5, ViewTransform(flip_x=True)) == pytest.approx((-10, 5))
    assert screen_delta_to_image(10, 5, ViewTransform(flip_y=True)) == pytest.approx((10, -5))


def test_delta_degenerate_scale_falls_back() -> None:
    view = ViewTransform(fit_scale=0.0)
    assert screen_delta_to_image(3, 4, view) == pytest.approx((3, 4))


def test_handle_compensation() -> None:
    assert handle_compensation(ViewTransform(fit_scale=0.5)) == pytest.approx((2, 2))
    assert handle_compensation(ViewTransform(fit_scale=0.5, flip_x=True)) == pytest.approx((-2, 2))
    assert handle_compensation(ViewTransform(fit_scale=0.0, flip_y=True)) == pytest.approx((1, -1))


def test_fit_scale_uses_padding_and_rotation() -> None:
    assert fit_scale(1000, 800, 2000, 1000, 0) == pytest.approx(920 / 2000)
    assert fit_scale(1000, 800, 2000, 1000, 90) == pytest.approx(720 / 2000)
    assert fit_scale(1080, 1080, 2000, 2000, 0, padding=80) == pytest.approx(0.5)


def test_fit_scale_degenerate_inputs() -> None:
    assert fit_scale(1000, 800, 0, 0, 0) == 1.0
    # Zero-sized viewport still yields a positive scale from the minimum area.
    assert fit_scale(0, 0, 100, 100, 0) == pytest.approx(0.1)


@pytest.mark.parametrize(
    ("deg", "expected"),
    [(0, 0), (90, 90), (360, 0), (450, 90), (-90, 270), (-360, 0), (-0.0, 0)],
)
def test_normalize_rotation(deg: float, expected: float) -> None:
    assert normalize_rotation(deg) == pytest.approx(expected)
