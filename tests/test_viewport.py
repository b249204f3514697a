# -*- coding: utf-8 -*-
"""信箱式缩放、十字线位置与点击反算的一致性。"""

import itertools

import pytest

from models import (
    Axis,
    CursorPosition,
    crosshair_position,
    fit_viewport,
    plane_size,
    screen_to_cursor,
)
from models.viewport import cursor_to_image, screen_to_image

DIMS = (91, 109, 91)
AVAILABLE = [(400, 400), (333, 257), (800, 300), (250, 900), (1, 1)]


def test_fit_viewport_letterboxes_and_centres():
    viewport = fit_viewport(91, 109, 400, 400)
    assert viewport.draw_width == 334
    assert viewport.draw_height == 400
    assert viewport.offset_x == 33
    assert viewport.offset_y == 0


def test_missing_height_follows_plane_aspect():
    viewport = fit_viewport(10, 20, 100, None)
    assert viewport.avail_height == 200
    assert (viewport.draw_width, viewport.draw_height) == (100, 200)
    assert (viewport.offset_x, viewport.offset_y) == (0, 0)
    assert fit_viewport(10, 20, 100, 0).avail_height == 200


def test_click_in_letterbox_is_rejected():
    viewport = fit_viewport(91, 109, 400, 400)
    assert screen_to_image(viewport, 10, 200) is None
    assert screen_to_image(viewport, 390, 200) is None
    cursor = CursorPosition(1, 2, 3)
    assert screen_to_cursor(viewport, Axis.Z, cursor, DIMS, 10, 200) is None


@pytest.mark.parametrize("axis, avail", itertools.product(list(Axis), AVAILABLE))
def test_centre_of_drawn_image_maps_to_centre_pixel(axis, avail):
    w, h = plane_size(axis, DIMS)
    viewport = fit_viewport(w, h, *avail)
    px = viewport.offset_x + viewport.draw_width / 2
    py = viewport.offset_y + viewport.draw_height / 2
    assert screen_to_image(viewport, px, py) == (w // 2, h // 2)


@pytest.mark.parametrize("axis", list(Axis))
def test_crosshair_and_click_agree(axis):
    viewport = fit_viewport(*plane_size(axis, DIMS), 517, 389)
    for cursor in [CursorPosition(0, 0, 0), CursorPosition(45, 54, 45), CursorPosition(90, 108, 90),
                   CursorPosition(13, 77, 61)]:
        sx, sy = crosshair_position(viewport, axis, cursor, DIMS)
        assert viewport.contains(sx, sy)
        assert screen_to_cursor(viewport, axis, cursor, DIMS, sx, sy) == cursor


def test_click_updates_only_in_plane_axes():
    viewport = fit_viewport(91, 109, 91, 109)
    cursor = CursorPosition(10, 20, 30)
    # 轴状位：第 0 列对应 x = 90，第 0 行对应 y = 108
    assert screen_to_cursor(viewport, Axis.Z, cursor, DIMS, 0.5, 0.5) == CursorPosition(90, 108, 30)
    viewport = fit_viewport(109, 91, 109, 91)
    # 矢状位水平轴为 y，不镜像
    assert screen_to_cursor(viewport, Axis.X, cursor, DIMS, 0.5, 90.5) == CursorPosition(10, 0, 0)


def test_cursor_to_image_mirrors_and_flips():
    assert cursor_to_image(Axis.Z, (50, 60, 40), DIMS) == (40, 48)
    assert cursor_to_image(Axis.Y, (50, 60, 40), DIMS) == (40, 50)
    assert cursor_to_image(Axis.X, (50, 60, 40), DIMS) == (60, 50)