# -*- coding: utf-8 -*-
"""
切面 -> 屏幕显示区域的等比缩放（信箱式居中）及其逆变换（Model）。
十字线位置与点击反算共用同一套几何，保证两者对齐。
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from .app_state import CursorPosition
from .axis import Axis
from .coordinates import round_half_up
from .slicing import mirrors_x, plane_size


@dataclass(frozen=True)
class Viewport:
    width: int  # 切面原始宽度 w
    height: int  # 切面原始高度 h
    avail_width: float
    avail_height: float
    scale: float
    draw_width: int
    draw_height: int
    offset_x: int
    offset_y: int

    def contains(self, px: float, py: float) -> bool:
        return (
            self.offset_x <= px <= self.offset_x + self.draw_width
            and self.offset_y <= py <= self.offset_y + self.draw_height
        )


def fit_viewport(
    width: int, height: int, avail_width: float, avail_height: Optional[float] = None
) -> Viewport:
    """
    计算等比缩放与居中偏移。avail_height 未知或 <=0 时按宽度和切面宽高比推算。
    """
    width = max(1, int(width))
    height = max(1, int(height))
    if not avail_height or avail_height <= 0:
        avail_height = max(1, round_half_up(avail_width * height / width))
    scale = max(1e-6, min(avail_width / width, avail_height / height))
    draw_w = max(1, round_half_up(width * scale))
    draw_h = max(1, round_half_up(height * scale))
    return Viewport(
        width=width,
        height=height,
        avail_width=avail_width,
        avail_height=avail_height,
        scale=scale,
        draw_width=draw_w,
        draw_height=draw_h,
        offset_x=math.floor((avail_width - draw_w) / 2),
        offset_y=math.floor((avail_height - draw_h) / 2),
    )


def cursor_to_image(
    axis: Axis, cursor: Sequence[int], dims: Sequence[int]
) -> Tuple[int, int]:
    """光标在切面图像中的 (列, 行)，已应用 x 镜像与竖直翻转。"""
    axis = Axis(axis)
    w, h = plane_size(axis, dims)
    u_axis, v_axis = axis.in_plane
    col = max(0, min(w - 1, int(cursor[u_axis])))
    row = max(0, min(h - 1, int(cursor[v_axis])))
    if mirrors_x(axis):
        col = w - 1 - col
    return col, h - 1 - row


def crosshair_position(
    viewport: Viewport, axis: Axis, cursor: Sequence[int], dims: Sequence[int]
) -> Tuple[float, float]:
    """十字线屏幕坐标：落在光标所在像素的中心。"""
    col, row = cursor_to_image(axis, cursor, dims)
    sx = viewport.offset_x + (col + 0.5) * viewport.draw_width / viewport.width
    sy = viewport.offset_y + (row + 0.5) * viewport.draw_height / viewport.height
    return sx, sy


def screen_to_image(viewport: Viewport, px: float, py: float) -> Optional[Tuple[int, int]]:
    """屏幕坐标 -> 切面图像 (列, 行)；落在信箱留白区时返回 None。"""
    if not viewport.contains(px, py):
        return None
    col = math.floor((px - viewport.offset_x) * viewport.width / viewport.draw_width)
    row = math.floor((py - viewport.offset_y) * viewport.height / viewport.draw_height)
    return min(col, viewport.width - 1), min(row, viewport.height - 1)


def image_to_cursor(
    axis: Axis, cursor: CursorPosition, col: int, row: int, dims: Sequence[int]
) -> CursorPosition:
    """撤销竖直翻转与 x 镜像，只更新切面内的两个轴，第三个轴保持不变。"""
    axis = Axis(axis)
    w, h = plane_size(axis, dims)
    u = w - 1 - col if mirrors_x(axis) else col
    v = h - 1 - row
    u_axis, v_axis = axis.in_plane
    proposed = CursorPosition(*cursor).with_axis(u_axis, u).with_axis(v_axis, v)
    return proposed.clamped(dims)


def screen_to_cursor(
    viewport: Viewport,
    axis: Axis,
    cursor: CursorPosition,
    dims: Sequence[int],
    px: float,
    py: float,
) -> Optional[CursorPosition]:
    hit = screen_to_image(viewport, px, py)
    if hit is None:
        return None
    return image_to_cursor(axis, cursor, hit[0], hit[1], dims)
