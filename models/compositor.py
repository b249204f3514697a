# -*- coding: utf-8 -*-
"""
切面像素合成（Model）。
背景灰度 + 阈值化后的统计图颜色，按 alpha 线性混合，输出 (h, w, 4) RGBA uint8。
输出只取决于输入：相同输入总是得到逐字节相同的缓冲区。
"""

from typing import Optional, Sequence, Tuple

import numpy as np

from .app_state import OverlayStyle
from .axis import Axis
from .slicing import PlaneSampler, plane_size
from .volume import Volume

OVERLAY_COLOR = (255, 0, 0)


def _upright_plane(volume: Volume, axis: Axis, index: int) -> np.ndarray:
    # 竖直翻转：行 v 取源行 h-1-v，使上/前端显示在图像上方
    return PlaneSampler(volume, axis, index).plane()[::-1, :]


def overlay_mask(
    raw: np.ndarray, threshold: Optional[float], style: OverlayStyle
) -> np.ndarray:
    """统计图像素是否通过阈值。positive_only 时 raw<=0 一律不通过。"""
    effective = np.abs(raw) if style.use_absolute else raw
    with np.errstate(invalid="ignore"):
        if threshold is None:
            passes = effective > 0
        else:
            passes = effective >= threshold
        if style.positive_only:
            passes &= raw > 0
    return passes


def background_gray(plane: np.ndarray, value_range: Tuple[float, float]) -> np.ndarray:
    lo, hi = value_range
    span = (hi - lo) or 1.0
    with np.errstate(invalid="ignore"):
        g = np.clip((plane.astype(np.float64) - lo) / span, 0.0, 1.0)
    return (np.nan_to_num(g, nan=0.0) * 255).astype(np.uint8)


def composite_plane(
    axis: Axis,
    index: int,
    dims: Sequence[int],
    background: Optional[Volume],
    overlay: Optional[Volume],
    threshold: Optional[float],
    style: OverlayStyle,
    color: Tuple[int, int, int] = OVERLAY_COLOR,
) -> np.ndarray:
    """
    合成一个切面。dims 为画布尺寸（有背景时即背景尺寸）；
    尺寸与画布不一致的体数据不参与合成（背景灰度取 0，统计图忽略）。
    """
    axis = Axis(axis)
    dims = tuple(int(n) for n in dims)
    w, h = plane_size(axis, dims)
    rgba = np.zeros((h, w, 4), dtype=np.uint8)
    rgba[..., 3] = 255

    if background is not None and background.dims == dims:
        gray = background_gray(_upright_plane(background, axis, index), background.value_range)
        rgba[..., 0] = gray
        rgba[..., 1] = gray
        rgba[..., 2] = gray

    if overlay is not None and overlay.dims == dims:
        raw = _upright_plane(overlay, axis, index)
        passes = overlay_mask(raw, threshold, style)
        if passes.any():
            alpha = max(0.0, min(1.0, float(style.alpha)))
            rgb = rgba[..., :3]
            blended = (1.0 - alpha) * rgb[passes] + alpha * np.asarray(color, dtype=np.float64)
            rgb[passes] = blended.astype(np.uint8)
    return rgba
