# -*- coding: utf-8 -*-
"""
体素索引 <-> 毫米坐标换算（Model）。
加载体数据时由 select_mapper 选定一种变换并固定下来，之后所有调用方统一使用：
- CanonicalAtlasMapper：标准 MNI152 2mm 网格 (91x109x91)，使用公开的精确仿射
- GenericMapper：其它网格，以中间体素为原点、按体素间距线性换算
"""

import math
from typing import Sequence, Tuple

from .axis import Axis

# 通用换算的显示方向约定：x 取反（右半球显示在屏幕右侧），y/z 为正
AXIS_SIGN = (-1, 1, 1)

ATLAS_DIMS = (91, 109, 91)
ATLAS_SPACING_MM = 2.0
ATLAS_TOLERANCE = 1e-3
# MNI152 2mm: x = -2*i + 90; y = 2*j - 126; z = 2*k - 72
ATLAS_ORIGIN_MM = (90.0, -126.0, -72.0)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class CoordinateMapper:
    """索引/毫米换算基类，dims 与 spacing 在构造时固定。"""

    name = "base"

    def __init__(self, dims: Sequence[int], spacing: Sequence[float]):
        self.dims: Tuple[int, int, int] = tuple(int(n) for n in dims)
        self.spacing: Tuple[float, float, float] = tuple(float(s) for s in spacing)

    def _raw_index(self, mm: float, axis: Axis) -> float:
        raise NotImplementedError

    def _raw_mm(self, index: int, axis: Axis) -> float:
        raise NotImplementedError

    def to_mm(self, index: int, axis: Axis) -> float:
        """索引 -> 有符号毫米坐标。"""
        # + 0.0 把 -0.0 规整为 0.0
        return self._raw_mm(int(index), Axis(axis)) + 0.0

    def to_index(self, mm: float, axis: Axis) -> int:
        """毫米坐标 -> 最近的索引，钳制到 [0, n-1]。"""
        axis = Axis(axis)
        index = round_half_up(self._raw_index(float(mm), axis))
        return max(0, min(self.dims[axis] - 1, index))

    def to_mm_triplet(self, indices: Sequence[int]) -> Tuple[float, float, float]:
        return tuple(self.to_mm(i, axis) for i, axis in zip(indices, Axis))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(dims={self.dims}, spacing={self.spacing})"


class CanonicalAtlasMapper(CoordinateMapper):
    name = "mni152_2mm"

    @staticmethod
    def detects(dims: Sequence[int], spacing: Sequence[float]) -> bool:
        if tuple(int(n) for n in dims) != ATLAS_DIMS:
            return False
        return all(abs(float(s) - ATLAS_SPACING_MM) < ATLAS_TOLERANCE for s in spacing)

    def _raw_mm(self, index: int, axis: Axis) -> float:
        origin = ATLAS_ORIGIN_MM[axis]
        if axis is Axis.X:
            return -ATLAS_SPACING_MM * index + origin
        return ATLAS_SPACING_MM * index + origin

    def _raw_index(self, mm: float, axis: Axis) -> float:
        origin = ATLAS_ORIGIN_MM[axis]
        if axis is Axis.X:
            return (origin - mm) / ATLAS_SPACING_MM
        return (mm - origin) / ATLAS_SPACING_MM


class GenericMapper(CoordinateMapper):
    name = "generic"

    def _raw_mm(self, index: int, axis: Axis) -> float:
        center = self.dims[axis] // 2
        return AXIS_SIGN[axis] * (index - center) * self.spacing[axis]

    def _raw_index(self, mm: float, axis: Axis) -> float:
        center = self.dims[axis] // 2
        return AXIS_SIGN[axis] * mm / self.spacing[axis] + center


def select_mapper(dims: Sequence[int], spacing: Sequence[float]) -> CoordinateMapper:
    """按 (dims, spacing) 选择换算变体，每次加载调用一次。"""
    if CanonicalAtlasMapper.detects(dims, spacing):
        return CanonicalAtlasMapper(dims, spacing)
    return GenericMapper(dims, spacing)
