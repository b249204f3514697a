# -*- coding: utf-8 -*-
"""
正交切片提取（Model）。
三个切面共用同一套逻辑，按 Axis 参数化：切面尺寸、步长偏移、x 轴镜像。
约定：切面内对应体数据 x 轴的坐标总是镜像（u -> w-1-u），保证 x>0 显示在屏幕右侧。
"""

from typing import Sequence, Tuple

import numpy as np

from .axis import Axis
from .volume import Volume


def plane_size(axis: Axis, dims: Sequence[int]) -> Tuple[int, int]:
    """切面尺寸 (w, h)：矢状位 (ny,nz)，冠状位 (nx,nz)，轴状位 (nx,ny)。"""
    u_axis, v_axis = Axis(axis).in_plane
    return int(dims[u_axis]), int(dims[v_axis])


def mirrors_x(axis: Axis) -> bool:
    """切面水平方向是否为体数据 x 轴（需要镜像）。"""
    return Axis(axis).in_plane[0] is Axis.X


class PlaneSampler:
    """
    固定轴、固定层号上的二维采样器。
    sample(u, v) 按步长 (1, nx, nx*ny) 直接读取扁平数组；plane() 一次性返回整张切面。
    """

    def __init__(self, volume: Volume, axis: Axis, index: int):
        self.volume = volume
        self.axis = Axis(axis)
        n = volume.dims[self.axis]
        self.index = max(0, min(n - 1, int(index)))
        self.width, self.height = plane_size(self.axis, volume.dims)
        self._mirror = mirrors_x(self.axis)

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def offset(self, u: int, v: int) -> int:
        """切面坐标 (u, v) 在扁平数组中的偏移（已应用 x 镜像）。"""
        nx, ny, _ = self.volume.dims
        if self._mirror:
            u = self.width - 1 - u
        voxel = [0, 0, 0]
        u_axis, v_axis = self.axis.in_plane
        voxel[self.axis] = self.index
        voxel[u_axis] = u
        voxel[v_axis] = v
        return voxel[0] + voxel[1] * nx + voxel[2] * nx * ny

    def sample(self, u: int, v: int) -> float:
        return float(self.volume.data[self.offset(u, v)])

    def plane(self) -> np.ndarray:
        """返回 (h, w) 数组，plane[v, u] == sample(u, v)。"""
        grid = self.volume.as_grid()
        if self.axis is Axis.Z:
            plane = grid[self.index, :, :]
        elif self.axis is Axis.Y:
            plane = grid[:, self.index, :]
        else:
            plane = grid[:, :, self.index]
        if self._mirror:
            plane = plane[:, ::-1]
        return plane
