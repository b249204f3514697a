# -*- coding: utf-8 -*-
"""
三个正交轴 / 切面的统一定义（Model）。
Axis 同时表示体数据坐标轴和以该轴为固定轴的切面：
X -> 矢状位，Y -> 冠状位，Z -> 轴状位。
"""

from enum import IntEnum
from typing import Tuple


class Axis(IntEnum):
    X = 0
    Y = 1
    Z = 2

    @property
    def letter(self) -> str:
        return "xyz"[self.value]

    @property
    def orientation(self) -> str:
        """切面名称："sagittal" | "coronal" | "axial"。"""
        return ("sagittal", "coronal", "axial")[self.value]

    @property
    def title(self) -> str:
        return ("矢状位", "冠状位", "轴状位")[self.value]

    @property
    def in_plane(self) -> Tuple["Axis", "Axis"]:
        """切面内的 (水平 u 轴, 竖直 v 轴)。"""
        if self is Axis.X:
            return Axis.Y, Axis.Z
        if self is Axis.Y:
            return Axis.X, Axis.Z
        return Axis.X, Axis.Y

    @classmethod
    def from_orientation(cls, name: str) -> "Axis":
        name = name.lower()
        for axis in cls:
            if name in (axis.orientation, axis.letter):
                return axis
        raise ValueError(f"未知切面: {name!r}")
