# -*- coding: utf-8 -*-
"""
按槽位（背景 / 统计图）保存体数据的存储（Model）。
每次开始加载都会递增该槽位的加载代号；只有代号仍为最新的结果才会写入，
过期结果抛出 StaleResultDiscarded，由调用方静默丢弃。
"""

from enum import Enum
from typing import Dict, Optional

from .errors import StaleResultDiscarded
from .volume import Volume


class Slot(str, Enum):
    BACKGROUND = "background"
    OVERLAY = "overlay"


class VolumeStore:
    def __init__(self):
        self._volumes: Dict[Slot, Optional[Volume]] = {slot: None for slot in Slot}
        self._errors: Dict[Slot, str] = {slot: "" for slot in Slot}
        self._generations: Dict[Slot, int] = {slot: 0 for slot in Slot}
        self._pending: Dict[Slot, Optional[int]] = {slot: None for slot in Slot}

    def get(self, slot: Slot) -> Optional[Volume]:
        return self._volumes[Slot(slot)]

    def error(self, slot: Slot) -> str:
        return self._errors[Slot(slot)]

    def is_loading(self, slot: Slot) -> bool:
        return self._pending[Slot(slot)] is not None

    def generation(self, slot: Slot) -> int:
        return self._generations[Slot(slot)]

    def begin(self, slot: Slot) -> int:
        """开始一次加载，返回新的代号；之前所有未完成的加载随之过期。"""
        slot = Slot(slot)
        self._generations[slot] += 1
        self._pending[slot] = self._generations[slot]
        self._errors[slot] = ""
        return self._generations[slot]

    def is_current(self, slot: Slot, generation: int) -> bool:
        slot = Slot(slot)
        return self._pending[slot] == generation == self._generations[slot]

    def _check_current(self, slot: Slot, generation: int) -> None:
        if not self.is_current(slot, generation):
            raise StaleResultDiscarded(
                f"{slot.value} 加载 #{generation} 已过期（当前 #{self._generations[slot]}）"
            )

    def commit(self, slot: Slot, generation: int, volume: Volume) -> None:
        slot = Slot(slot)
        self._check_current(slot, generation)
        self._volumes[slot] = volume
        self._errors[slot] = ""
        self._pending[slot] = None

    def fail(self, slot: Slot, generation: int, message: str) -> None:
        """加载失败：槽位置空并记录错误信息。"""
        slot = Slot(slot)
        self._check_current(slot, generation)
        self._volumes[slot] = None
        self._errors[slot] = message
        self._pending[slot] = None

    def clear(self, slot: Slot) -> None:
        """清空槽位，同时使进行中的加载过期。"""
        slot = Slot(slot)
        self._generations[slot] += 1
        self._pending[slot] = None
        self._volumes[slot] = None
        self._errors[slot] = ""

    def invalidate_all(self) -> None:
        """视图销毁时调用：所有进行中的加载都不再生效，已加载数据保留。"""
        for slot in Slot:
            self._generations[slot] += 1
            self._pending[slot] = None
