# -*- coding: utf-8 -*-
"""
全局应用状态与配置（Model）。
供 ViewModel 读写，View 通过 ViewModel 间接访问。
- CursorPosition：权威的十字光标体素坐标 (ix, iy, iz)，始终在体数据范围内
- ThresholdConfig / OverlayStyle：统计图阈值与叠加样式
- ViewerConfig：启动配置（服务地址、去抖时间、叠加颜色等）
- Snapshot：某一切面的渲染快照，仅生成，不负责持久化
"""

import base64
import math
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import NamedTuple, Optional, Sequence, Tuple

import numpy as np

from .axis import Axis
from .byte_source import OverlayRequest

DEFAULT_API_BASE = "http://localhost:5000"
DEFAULT_PERCENTILE = 95.0


class CursorPosition(NamedTuple):
    ix: int
    iy: int
    iz: int

    def clamped(self, dims: Sequence[int]) -> "CursorPosition":
        """逐轴钳制到 [0, dim-1]。"""
        return CursorPosition(
            *(max(0, min(int(n) - 1, int(i))) for i, n in zip(self, dims))
        )

    def with_axis(self, axis: Axis, value: int) -> "CursorPosition":
        values = list(self)
        values[Axis(axis)] = int(value)
        return CursorPosition(*values)

    @classmethod
    def center_of(cls, dims: Sequence[int]) -> "CursorPosition":
        return cls(*(int(n) // 2 for n in dims))


class ThresholdMode(str, Enum):
    VALUE = "value"
    PERCENTILE = "pctl"


@dataclass
class ThresholdConfig:
    mode: ThresholdMode = ThresholdMode.PERCENTILE
    value: float = 0.0
    percentile: float = DEFAULT_PERCENTILE

    def __post_init__(self):
        self.mode = ThresholdMode(self.mode)
        self.percentile = clamp_percentile(self.percentile)


@dataclass
class OverlayStyle:
    alpha: float = 0.5
    positive_only: bool = True
    use_absolute: bool = False

    def __post_init__(self):
        self.alpha = max(0.0, min(1.0, float(self.alpha)))


def clamp_percentile(p: float) -> float:
    p = float(p)
    if math.isnan(p):
        return DEFAULT_PERCENTILE
    return max(0.0, min(100.0, p))


@dataclass
class ViewerConfig:
    """
    启动配置，main.py 的命令行参数可覆盖。
    background_source 为空时使用 {api_base}/static/mni_2mm.nii.gz。
    """

    api_base: str = DEFAULT_API_BASE
    background_source: Optional[str] = None
    http_timeout_s: float = 30.0
    slider_debounce_ms: int = 120
    redraw_fallback_ms: int = 250
    overlay_color: Tuple[int, int, int] = (255, 0, 0)
    percentile_sample_cap: int = 200_000
    snapshot_limit: int = 24

    def resolved_background_source(self) -> str:
        if self.background_source:
            return self.background_source
        return f"{self.api_base.rstrip('/')}/static/mni_2mm.nii.gz"


@dataclass
class AppState:
    """
    全局应用状态。
    - cursor：三视图联动的十字光标 (ix, iy, iz)
    - threshold / overlay_style：统计图阈值与叠加样式
    - overlay_request：当前统计图查询（None 表示无统计图）
    """

    cursor: CursorPosition = CursorPosition(0, 0, 0)
    threshold: ThresholdConfig = field(default_factory=ThresholdConfig)
    overlay_style: OverlayStyle = field(default_factory=OverlayStyle)
    overlay_request: Optional[OverlayRequest] = None


@dataclass(frozen=True)
class Snapshot:
    """某一切面的渲染快照，供外部画廊/持久化功能使用。"""

    pixels: np.ndarray  # (h, w, 4) uint8 RGBA
    axis: Axis
    cursor: CursorPosition
    threshold: ThresholdConfig
    overlay_style: OverlayStyle
    timestamp_ms: int = field(default_factory=lambda: int(time.time() * 1000))

    def to_dict(self) -> dict:
        h, w = self.pixels.shape[:2]
        threshold = asdict(self.threshold)
        threshold["mode"] = self.threshold.mode.value
        return {
            "axis": self.axis.letter,
            "width": int(w),
            "height": int(h),
            "rgba": base64.b64encode(np.ascontiguousarray(self.pixels).tobytes()).decode("ascii"),
            "cursor": list(self.cursor),
            "threshold": threshold,
            "overlay_style": asdict(self.overlay_style),
            "timestamp": self.timestamp_ms,
        }
