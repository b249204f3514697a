# -*- coding: utf-8 -*-
"""
Model 层：应用核心数据与领域对象，不依赖 Qt。
- Volume / decode_volume：NIfTI 体数据解码与归一化
- CoordinateMapper：体素索引与毫米坐标换算
- PlaneSampler：正交切片提取
- compute_threshold / composite_plane：阈值计算与像素合成
- fit_viewport 等：信箱式缩放与点击反算
- AppState / VolumeStore：全局状态与按槽位的体数据存储
"""

from .app_state import (
    AppState,
    CursorPosition,
    OverlayStyle,
    Snapshot,
    ThresholdConfig,
    ThresholdMode,
    ViewerConfig,
)
from .axis import Axis
from .byte_source import ByteSource, FileByteSource, HttpByteSource, OverlayRequest, source_for
from .compositor import OVERLAY_COLOR, composite_plane
from .coordinates import CanonicalAtlasMapper, CoordinateMapper, GenericMapper, select_mapper
from .errors import (
    FormatError,
    InvalidDimensionsError,
    StaleResultDiscarded,
    VolumeError,
    VolumeIOError,
)
from .slicing import PlaneSampler, plane_size
from .threshold import compute_threshold, sampled_percentile
from .viewport import Viewport, crosshair_position, fit_viewport, screen_to_cursor
from .volume import Volume, decode_volume
from .volume_store import Slot, VolumeStore

__all__ = [
    "AppState",
    "Axis",
    "ByteSource",
    "CanonicalAtlasMapper",
    "CoordinateMapper",
    "CursorPosition",
    "FileByteSource",
    "FormatError",
    "GenericMapper",
    "HttpByteSource",
    "InvalidDimensionsError",
    "OVERLAY_COLOR",
    "OverlayRequest",
    "OverlayStyle",
    "PlaneSampler",
    "Slot",
    "Snapshot",
    "StaleResultDiscarded",
    "ThresholdConfig",
    "ThresholdMode",
    "ViewerConfig",
    "Viewport",
    "Volume",
    "VolumeError",
    "VolumeIOError",
    "VolumeStore",
    "composite_plane",
    "compute_threshold",
    "crosshair_position",
    "decode_volume",
    "fit_viewport",
    "plane_size",
    "sampled_percentile",
    "screen_to_cursor",
    "select_mapper",
    "source_for",
]
