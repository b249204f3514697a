# -*- coding: utf-8 -*-
"""
主界面 ViewModel（MVVM）。
负责：背景/统计图两个槽位的异步加载（带加载代号，过期结果丢弃）、十字光标状态、
滑条拖拽的预览与去抖提交、阈值与叠加样式、三切面渲染、点击反算与快照生成。
View 通过信号接收刷新通知，通过方法获取展示数据与执行命令。
"""

import logging
import math
from dataclasses import replace
from typing import Dict, List, NamedTuple, Optional, Set, Tuple

import numpy as np
from PySide6.QtCore import QObject, QThreadPool, QTimer, Signal, Slot as QtSlot

from models import (
    AppState,
    Axis,
    ByteSource,
    CoordinateMapper,
    CursorPosition,
    HttpByteSource,
    OverlayRequest,
    Slot,
    Snapshot,
    StaleResultDiscarded,
    ThresholdMode,
    ViewerConfig,
    Viewport,
    Volume,
    VolumeStore,
    composite_plane,
    compute_threshold,
    crosshair_position,
    fit_viewport,
    plane_size,
    screen_to_cursor,
    select_mapper,
    source_for,
)
from models.app_state import DEFAULT_PERCENTILE, clamp_percentile

from .load_worker import VolumeLoadWorker

logger = logging.getLogger(__name__)

_UNSET = object()


class SlotStatus(NamedTuple):
    loaded: bool
    loading: bool
    error: str


class MainViewModel(QObject):
    """
    主界面 ViewModel。
    - 持有 AppState 与 VolumeStore，提供加载、设置光标/阈值/叠加样式等命令
    - 画布尺寸优先取背景；无背景时取统计图；统计图尺寸与画布不一致时不参与合成
    - 发出信号：volume_changed, load_failed, loading_changed, cursor_changed,
      preview_changed, render_settings_changed, status_message
    """

    # 某槽位的体数据发生变化（加载完成、失败置空或被清空）
    volume_changed = Signal(str)
    # 加载失败 (slot, message)
    load_failed = Signal(str, str)
    # 加载状态 (slot, loading)
    loading_changed = Signal(str, bool)
    # 权威光标变化（View 重新渲染三切面）
    cursor_changed = Signal()
    # 滑条拖拽中的预览值 (axis, index)，只刷新滑条与标签
    preview_changed = Signal(int, int)
    # 阈值或叠加样式变化
    render_settings_changed = Signal()
    # 状态栏文案
    status_message = Signal(str)

    def __init__(
        self,
        config: Optional[ViewerConfig] = None,
        thread_pool: Optional[QThreadPool] = None,
        parent=None,
    ):
        super().__init__(parent)
        self._config = config or ViewerConfig()
        self._app_state = AppState()
        self._store = VolumeStore()
        self._mappers: Dict[Slot, CoordinateMapper] = {}
        self._thread_pool = thread_pool if thread_pool is not None else QThreadPool(self)
        # 保持信号对象存活，直到排队的结果送达
        self._load_signals: Dict[Slot, object] = {}

        self._preview: List[int] = list(self._app_state.cursor)
        self._pending_preview: Set[Axis] = set()
        self._debounce_timers: Dict[Axis, QTimer] = {}
        for axis in Axis:
            timer = QTimer(self)
            timer.setSingleShot(True)
            timer.setInterval(self._config.slider_debounce_ms)
            timer.timeout.connect(lambda axis=axis: self._commit_preview(axis))
            self._debounce_timers[axis] = timer

    # ---------- 只读状态 ----------

    @property
    def config(self) -> ViewerConfig:
        return self._config

    @property
    def app_state(self) -> AppState:
        return self._app_state

    @property
    def background(self) -> Optional[Volume]:
        return self._store.get(Slot.BACKGROUND)

    @property
    def overlay(self) -> Optional[Volume]:
        return self._store.get(Slot.OVERLAY)

    @property
    def cursor(self) -> CursorPosition:
        return self._app_state.cursor

    @property
    def preview_cursor(self) -> CursorPosition:
        """滑条拖拽中的预览位置；无拖拽时与 cursor 相同。"""
        return CursorPosition(*self._preview)

    def _canvas_slot(self) -> Optional[Slot]:
        if self.background is not None:
            return Slot.BACKGROUND
        if self.overlay is not None:
            return Slot.OVERLAY
        return None

    @property
    def canvas_dims(self) -> Optional[Tuple[int, int, int]]:
        slot = self._canvas_slot()
        return None if slot is None else self._store.get(slot).dims

    @property
    def mapper(self) -> Optional[CoordinateMapper]:
        """画布体数据加载时选定的坐标换算。"""
        slot = self._canvas_slot()
        return None if slot is None else self._mappers.get(slot)

    def slot_status(self, slot: Slot) -> SlotStatus:
        slot = Slot(slot)
        return SlotStatus(
            loaded=self._store.get(slot) is not None,
            loading=self._store.is_loading(slot),
            error=self._store.error(slot),
        )

    def index_bounds(self) -> Tuple[Tuple[int, int], ...]:
        """各轴索引范围 ((0, nx-1), (0, ny-1), (0, nz-1))，无数据时全为 (0, 0)。"""
        dims = self.canvas_dims
        if dims is None:
            return ((0, 0),) * 3
        return tuple((0, max(0, n - 1)) for n in dims)

    # ---------- 命令：数据加载 ----------

    def load_background(self, source: Optional[ByteSource] = None) -> int:
        """加载背景体数据；默认从配置的固定位置获取。返回本次加载代号。"""
        if source is None:
            source = source_for(
                self._config.resolved_background_source(), timeout=self._config.http_timeout_s
            )
        return self._start_load(Slot.BACKGROUND, source)

    def set_overlay_request(self, request: Optional[OverlayRequest]) -> Optional[int]:
        """按查询词与生成参数加载统计图；查询为空时清空统计图槽位。"""
        if request is None or not request.query.strip():
            self._app_state.overlay_request = None
            self.clear_overlay()
            return None
        self._app_state.overlay_request = request
        url = request.to_url(self._config.api_base)
        return self._start_load(
            Slot.OVERLAY, HttpByteSource(url, timeout=self._config.http_timeout_s)
        )

    def load_overlay(self, source: ByteSource) -> int:
        """从任意字节源（如本地文件）加载统计图。"""
        self._app_state.overlay_request = None
        return self._start_load(Slot.OVERLAY, source)

    def clear_overlay(self) -> None:
        was_loading = self._store.is_loading(Slot.OVERLAY)
        self._store.clear(Slot.OVERLAY)
        self._mappers.pop(Slot.OVERLAY, None)
        if was_loading:
            self.loading_changed.emit(Slot.OVERLAY.value, False)
        self._ensure_cursor_in_bounds()
        self.volume_changed.emit(Slot.OVERLAY.value)

    def overlay_url(self) -> Optional[str]:
        """当前统计图的下载地址；统计图尚未就绪时返回 None。"""
        request = self._app_state.overlay_request
        if request is None or self.overlay is None:
            return None
        return request.to_url(self._config.api_base)

    def _start_load(self, slot: Slot, source: ByteSource) -> int:
        generation = self._store.begin(slot)
        worker = VolumeLoadWorker(slot.value, generation, source)
        worker.signals.finished.connect(self._on_load_finished)
        worker.signals.failed.connect(self._on_load_failed)
        self._load_signals[slot] = worker.signals
        logger.info("开始加载 %s #%d：%s", slot.value, generation, source.describe())
        self.loading_changed.emit(slot.value, True)
        self._thread_pool.start(worker)
        return generation

    @QtSlot(str, int, object)
    def _on_load_finished(self, slot_name: str, generation: int, volume: Volume) -> None:
        slot = Slot(slot_name)
        try:
            self._store.commit(slot, generation, volume)
        except StaleResultDiscarded as e:
            logger.debug("丢弃过期加载结果：%s", e)
            return
        mapper = select_mapper(volume.dims, volume.spacing)
        self._mappers[slot] = mapper
        logger.info(
            "%s 加载完成：dims=%s spacing=%s 坐标换算=%s",
            slot.value, volume.dims, volume.spacing, mapper.name,
        )

        if slot is Slot.BACKGROUND or self.background is None:
            # 该体数据决定画布：光标回到中心体素
            self._apply_cursor(CursorPosition.center_of(volume.dims), force_preview=True)
        else:
            self._ensure_cursor_in_bounds()
        if slot is Slot.OVERLAY:
            self._clamp_threshold_value(volume)

        self.loading_changed.emit(slot.value, False)
        self.volume_changed.emit(slot.value)
        self.status_message.emit(
            f"已加载{'背景' if slot is Slot.BACKGROUND else '统计图'}：体数据形状 {volume.dims}"
        )

    @QtSlot(str, int, str)
    def _on_load_failed(self, slot_name: str, generation: int, message: str) -> None:
        slot = Slot(slot_name)
        try:
            self._store.fail(slot, generation, message)
        except StaleResultDiscarded as e:
            logger.debug("丢弃过期加载错误：%s", e)
            return
        self._mappers.pop(slot, None)
        logger.warning("%s 加载失败：%s", slot.value, message)
        self._ensure_cursor_in_bounds()
        self.loading_changed.emit(slot.value, False)
        self.load_failed.emit(slot.value, message)
        self.volume_changed.emit(slot.value)
        self.status_message.emit(
            f"加载{'背景' if slot is Slot.BACKGROUND else '统计图'}失败：{message}"
        )

    def _clamp_threshold_value(self, overlay: Volume) -> None:
        lo, hi = overlay.value_range
        threshold = self._app_state.threshold
        if threshold.value < lo or threshold.value > hi:
            threshold.value = min(hi, max(lo, threshold.value))
            self.render_settings_changed.emit()

    # ---------- 命令：光标 ----------

    def set_cursor(self, ix: int, iy: int, iz: int) -> None:
        """设置全局十字光标 (ix, iy, iz)，超出范围的值被钳制。"""
        self._apply_cursor(CursorPosition(ix, iy, iz))

    def set_axis_index(self, axis: Axis, value: int) -> None:
        """只改变一个轴的光标索引。"""
        self._apply_cursor(self.cursor.with_axis(axis, value))

    def _apply_cursor(self, proposed: CursorPosition, force_preview: bool = False) -> None:
        dims = self.canvas_dims
        if dims is None:
            return
        cursor = proposed.clamped(dims)
        if force_preview:
            self._cancel_pending_previews()
        self._app_state.cursor = cursor
        for axis in Axis:
            if axis not in self._pending_preview:
                self._preview[axis] = cursor[axis]
        self.cursor_changed.emit()

    def _ensure_cursor_in_bounds(self) -> None:
        dims = self.canvas_dims
        if dims is not None and self.cursor.clamped(dims) != self.cursor:
            self._apply_cursor(self.cursor)

    def commit_coordinate_text(self, axis: Axis, text: str) -> bool:
        """
        坐标输入框提交：解析毫米值并换算为索引。
        空串、单独的正负号或无法解析的文本被忽略（状态不变），返回 False。
        """
        mapper = self.mapper
        if mapper is None:
            return False
        text = (text or "").strip()
        if text in ("", "-", "+"):
            return False
        try:
            mm = float(text)
        except ValueError:
            return False
        if not math.isfinite(mm):
            return False
        self.set_axis_index(axis, mapper.to_index(mm, axis))
        return True

    def display_coordinates(self) -> Optional[Tuple[float, float, float]]:
        """当前光标的毫米坐标，由光标与坐标换算实时推导。"""
        mapper = self.mapper
        if mapper is None:
            return None
        return mapper.to_mm_triplet(self.cursor)

    def coordinate_for(self, axis: Axis, index: int) -> Optional[float]:
        mapper = self.mapper
        return None if mapper is None else mapper.to_mm(index, axis)

    @staticmethod
    def format_coordinate(value: Optional[float]) -> str:
        """带符号、一位小数，例如 +12.0 / -4.0；缺失值显示 —。"""
        if value is None or math.isnan(value):
            return "—"
        return f"{value + 0.0:+.1f}"

    # ---------- 命令：滑条预览与去抖 ----------

    def preview_axis(self, axis: Axis, value: int) -> None:
        """滑条拖拽：立即更新预览值，静止一段时间后才提交为权威光标。"""
        dims = self.canvas_dims
        if dims is None:
            return
        axis = Axis(axis)
        value = max(0, min(dims[axis] - 1, int(value)))
        self._preview[axis] = value
        self._pending_preview.add(axis)
        self.preview_changed.emit(int(axis), value)
        self._debounce_timers[axis].start()

    def _commit_preview(self, axis: Axis) -> None:
        if axis not in self._pending_preview:
            return
        self._pending_preview.discard(axis)
        logger.debug("提交滑条位置 %s=%d", axis.letter, self._preview[axis])
        self.set_axis_index(axis, self._preview[axis])

    def flush_preview(self) -> None:
        """立即提交所有尚在去抖中的滑条值（例如松开滑条时）。"""
        for axis in list(self._pending_preview):
            self._debounce_timers[axis].stop()
            self._commit_preview(axis)

    def _cancel_pending_previews(self) -> None:
        for axis in list(self._pending_preview):
            self._debounce_timers[axis].stop()
        self._pending_preview.clear()

    # ---------- 命令：阈值与叠加样式 ----------

    def set_threshold_mode(self, mode: ThresholdMode) -> None:
        self._app_state.threshold.mode = ThresholdMode(mode)
        self.render_settings_changed.emit()

    def set_threshold_value(self, value: float) -> None:
        try:
            value = float(value)
        except (TypeError, ValueError):
            return
        if not math.isfinite(value):
            return
        self._app_state.threshold.value = value
        self.render_settings_changed.emit()

    def set_percentile(self, value) -> None:
        """百分位输入；无法解析时回退为 95。"""
        try:
            p = float(value)
        except (TypeError, ValueError):
            p = DEFAULT_PERCENTILE
        self._app_state.threshold.percentile = clamp_percentile(p)
        self.render_settings_changed.emit()

    def set_overlay_alpha(self, alpha: float) -> None:
        self._app_state.overlay_style.alpha = max(0.0, min(1.0, float(alpha)))
        self.render_settings_changed.emit()

    def set_positive_only(self, enabled: bool) -> None:
        self._app_state.overlay_style.positive_only = bool(enabled)
        self.render_settings_changed.emit()

    def set_use_absolute(self, enabled: bool) -> None:
        self._app_state.overlay_style.use_absolute = bool(enabled)
        self.render_settings_changed.emit()

    def current_threshold(self) -> Optional[float]:
        """每次调用都按当前统计图与阈值配置重新计算，不缓存。"""
        return compute_threshold(
            self.overlay, self._app_state.threshold, self._config.percentile_sample_cap
        )

    # ---------- 供 View 获取展示数据 ----------

    def plane_size(self, axis: Axis) -> Optional[Tuple[int, int]]:
        dims = self.canvas_dims
        return None if dims is None else plane_size(axis, dims)

    def render_plane(self, axis: Axis, threshold=_UNSET) -> Optional[np.ndarray]:
        """渲染一个切面为 (h, w, 4) RGBA 缓冲区；无数据时返回 None。"""
        dims = self.canvas_dims
        if dims is None:
            return None
        if threshold is _UNSET:
            threshold = self.current_threshold()
        axis = Axis(axis)
        return composite_plane(
            axis,
            self.cursor[axis],
            dims,
            self.background,
            self.overlay,
            threshold,
            self._app_state.overlay_style,
            self._config.overlay_color,
        )

    def render_all(self) -> Dict[Axis, np.ndarray]:
        """三个切面一起渲染，阈值只计算一次。"""
        if self.canvas_dims is None:
            return {}
        threshold = self.current_threshold()
        return {axis: self.render_plane(axis, threshold) for axis in Axis}

    def viewport_for(
        self, axis: Axis, avail_width: float, avail_height: Optional[float]
    ) -> Optional[Viewport]:
        size = self.plane_size(axis)
        if size is None:
            return None
        return fit_viewport(size[0], size[1], avail_width, avail_height)

    def crosshair_for(self, axis: Axis, viewport: Viewport) -> Optional[Tuple[float, float]]:
        dims = self.canvas_dims
        if dims is None:
            return None
        return crosshair_position(viewport, axis, self.cursor, dims)

    def click(self, axis: Axis, viewport: Viewport, px: float, py: float) -> bool:
        """点击切面：留白区内的点击被忽略；否则更新切面内两个轴的光标。"""
        dims = self.canvas_dims
        if dims is None:
            return False
        cursor = screen_to_cursor(viewport, axis, self.cursor, dims, px, py)
        if cursor is None:
            return False
        self._apply_cursor(cursor)
        return True

    def snapshot(self, axis: Axis) -> Optional[Snapshot]:
        """生成某切面的快照（像素 + 光标 + 阈值 + 叠加样式 + 时间戳）。"""
        pixels = self.render_plane(axis)
        if pixels is None:
            return None
        return Snapshot(
            pixels=pixels,
            axis=Axis(axis),
            cursor=self.cursor,
            threshold=replace(self._app_state.threshold),
            overlay_style=replace(self._app_state.overlay_style),
        )

    def snapshot_all(self) -> List[Snapshot]:
        snapshots = [self.snapshot(axis) for axis in Axis]
        return [s for s in snapshots if s is not None]

    # ---------- 生命周期 ----------

    def shutdown(self) -> None:
        """视图销毁：停止去抖定时器，使所有进行中的加载失效。"""
        self._cancel_pending_previews()
        loading = [slot for slot in Slot if self._store.is_loading(slot)]
        self._store.invalidate_all()
        for slot in loading:
            self.loading_changed.emit(slot.value, False)
