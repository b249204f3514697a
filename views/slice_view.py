# -*- coding: utf-8 -*-
"""
切面视图（View）。
仅负责展示与交互：按 ViewModel 给出的 RGBA 缓冲区等比缩放绘制、画十字线、
左键点击设光标、滑条拖拽预览、坐标输入框提交；几何与坐标换算均由 ViewModel/Model 提供。
"""

from typing import TYPE_CHECKING, Optional

import numpy as np
from PySide6.QtCore import QPointF, QRect, Qt, QTimer
from PySide6.QtGui import QColor, QImage, QMouseEvent, QPainter, QPen
from PySide6.QtWidgets import (
    QFrame,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QSizePolicy,
    QSlider,
    QVBoxLayout,
    QWidget,
)

from models import Axis

if TYPE_CHECKING:
    from viewmodels.main_view_model import MainViewModel


def rgba_image(pixels: np.ndarray) -> QImage:
    """(h, w, 4) uint8 RGBA 缓冲区 -> QImage。"""
    h, w = pixels.shape[:2]
    buffer = np.ascontiguousarray(pixels, dtype=np.uint8)
    # copy() 使 QImage 拥有自己的数据，不依赖 numpy 缓冲区的生命周期
    return QImage(buffer.data, w, h, 4 * w, QImage.Format_RGBA8888).copy()


class SliceCanvas(QWidget):
    """绘制区域：信箱式居中绘制切面图像，并把点击交给 ViewModel 反算。"""

    def __init__(self, axis: Axis, view_model: "MainViewModel", parent=None):
        super().__init__(parent)
        self._axis = axis
        self._view_model = view_model
        self._image: Optional[QImage] = None
        self.setMinimumSize(120, 120)
        self.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Expanding)
        self.setCursor(Qt.CrossCursor)

    def set_pixels(self, pixels: Optional[np.ndarray]) -> None:
        self._image = None if pixels is None else rgba_image(pixels)
        self.update()

    def _viewport(self):
        return self._view_model.viewport_for(self._axis, self.width(), self.height())

    def paintEvent(self, event) -> None:
        painter = QPainter(self)
        painter.fillRect(self.rect(), QColor(0, 0, 0))
        viewport = self._viewport() if self._image is not None else None
        if viewport is None:
            painter.setPen(QColor(160, 160, 176))
            painter.drawText(self.rect(), Qt.AlignCenter, "未加载数据")
            painter.end()
            return
        # 最近邻缩放，不做插值
        painter.setRenderHint(QPainter.SmoothPixmapTransform, False)
        target = QRect(
            viewport.offset_x, viewport.offset_y, viewport.draw_width, viewport.draw_height
        )
        painter.drawImage(target, self._image)

        crosshair = self._view_model.crosshair_for(self._axis, viewport)
        if crosshair is not None:
            cx, cy = crosshair
            pen = QPen(QColor(255, 255, 255))
            pen.setWidth(1)
            painter.setPen(pen)
            painter.drawLine(
                QPointF(cx, viewport.offset_y),
                QPointF(cx, viewport.offset_y + viewport.draw_height),
            )
            painter.drawLine(
                QPointF(viewport.offset_x, cy),
                QPointF(viewport.offset_x + viewport.draw_width, cy),
            )
        painter.end()

    def resizeEvent(self, event) -> None:
        """布局变化：下一轮事件循环重绘，再加一次延迟重绘，容忍布局缓慢稳定。"""
        super().resizeEvent(event)
        QTimer.singleShot(0, self.update)
        QTimer.singleShot(self._view_model.config.redraw_fallback_ms, self.update)

    def mousePressEvent(self, event: QMouseEvent) -> None:
        if event.button() != Qt.LeftButton:
            super().mousePressEvent(event)
            return
        viewport = self._viewport()
        if viewport is None:
            return
        pos = event.position()
        self._view_model.click(self._axis, viewport, pos.x(), pos.y())
        event.accept()


class SliceView(QFrame):
    """
    单个切面视图（矢状位/冠状位/轴状位）。
    - 标题行：切面名、索引与毫米坐标
    - 画布：SliceCanvas
    - 底部：索引滑条（拖拽时预览，去抖后提交）与毫米坐标输入框
    """

    def __init__(self, axis: Axis, view_model: "MainViewModel", parent=None):
        super().__init__(parent)
        self.setFrameShape(QFrame.StyledPanel)
        self.setObjectName(f"SliceView-{axis.orientation}")

        self._axis = axis
        self._view_model = view_model

        layout = QVBoxLayout(self)
        layout.setContentsMargins(4, 4, 4, 4)
        layout.setSpacing(2)

        header = QHBoxLayout()
        self._title_label = QLabel(f"{axis.title} ({axis.letter.upper()})")
        self._title_label.setStyleSheet("color: #ffffff; font-weight: bold;")
        header.addWidget(self._title_label)
        header.addStretch(1)
        self._position_label = QLabel("")
        header.addWidget(self._position_label)
        layout.addLayout(header)

        self._canvas = SliceCanvas(axis, view_model, self)
        layout.addWidget(self._canvas, 1)

        controls = QHBoxLayout()
        self._slider = QSlider(Qt.Horizontal)
        self._slider.setMinimum(0)
        self._slider.setMaximum(0)
        self._slider.valueChanged.connect(self._on_slider_moved)
        self._slider.sliderReleased.connect(self._view_model.flush_preview)
        controls.addWidget(self._slider, 1)
        controls.addWidget(QLabel(f"{axis.letter.upper()} ="))
        self._coord_edit = QLineEdit()
        self._coord_edit.setFixedWidth(64)
        self._coord_edit.editingFinished.connect(self._on_coordinate_committed)
        controls.addWidget(self._coord_edit)
        controls.addWidget(QLabel("mm"))
        layout.addLayout(controls)

    @property
    def axis(self) -> Axis:
        return self._axis

    def set_pixels(self, pixels: Optional[np.ndarray]) -> None:
        """三切面渲染后由 MainWindow 调用。"""
        self._canvas.set_pixels(pixels)

    def refresh_from_cursor(self) -> None:
        """光标或体数据变化：同步滑条范围/位置、坐标输入框与标题。"""
        lo, hi = self._view_model.index_bounds()[self._axis]
        # 拖拽去抖期间以预览值为准，避免滑条回跳
        index = self._view_model.preview_cursor[self._axis]
        self._slider.blockSignals(True)
        self._slider.setRange(lo, hi)
        self._slider.setValue(index)
        self._slider.blockSignals(False)

        mm = self._view_model.coordinate_for(self._axis, index)
        self._coord_edit.setText("" if mm is None else f"{mm:g}")
        self._update_position_label(index, mm)

    def refresh_preview(self, index: int) -> None:
        """滑条拖拽中的预览：只更新滑条与标题，不重新渲染。"""
        self._slider.blockSignals(True)
        self._slider.setValue(index)
        self._slider.blockSignals(False)
        self._update_position_label(index, self._view_model.coordinate_for(self._axis, index))

    def _update_position_label(self, index: int, mm: Optional[float]) -> None:
        formatted = self._view_model.format_coordinate(mm)
        self._position_label.setText(
            f"idx: {index}  {self._axis.letter.upper()} = {formatted} mm"
        )

    def _on_slider_moved(self, value: int) -> None:
        self._view_model.preview_axis(self._axis, value)

    def _on_coordinate_committed(self) -> None:
        """输入框提交：无效文本被忽略，并恢复为当前光标坐标。"""
        if not self._view_model.commit_coordinate_text(self._axis, self._coord_edit.text()):
            self.refresh_from_cursor()
