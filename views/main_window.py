# -*- coding: utf-8 -*-
"""
主窗口（View）。
仅负责布局、菜单、统计图查询与阈值面板、三切面视图与 ViewModel 的绑定；
业务逻辑与数据均由 ViewModel 提供。
"""

import logging
from collections import deque
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, List

from PySide6.QtCore import Qt, QUrl
from PySide6.QtGui import QAction, QDesktopServices, QKeyEvent
from PySide6.QtWidgets import (
    QCheckBox,
    QComboBox,
    QDoubleSpinBox,
    QFileDialog,
    QFormLayout,
    QFrame,
    QGridLayout,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QSlider,
    QStatusBar,
    QVBoxLayout,
    QWidget,
)

from models import Axis, FileByteSource, OverlayRequest, Slot, Snapshot, ThresholdMode
from views.slice_view import SliceView, rgba_image

if TYPE_CHECKING:
    from viewmodels.main_view_model import MainViewModel

logger = logging.getLogger(__name__)


# 深色主题 QSS
STYLESHEET = """
QMainWindow { background-color: #1E1E2E; color: #E0E0E0; }
QLabel { color: #E0E0E0; }
QFrame { background-color: #252535; border: 1px solid #303040; }
QLineEdit, QDoubleSpinBox, QComboBox {
    background-color: #0c1a3a; color: #eaf2ff; border: 1px solid #386cd9; border-radius: 4px;
}
QCheckBox { color: #E0E0E0; }
QSlider::groove:horizontal {
    background: #303040; height: 6px;
}
QSlider::handle:horizontal {
    background: #3A86FF; width: 12px; border-radius: 6px;
}
QPushButton {
    background-color: #3A86FF; color: white; border-radius: 4px; padding: 4px 10px;
}
QPushButton:hover { background-color: #2563EB; }
"""

KERNELS = ("gauss", "uniform")


def export_snapshots(snapshots: Iterable[Snapshot], directory: Path) -> List[Path]:
    """把快照逐张保存为 PNG，返回写出的文件路径；保存失败抛出 OSError。"""
    directory = Path(directory)
    written = []
    for number, snapshot in enumerate(snapshots, start=1):
        path = directory / (
            f"snapshot_{number:02d}_{snapshot.axis.orientation}_{snapshot.timestamp_ms}.png"
        )
        if not rgba_image(snapshot.pixels).save(str(path), "PNG"):
            raise OSError(f"无法写入 {path}")
        written.append(path)
    return written


class MainWindow(QMainWindow):
    """
    主窗口 View。
    - 顶部：统计图查询与生成参数、阈值模式/数值/百分位、叠加透明度与选项
    - 中间：矢状位、冠状位、轴状位三视图（X/Y/Z 键放大单个视图，Esc 还原）
    - 状态栏：加载进度与错误
    """

    def __init__(self, view_model: "MainViewModel", parent=None):
        super().__init__(parent)
        self._view_model = view_model
        self._snapshots = deque(maxlen=view_model.config.snapshot_limit)
        self.setWindowTitle("NIfTI 切片浏览器")
        self.resize(1280, 760)
        self.setStyleSheet(STYLESHEET)

        self._create_menu()
        central = QWidget(self)
        self.setCentralWidget(central)
        main_layout = QVBoxLayout(central)
        main_layout.setContentsMargins(6, 6, 6, 6)

        main_layout.addWidget(self._create_query_panel())
        main_layout.addWidget(self._create_threshold_panel())

        self._error_label = QLabel("")
        self._error_label.setStyleSheet("color: #facc15;")
        self._error_label.setWordWrap(True)
        self._error_label.hide()
        main_layout.addWidget(self._error_label)

        self._views = {axis: SliceView(axis, view_model) for axis in Axis}
        self._grid = QGridLayout()
        self._grid.setSpacing(4)
        for column, axis in enumerate(Axis):
            self._grid.addWidget(self._views[axis], 0, column)
        main_layout.addLayout(self._grid, 1)

        status = QStatusBar()
        status.setStyleSheet("color: #E0E0E0; background-color: #151521;")
        self.setStatusBar(status)
        self.statusBar().showMessage("就绪")

        # 绑定 ViewModel 信号
        self._view_model.volume_changed.connect(self._on_volume_changed)
        self._view_model.load_failed.connect(self._on_load_failed)
        self._view_model.loading_changed.connect(self._on_loading_changed)
        self._view_model.cursor_changed.connect(self._on_cursor_changed)
        self._view_model.preview_changed.connect(self._on_preview_changed)
        self._view_model.render_settings_changed.connect(self._on_render_settings_changed)
        self._view_model.status_message.connect(self.statusBar().showMessage)

    def _create_menu(self) -> None:
        """构建顶部菜单栏。"""
        menu_bar = self.menuBar()
        file_menu = menu_bar.addMenu("文件")
        open_bg_action = QAction("打开背景体数据", self)
        open_bg_action.triggered.connect(self._on_open_background)
        file_menu.addAction(open_bg_action)
        open_map_action = QAction("打开统计图", self)
        open_map_action.triggered.connect(self._on_open_overlay)
        file_menu.addAction(open_map_action)
        download_action = QAction("下载统计图", self)
        download_action.triggered.connect(self._on_download_map)
        file_menu.addAction(download_action)
        snapshot_action = QAction("保存快照", self)
        snapshot_action.triggered.connect(self._on_snapshot)
        file_menu.addAction(snapshot_action)
        export_action = QAction("导出快照", self)
        export_action.triggered.connect(self._on_export_snapshots)
        file_menu.addAction(export_action)
        clear_action = QAction("清空快照", self)
        clear_action.triggered.connect(self._on_clear_snapshots)
        file_menu.addAction(clear_action)
        exit_action = QAction("退出", self)
        exit_action.triggered.connect(self.close)
        file_menu.addAction(exit_action)

    def _create_query_panel(self) -> QWidget:
        """统计图查询：查询词 + 体素大小、FWHM、核形状、半径。"""
        panel = QFrame()
        layout = QHBoxLayout(panel)
        layout.setContentsMargins(8, 6, 8, 6)
        self._query_edit = QLineEdit()
        self._query_edit.setPlaceholderText("查询词，例如 amygdala")
        self._query_edit.returnPressed.connect(self._on_generate_map)
        layout.addWidget(QLabel("查询"))
        layout.addWidget(self._query_edit, 1)

        defaults = OverlayRequest("")
        self._voxel_spin = self._make_spin(0.5, 10.0, 0.5, defaults.voxel_size_mm)
        self._fwhm_spin = self._make_spin(0.0, 50.0, 0.5, defaults.smoothing_fwhm)
        self._radius_spin = self._make_spin(0.0, 50.0, 0.5, defaults.radius)
        self._kernel_combo = QComboBox()
        self._kernel_combo.addItems(KERNELS)
        layout.addWidget(QLabel("体素 (mm)"))
        layout.addWidget(self._voxel_spin)
        layout.addWidget(QLabel("Gaussian FWHM"))
        layout.addWidget(self._fwhm_spin)
        layout.addWidget(QLabel("核"))
        layout.addWidget(self._kernel_combo)
        layout.addWidget(QLabel("半径"))
        layout.addWidget(self._radius_spin)
        generate = QPushButton("生成")
        generate.clicked.connect(self._on_generate_map)
        layout.addWidget(generate)
        return panel

    @staticmethod
    def _make_spin(lo: float, hi: float, step: float, value: float) -> QDoubleSpinBox:
        spin = QDoubleSpinBox()
        spin.setRange(lo, hi)
        spin.setSingleStep(step)
        spin.setValue(value)
        return spin

    def _create_threshold_panel(self) -> QWidget:
        """阈值模式/数值/百分位，叠加透明度、仅正值、取绝对值。"""
        state = self._view_model.app_state
        panel = QFrame()
        layout = QHBoxLayout(panel)
        layout.setContentsMargins(8, 6, 8, 6)
        form = QFormLayout()

        self._mode_combo = QComboBox()
        self._mode_combo.addItem("数值", ThresholdMode.VALUE.value)
        self._mode_combo.addItem("百分位", ThresholdMode.PERCENTILE.value)
        self._mode_combo.setCurrentIndex(self._mode_combo.findData(state.threshold.mode.value))
        self._mode_combo.currentIndexChanged.connect(self._on_mode_changed)
        form.addRow("阈值模式", self._mode_combo)

        self._value_spin = self._make_spin(-1e6, 1e6, 0.01, state.threshold.value)
        self._value_spin.setDecimals(3)
        self._value_spin.valueChanged.connect(self._view_model.set_threshold_value)
        form.addRow("阈值", self._value_spin)

        self._percentile_spin = self._make_spin(50.0, 99.9, 0.5, state.threshold.percentile)
        self._percentile_spin.valueChanged.connect(self._view_model.set_percentile)
        form.addRow("百分位", self._percentile_spin)
        layout.addLayout(form)

        overlay_box = QVBoxLayout()
        self._alpha_slider = QSlider(Qt.Horizontal)
        self._alpha_slider.setRange(0, 20)  # 步长 0.05
        self._alpha_slider.setValue(round(state.overlay_style.alpha * 20))
        self._alpha_slider.valueChanged.connect(
            lambda v: self._view_model.set_overlay_alpha(v / 20.0)
        )
        overlay_box.addWidget(QLabel("叠加透明度"))
        overlay_box.addWidget(self._alpha_slider)
        self._positive_check = QCheckBox("仅显示正值")
        self._positive_check.setChecked(state.overlay_style.positive_only)
        self._positive_check.toggled.connect(self._view_model.set_positive_only)
        overlay_box.addWidget(self._positive_check)
        self._absolute_check = QCheckBox("取绝对值")
        self._absolute_check.setChecked(state.overlay_style.use_absolute)
        self._absolute_check.toggled.connect(self._view_model.set_use_absolute)
        overlay_box.addWidget(self._absolute_check)
        layout.addLayout(overlay_box)
        layout.addStretch(1)
        self._sync_threshold_widgets()
        return panel

    # ---------- 菜单与控件槽 ----------

    def _on_generate_map(self) -> None:
        request = OverlayRequest(
            query=self._query_edit.text().strip(),
            voxel_size_mm=self._voxel_spin.value(),
            smoothing_fwhm=self._fwhm_spin.value(),
            kernel=self._kernel_combo.currentText(),
            radius=self._radius_spin.value(),
        )
        self._view_model.set_overlay_request(request)

    def _on_open_background(self) -> None:
        file_path, _ = QFileDialog.getOpenFileName(
            self, "选择背景体数据", "", "NIfTI (*.nii *.nii.gz);;所有文件 (*.*)"
        )
        if file_path:
            self._view_model.load_background(FileByteSource(file_path))

    def _on_open_overlay(self) -> None:
        file_path, _ = QFileDialog.getOpenFileName(
            self, "选择统计图", "", "NIfTI (*.nii *.nii.gz);;所有文件 (*.*)"
        )
        if file_path:
            self._view_model.load_overlay(FileByteSource(file_path))

    def _on_download_map(self) -> None:
        url = self._view_model.overlay_url()
        if url is None:
            QMessageBox.information(self, "提示", "统计图尚未就绪，请在生成完成后再试。")
            return
        QDesktopServices.openUrl(QUrl(url))

    def _on_snapshot(self) -> None:
        """保存快照：有放大视图时只截该视图，否则截三个切面。"""
        expanded = self._expanded_axis()
        if expanded is not None:
            snapshot = self._view_model.snapshot(expanded)
            items = [] if snapshot is None else [snapshot]
        else:
            items = self._view_model.snapshot_all()
        if not items:
            self.statusBar().showMessage("画布尚未就绪，无法截图。", 2500)
            return
        self._snapshots.extendleft(items)
        self.statusBar().showMessage(f"已保存快照（共 {len(self._snapshots)} 张）", 2500)

    def _on_export_snapshots(self) -> None:
        """菜单「导出快照」：选目录后把所有快照保存为 PNG。"""
        if not self._snapshots:
            QMessageBox.information(self, "提示", "还没有快照，请先使用「保存快照」。")
            return
        dir_path = QFileDialog.getExistingDirectory(self, "选择快照导出目录")
        if not dir_path:
            return
        try:
            written = export_snapshots(self._snapshots, Path(dir_path))
        except OSError as e:
            logger.warning("导出快照失败：%s", e)
            QMessageBox.critical(self, "错误", f"导出快照失败：{e}")
            return
        self.statusBar().showMessage(f"已导出 {len(written)} 张快照到 {dir_path}", 4000)

    def _on_clear_snapshots(self) -> None:
        self._snapshots.clear()
        self.statusBar().showMessage("已清空快照", 2500)

    def _on_mode_changed(self, _index: int) -> None:
        self._view_model.set_threshold_mode(self._mode_combo.currentData())

    def _sync_threshold_widgets(self) -> None:
        threshold = self._view_model.app_state.threshold
        is_value = threshold.mode is ThresholdMode.VALUE
        self._value_spin.setEnabled(is_value)
        self._percentile_spin.setEnabled(not is_value)
        self._value_spin.blockSignals(True)
        self._value_spin.setValue(threshold.value)
        self._value_spin.blockSignals(False)

    # ---------- 放大单个视图 ----------

    def _expanded_axis(self):
        visible = [axis for axis, view in self._views.items() if view.isVisible()]
        return visible[0] if len(visible) == 1 else None

    def keyPressEvent(self, event: QKeyEvent) -> None:
        """X / Y / Z 放大对应切面，Esc 还原三视图。"""
        if event.modifiers() & (Qt.ControlModifier | Qt.AltModifier | Qt.MetaModifier):
            super().keyPressEvent(event)
            return
        key = event.text().lower()
        if key in ("x", "y", "z"):
            target = Axis.from_orientation(key)
            for axis, view in self._views.items():
                view.setVisible(axis is target)
            return
        if event.key() == Qt.Key_Escape:
            for view in self._views.values():
                view.setVisible(True)
            return
        super().keyPressEvent(event)

    # ---------- ViewModel 信号槽 ----------

    def _on_volume_changed(self, _slot: str) -> None:
        self._update_error_label()
        self._sync_threshold_widgets()
        self._refresh_all()

    def _on_load_failed(self, slot: str, message: str) -> None:
        self._update_error_label()

    def _on_loading_changed(self, slot: str, loading: bool) -> None:
        if loading:
            name = "背景" if slot == Slot.BACKGROUND.value else "统计图"
            self.statusBar().showMessage(f"正在加载{name}…")

    def _on_cursor_changed(self) -> None:
        """光标变化：三视图同步滑条/坐标并重新渲染。"""
        self._refresh_all()

    def _on_preview_changed(self, axis: int, index: int) -> None:
        self._views[Axis(axis)].refresh_preview(index)

    def _on_render_settings_changed(self) -> None:
        self._sync_threshold_widgets()
        self._render_views()

    def _update_error_label(self) -> None:
        lines = []
        for slot, name in ((Slot.BACKGROUND, "背景"), (Slot.OVERLAY, "统计图")):
            error = self._view_model.slot_status(slot).error
            if error:
                lines.append(f"{name}：{error}")
        self._error_label.setText("\n".join(lines))
        self._error_label.setVisible(bool(lines))

    def _refresh_all(self) -> None:
        for view in self._views.values():
            view.refresh_from_cursor()
        self._render_views()

    def _render_views(self) -> None:
        """三切面一起渲染（阈值只算一次），再分发给各视图。"""
        planes = self._view_model.render_all()
        for axis, view in self._views.items():
            view.set_pixels(planes.get(axis))

    def closeEvent(self, event) -> None:
        self._view_model.shutdown()
        super().closeEvent(event)
