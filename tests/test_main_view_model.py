# -*- coding: utf-8 -*-
"""MainViewModel：加载代号、失败隔离、光标/坐标输入、滑条去抖、渲染与快照。"""

import numpy as np
import pytest
from PySide6.QtCore import QEventLoop, QTimer

from models import (
    Axis,
    ByteSource,
    CanonicalAtlasMapper,
    CursorPosition,
    GenericMapper,
    OverlayRequest,
    Slot,
    ThresholdMode,
    ViewerConfig,
)
from viewmodels import MainViewModel
from tests.conftest import (
    DeferredPool,
    FailingSource,
    ImmediatePool,
    MemorySource,
    make_nifti_bytes,
    volume_from_array,
)


def _source(shape, fill=0.0, spacing=(2.0, 2.0, 2.0), dtype=np.float32):
    return MemorySource(make_nifti_bytes(np.full(shape, fill, dtype=dtype), spacing))


@pytest.fixture
def vm(qapp):
    view_model = MainViewModel(ViewerConfig(api_base="http://api"), thread_pool=ImmediatePool())
    yield view_model
    view_model.shutdown()


@pytest.fixture
def atlas_vm(vm, atlas_dims):
    vm.load_background(_source(atlas_dims, 100.0))
    return vm


def test_background_load_centres_cursor_and_selects_atlas(atlas_vm):
    assert atlas_vm.canvas_dims == (91, 109, 91)
    assert atlas_vm.cursor == CursorPosition(45, 54, 45)
    assert atlas_vm.preview_cursor == atlas_vm.cursor
    assert isinstance(atlas_vm.mapper, CanonicalAtlasMapper)
    assert atlas_vm.display_coordinates() == (0.0, -18.0, 18.0)
    assert atlas_vm.index_bounds() == ((0, 90), (0, 108), (0, 90))
    assert atlas_vm.slot_status(Slot.BACKGROUND) == (True, False, "")


def test_nothing_loaded_renders_nothing(vm):
    assert vm.canvas_dims is None
    assert vm.render_plane(Axis.Z) is None
    assert vm.render_all() == {}
    assert vm.display_coordinates() is None
    assert vm.index_bounds() == ((0, 0), (0, 0), (0, 0))
    assert not vm.commit_coordinate_text(Axis.X, "10")
    vm.set_cursor(3, 3, 3)
    assert vm.cursor == CursorPosition(0, 0, 0)


def test_single_suprathreshold_voxel_end_to_end(atlas_vm, atlas_dims):
    stat = np.zeros(atlas_dims, dtype=np.float32)
    stat[50, 60, 40] = 10.0
    atlas_vm.load_overlay(MemorySource(make_nifti_bytes(stat, (2, 2, 2))))
    atlas_vm.set_threshold_mode(ThresholdMode.VALUE)
    atlas_vm.set_threshold_value(5)
    atlas_vm.set_overlay_alpha(1.0)
    atlas_vm.set_positive_only(True)
    atlas_vm.set_use_absolute(False)
    atlas_vm.set_cursor(50, 60, 40)

    rgba = atlas_vm.render_plane(Axis.Z)
    assert rgba[48, 40].tolist() == [255, 0, 0, 255]
    gray = rgba[..., :3].copy()
    gray[48, 40] = 0
    assert not gray.any()


def test_overlay_failure_leaves_background_intact(atlas_vm):
    failures = []
    atlas_vm.load_failed.connect(lambda slot, message: failures.append((slot, message)))
    before = atlas_vm.render_plane(Axis.Y)

    atlas_vm.load_overlay(FailingSource())

    assert atlas_vm.overlay is None
    assert atlas_vm.background is not None
    status = atlas_vm.slot_status(Slot.OVERLAY)
    assert not status.loaded and not status.loading
    assert "500" in status.error
    assert failures == [("overlay", status.error)]
    np.testing.assert_array_equal(atlas_vm.render_plane(Axis.Y), before)


def test_corrupt_bytes_are_reported_as_failure(vm):
    vm.load_background(MemorySource(b"not a nifti file" * 40))
    status = vm.slot_status(Slot.BACKGROUND)
    assert not status.loaded
    assert status.error


def test_bad_data_offset_fails_once_and_stops_loading(vm):
    raw = bytearray(make_nifti_bytes(np.zeros((3, 3, 3), dtype=np.float32)))
    raw[108:112] = np.float32(1e20).tobytes()  # vox_offset
    failures = []
    vm.load_failed.connect(lambda slot, message: failures.append(slot))

    vm.load_background(MemorySource(bytes(raw)))

    status = vm.slot_status(Slot.BACKGROUND)
    assert not status.loaded and not status.loading
    assert status.error
    assert failures == ["background"]


def test_unexpected_source_error_is_reported(vm):
    class BrokenSource(ByteSource):
        def fetch(self) -> bytes:
            raise RuntimeError("decoder crashed")

    vm.load_overlay(BrokenSource())

    status = vm.slot_status(Slot.OVERLAY)
    assert not status.loading
    assert "decoder crashed" in status.error


def test_superseded_load_never_lands(qapp):
    pool = DeferredPool()
    vm = MainViewModel(thread_pool=pool)
    first = vm.load_background(_source((3, 3, 3)))
    second = vm.load_background(_source((5, 5, 5)))
    assert second > first

    pool.workers[1].run()
    pool.workers[0].run()

    assert vm.background.dims == (5, 5, 5)
    assert not vm.slot_status(Slot.BACKGROUND).loading


def test_shutdown_discards_in_flight_loads(qapp):
    pool = DeferredPool()
    vm = MainViewModel(thread_pool=pool)
    loading = []
    vm.loading_changed.connect(lambda slot, flag: loading.append((slot, flag)))
    vm.load_background(_source((3, 3, 3)))
    vm.shutdown()
    pool.workers[0].run()

    assert vm.background is None
    assert loading == [("background", True), ("background", False)]


def test_overlay_request_builds_url_and_empty_query_clears(qapp):
    pool = DeferredPool()
    vm = MainViewModel(ViewerConfig(api_base="http://api"), thread_pool=pool)
    vm.set_overlay_request(OverlayRequest("emotion", smoothing_fwhm=6))
    assert pool.workers[0].source.url == (
        "http://api/query/emotion/nii?voxel=2&fwhm=6&kernel=gauss&r=6"
    )
    assert vm.slot_status(Slot.OVERLAY).loading

    assert vm.set_overlay_request(OverlayRequest("   ")) is None
    assert not vm.slot_status(Slot.OVERLAY).loading
    assert vm.app_state.overlay_request is None
    stale = pool.workers[0]
    stale.signals.finished.emit("overlay", stale.generation, volume_from_array(np.ones((2, 2, 2))))
    assert vm.overlay is None


def test_overlay_only_canvas(vm):
    vm.load_overlay(_source((3, 4, 5), 1.0, spacing=(1, 1, 1)))
    assert vm.canvas_dims == (3, 4, 5)
    assert vm.cursor == CursorPosition(1, 2, 2)
    assert isinstance(vm.mapper, GenericMapper)
    assert vm.render_plane(Axis.X).shape == (5, 4, 4)


def test_overlay_with_other_grid_does_not_change_render(qapp):
    vm = MainViewModel(thread_pool=ImmediatePool())
    arr = np.random.default_rng(5).random((4, 5, 6)).astype(np.float32)
    vm.load_background(MemorySource(make_nifti_bytes(arr)))
    vm.set_overlay_alpha(1.0)
    before = vm.render_all()
    vm.load_overlay(_source((2, 2, 2), 9.0))
    assert vm.overlay is not None
    after = vm.render_all()
    for axis in Axis:
        np.testing.assert_array_equal(before[axis], after[axis])


def test_threshold_value_clamped_into_new_overlay_range(atlas_vm, atlas_dims):
    atlas_vm.set_threshold_value(50)
    stat = np.zeros(atlas_dims, dtype=np.float32)
    stat[0, 0, 0] = 10.0
    atlas_vm.load_overlay(MemorySource(make_nifti_bytes(stat, (2, 2, 2))))
    assert atlas_vm.app_state.threshold.value == 10.0


def test_percentile_input_fallback_and_clamp(vm):
    vm.set_percentile("abc")
    assert vm.app_state.threshold.percentile == 95.0
    vm.set_percentile("120")
    assert vm.app_state.threshold.percentile == 100.0
    vm.set_percentile(float("nan"))
    assert vm.app_state.threshold.percentile == 95.0


def test_set_cursor_clamps(atlas_vm):
    atlas_vm.set_cursor(-5, 500, 40)
    assert atlas_vm.cursor == CursorPosition(0, 108, 40)


@pytest.mark.parametrize("text", ["", "-", "+", "abc", "nan", "inf", "   "])
def test_unparsable_coordinate_text_is_ignored(atlas_vm, text):
    before = atlas_vm.cursor
    assert not atlas_vm.commit_coordinate_text(Axis.X, text)
    assert atlas_vm.cursor == before


def test_coordinate_text_moves_cursor(atlas_vm):
    assert atlas_vm.commit_coordinate_text(Axis.X, " 10 ")
    assert atlas_vm.cursor.ix == 40
    assert atlas_vm.commit_coordinate_text(Axis.Z, "-72")
    assert atlas_vm.cursor.iz == 0
    assert atlas_vm.commit_coordinate_text(Axis.Y, "1000")
    assert atlas_vm.cursor.iy == 108


def test_format_coordinate():
    assert MainViewModel.format_coordinate(12.0) == "+12.0"
    assert MainViewModel.format_coordinate(-4.0) == "-4.0"
    assert MainViewModel.format_coordinate(-0.0) == "+0.0"
    assert MainViewModel.format_coordinate(None) == "—"


def test_slider_preview_commits_on_flush(atlas_vm):
    previews = []
    cursor_events = []
    atlas_vm.preview_changed.connect(lambda axis, value: previews.append((axis, value)))
    atlas_vm.cursor_changed.connect(lambda: cursor_events.append(atlas_vm.cursor))

    atlas_vm.preview_axis(Axis.Z, 10)
    atlas_vm.preview_axis(Axis.Z, 500)

    assert previews == [(2, 10), (2, 90)]
    assert atlas_vm.cursor.iz == 45
    assert atlas_vm.preview_cursor.iz == 90
    assert cursor_events == []

    atlas_vm.flush_preview()
    assert atlas_vm.cursor.iz == 90
    assert cursor_events == [CursorPosition(45, 54, 90)]
    atlas_vm.flush_preview()
    assert len(cursor_events) == 1


def test_slider_preview_commits_after_quiet_gap(qapp):
    vm = MainViewModel(ViewerConfig(slider_debounce_ms=20), thread_pool=ImmediatePool())
    vm.load_background(_source((5, 5, 5)))
    cursor_events = []
    vm.cursor_changed.connect(lambda: cursor_events.append(vm.cursor))

    vm.preview_axis(Axis.Z, 1)
    vm.preview_axis(Axis.Z, 4)
    assert cursor_events == []

    loop = QEventLoop()
    QTimer.singleShot(100, loop.quit)
    loop.exec()

    assert cursor_events == [CursorPosition(2, 2, 4)]
    assert vm.preview_cursor == vm.cursor
    vm.shutdown()


def test_pending_preview_survives_other_axis_updates(atlas_vm):
    atlas_vm.preview_axis(Axis.X, 3)
    atlas_vm.set_axis_index(Axis.Y, 7)
    assert atlas_vm.preview_cursor == CursorPosition(3, 7, 45)
    assert atlas_vm.cursor == CursorPosition(45, 7, 45)


def test_click_updates_in_plane_axes(atlas_vm):
    viewport = atlas_vm.viewport_for(Axis.Z, 91, 109)
    assert atlas_vm.click(Axis.Z, viewport, 0.5, 0.5)
    assert atlas_vm.cursor == CursorPosition(90, 108, 45)
    sx, sy = atlas_vm.crosshair_for(Axis.Z, viewport)
    assert (sx, sy) == (0.5, 0.5)

    letterboxed = atlas_vm.viewport_for(Axis.Z, 400, 400)
    assert not atlas_vm.click(Axis.Z, letterboxed, 2, 200)


def test_snapshot_captures_state_at_creation(atlas_vm):
    snapshot = atlas_vm.snapshot(Axis.X)
    atlas_vm.set_overlay_alpha(0.9)
    atlas_vm.set_threshold_mode(ThresholdMode.VALUE)

    assert snapshot.pixels.shape == (91, 109, 4)
    assert snapshot.cursor == CursorPosition(45, 54, 45)
    assert snapshot.overlay_style.alpha == 0.5
    assert snapshot.threshold.mode is ThresholdMode.PERCENTILE
    assert snapshot.to_dict()["axis"] == "x"
    assert len(atlas_vm.snapshot_all()) == 3
