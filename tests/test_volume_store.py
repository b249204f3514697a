# -*- coding: utf-8 -*-
import numpy as np
import pytest

from models import Slot, StaleResultDiscarded, VolumeError, VolumeStore
from tests.conftest import volume_from_array


@pytest.fixture
def volume():
    return volume_from_array(np.ones((2, 2, 2), dtype=np.float32))


def test_commit_with_current_generation(volume):
    store = VolumeStore()
    generation = store.begin(Slot.BACKGROUND)
    assert store.is_loading(Slot.BACKGROUND)
    store.commit(Slot.BACKGROUND, generation, volume)
    assert store.get(Slot.BACKGROUND) is volume
    assert not store.is_loading(Slot.BACKGROUND)
    assert store.get(Slot.OVERLAY) is None


def test_superseded_load_is_discarded(volume):
    store = VolumeStore()
    first = store.begin(Slot.OVERLAY)
    second = store.begin(Slot.OVERLAY)
    store.commit(Slot.OVERLAY, second, volume)
    with pytest.raises(StaleResultDiscarded):
        store.commit(Slot.OVERLAY, first, volume_from_array(np.zeros((3, 3, 3), dtype=np.float32)))
    with pytest.raises(StaleResultDiscarded):
        store.fail(Slot.OVERLAY, first, "boom")
    assert store.get(Slot.OVERLAY) is volume
    assert store.error(Slot.OVERLAY) == ""


def test_failure_empties_slot_and_records_message(volume):
    store = VolumeStore()
    store.commit(Slot.OVERLAY, store.begin(Slot.OVERLAY), volume)
    generation = store.begin(Slot.OVERLAY)
    store.fail(Slot.OVERLAY, generation, "GET → 404")
    assert store.get(Slot.OVERLAY) is None
    assert store.error(Slot.OVERLAY) == "GET → 404"
    store.begin(Slot.OVERLAY)
    assert store.error(Slot.OVERLAY) == ""


def test_clear_and_invalidate_all(volume):
    store = VolumeStore()
    background = store.begin(Slot.BACKGROUND)
    overlay = store.begin(Slot.OVERLAY)
    store.clear(Slot.OVERLAY)
    assert not store.is_current(Slot.OVERLAY, overlay)

    store.invalidate_all()
    assert not store.is_loading(Slot.BACKGROUND)
    with pytest.raises(StaleResultDiscarded):
        store.commit(Slot.BACKGROUND, background, volume)
    assert store.get(Slot.BACKGROUND) is None


def test_stale_result_is_a_volume_error():
    assert issubclass(StaleResultDiscarded, VolumeError)
