# -*- coding: utf-8 -*-
"""测试共用的构造工具与夹具。"""

import gzip
import os

import nibabel as nib
import numpy as np
import pytest
from PySide6.QtWidgets import QApplication

from models import ByteSource, Volume, VolumeIOError


def make_nifti_bytes(array: np.ndarray, spacing=(1.0, 1.0, 1.0), compress: bool = False) -> bytes:
    """用 nibabel 生成单文件 NIfTI-1 字节，array[x, y, z]。"""
    affine = np.diag([float(s) for s in spacing] + [1.0])
    raw = nib.Nifti1Image(array, affine).to_bytes()
    return gzip.compress(raw) if compress else raw


def volume_from_array(array: np.ndarray, spacing=(1.0, 1.0, 1.0)) -> Volume:
    """直接由 array[x, y, z] 构造 Volume（x 变化最快），不经过解码。"""
    data = np.asarray(array, dtype=np.float32).ravel(order="F")
    return Volume(
        data=data,
        dims=tuple(int(n) for n in array.shape),
        spacing=tuple(float(s) for s in spacing),
        value_range=(float(data.min()), float(data.max())),
    )


class MemorySource(ByteSource):
    def __init__(self, payload: bytes, name: str = "memory"):
        self.payload = payload
        self.name = name

    def fetch(self) -> bytes:
        return self.payload

    def describe(self) -> str:
        return self.name


class FailingSource(ByteSource):
    def fetch(self) -> bytes:
        raise VolumeIOError("GET /query/x/nii → 500 internal error")


class ImmediatePool:
    """同步执行加载任务，信号在当前线程直接送达。"""

    def start(self, worker) -> None:
        worker.run()


class DeferredPool:
    """收集加载任务，由测试决定完成顺序。"""

    def __init__(self):
        self.workers = []

    def start(self, worker) -> None:
        self.workers.append(worker)


@pytest.fixture(scope="session")
def qapp():
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    app = QApplication.instance() or QApplication([])
    yield app


@pytest.fixture
def atlas_dims():
    return (91, 109, 91)
