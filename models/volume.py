# -*- coding: utf-8 -*-
"""
NIfTI 体数据封装与解码（Model）。
decode_volume 负责：识别 gzip 压缩并解压、用 nibabel 校验头部（魔数/维度/数据类型/体素间距）、
按声明的数据类型读取体素并归一化为 float32 扁平数组。不包含任何 UI 与网络逻辑。
"""

import gzip
import logging
import zlib
from dataclasses import dataclass
from typing import Tuple

import numpy as np
from nibabel.nifti1 import Nifti1Header
from nibabel.nifti2 import Nifti2Header
from nibabel.spatialimages import HeaderDataError
from nibabel.wrapstruct import WrapStructError

from .errors import FormatError, InvalidDimensionsError, VolumeIOError

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"
NIFTI1_HEADER_SIZE = 348
NIFTI2_HEADER_SIZE = 540

# NIfTI datatype 代码 -> numpy 类型，仅支持以下 8 种
SUPPORTED_DATATYPES = {
    2: np.uint8,
    4: np.int16,
    8: np.int32,
    16: np.float32,
    64: np.float64,
    256: np.int8,
    512: np.uint16,
    768: np.uint32,
}


@dataclass(frozen=True)
class Volume:
    """
    归一化后的三维体数据。
    - data：float32 扁平数组，长度 nx*ny*nz，x 变化最快（步长 1, nx, nx*ny）
    - dims：(nx, ny, nz)
    - spacing：各轴体素间距（mm，正数）
    - value_range：归一化后数据的 (min, max)
    """

    data: np.ndarray
    dims: Tuple[int, int, int]
    spacing: Tuple[float, float, float]
    value_range: Tuple[float, float]

    def as_grid(self) -> np.ndarray:
        """返回 (nz, ny, nx) 视图，grid[k, j, i] 即体素 (i, j, k)。"""
        nx, ny, nz = self.dims
        return self.data.reshape(nz, ny, nx)

    def value_at(self, i: int, j: int, k: int) -> float:
        nx, ny, _ = self.dims
        return float(self.data[i + j * nx + k * nx * ny])


def maybe_decompress(raw: bytes) -> bytes:
    """若为 gzip 数据则解压，否则原样返回。"""
    if raw[:2] != GZIP_MAGIC:
        return raw
    try:
        return gzip.decompress(raw)
    except (OSError, EOFError, zlib.error) as e:
        raise FormatError(f"gzip 数据损坏：{e}") from e


def _read_header(buffer: bytes):
    """按 sizeof_hdr 选择 NIfTI-1 / NIfTI-2 头部并用 nibabel 校验。"""
    if len(buffer) < NIFTI1_HEADER_SIZE:
        raise VolumeIOError(
            f"数据不完整：仅收到 {len(buffer)} 字节，头部需要 {NIFTI1_HEADER_SIZE} 字节"
        )
    sizes = {int.from_bytes(buffer[:4], order) for order in ("little", "big")}
    if NIFTI2_HEADER_SIZE in sizes:
        header_klass, header_size = Nifti2Header, NIFTI2_HEADER_SIZE
        if len(buffer) < header_size:
            raise VolumeIOError(f"数据不完整：NIfTI-2 头部需要 {header_size} 字节")
    else:
        header_klass, header_size = Nifti1Header, NIFTI1_HEADER_SIZE
    try:
        return header_klass(binaryblock=buffer[:header_size], check=True)
    except (HeaderDataError, WrapStructError, ValueError, OverflowError) as e:
        raise FormatError(f"不是有效的 NIfTI 文件：{e}") from e


def _normalize(payload: np.ndarray) -> np.ndarray:
    """整型按自身 min/max 线性缩放到 [0,1]；float32 原样；float64 收窄为 float32。"""
    if np.issubdtype(payload.dtype, np.integer):
        values = payload.astype(np.float64)
        lo = values.min()
        hi = values.max()
        value_range = (hi - lo) or 1.0
        return ((values - lo) / value_range).astype(np.float32)
    return payload.astype(np.float32)


def _finite_range(data: np.ndarray) -> Tuple[float, float]:
    finite = data[np.isfinite(data)]
    if finite.size == 0:
        return 0.0, 0.0
    return float(finite.min()), float(finite.max())


def decode_volume(raw: bytes) -> Volume:
    """
    将原始字节（可选 gzip 压缩）解码为 Volume。
    失败时抛出 FormatError / InvalidDimensionsError / VolumeIOError，本函数不做重试。
    """
    if not raw:
        raise VolumeIOError("字节源返回空数据")
    buffer = maybe_decompress(bytes(raw))
    header = _read_header(buffer)

    code = int(header["datatype"])
    if code not in SUPPORTED_DATATYPES:
        raise FormatError(f"不支持的数据类型代码：{code}")
    dtype = np.dtype(SUPPORTED_DATATYPES[code]).newbyteorder(header.endianness)

    dim = header["dim"]
    nx, ny, nz = (int(d) for d in dim[1:4])
    if nx <= 0 or ny <= 0 or nz <= 0:
        raise InvalidDimensionsError(f"无效的空间维度：{(nx, ny, nz)}")

    pixdim = header["pixdim"]
    spacing = tuple(abs(float(p)) or 1.0 for p in pixdim[1:4])

    try:
        offset = int(header.get_data_offset()) or len(header.binaryblock) + 4
    except (ValueError, OverflowError) as e:
        raise FormatError(f"无效的数据偏移 vox_offset：{e}") from e
    count = nx * ny * nz
    if offset < 0 or offset + count * dtype.itemsize > len(buffer):
        raise FormatError(
            f"体素数据长度不足：偏移 {offset} 处需要 {count} 个 {dtype.name}，"
            f"实际只有 {len(buffer)} 字节"
        )
    try:
        payload = np.frombuffer(buffer, dtype=dtype, count=count, offset=offset)
    except (ValueError, OverflowError) as e:
        raise FormatError(f"体素数据无法读取：{e}") from e

    data = _normalize(payload)
    volume = Volume(
        data=data,
        dims=(nx, ny, nz),
        spacing=spacing,
        value_range=_finite_range(data),
    )
    logger.debug("解码完成：dims=%s spacing=%s dtype=%s", volume.dims, spacing, dtype.name)
    return volume
