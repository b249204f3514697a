# -*- coding: utf-8 -*-
"""decode_volume：压缩识别、头部校验、数据类型归一化、错误分类。"""

import gzip

import nibabel as nib
import numpy as np
import pytest

from models import FormatError, InvalidDimensionsError, VolumeIOError, decode_volume
from tests.conftest import make_nifti_bytes

DIM1_OFFSET = 42  # dim[1] (int16)
PIXDIM1_OFFSET = 80  # pixdim[1] (float32)
VOX_OFFSET_OFFSET = 108  # vox_offset (float32)
MAGIC_OFFSET = 344


def test_float32_kept_verbatim_with_row_major_layout():
    arr = np.arange(24, dtype=np.float32).reshape((2, 3, 4), order="F") * 0.5 - 3.0
    volume = decode_volume(make_nifti_bytes(arr, spacing=(2.0, 3.0, 4.0)))

    assert volume.dims == (2, 3, 4)
    assert volume.spacing == (2.0, 3.0, 4.0)
    assert volume.data.dtype == np.float32
    assert volume.value_range == (-3.0, 8.5)
    # 步长 (1, nx, nx*ny)
    for i, j, k in [(0, 0, 0), (1, 2, 3), (1, 0, 2)]:
        assert volume.value_at(i, j, k) == arr[i, j, k]


def test_gzip_is_detected_and_decompressed():
    arr = np.random.default_rng(0).random((3, 4, 5)).astype(np.float32)
    plain = decode_volume(make_nifti_bytes(arr))
    packed = decode_volume(make_nifti_bytes(arr, compress=True))
    np.testing.assert_array_equal(plain.data, packed.data)


@pytest.mark.parametrize("dtype", [np.int8, np.uint8, np.int16, np.uint16, np.int32, np.uint32])
def test_integer_types_rescaled_to_unit_range(dtype):
    arr = np.array([[[10, 20], [30, 40]], [[50, 60], [70, 110]]], dtype=dtype)
    volume = decode_volume(make_nifti_bytes(arr))

    assert volume.value_range == (0.0, 1.0)
    assert volume.value_at(0, 0, 0) == pytest.approx(0.0)
    assert volume.value_at(1, 1, 1) == pytest.approx(1.0)
    assert volume.value_at(0, 0, 1) == pytest.approx(10 / 100)


def test_degenerate_integer_range_uses_unit_divisor():
    arr = np.full((2, 2, 2), 100, dtype=np.int16)
    volume = decode_volume(make_nifti_bytes(arr))
    assert np.all(volume.data == 0.0)
    assert volume.value_range == (0.0, 0.0)


def test_float64_narrowed_without_rescaling():
    arr = np.array([[[1.5, -2.25]]], dtype=np.float64)
    volume = decode_volume(make_nifti_bytes(arr))
    assert volume.data.dtype == np.float32
    assert volume.value_range == (-2.25, 1.5)


def test_spacing_uses_absolute_value_and_defaults_to_one():
    raw = bytearray(make_nifti_bytes(np.zeros((2, 2, 2), dtype=np.float32), spacing=(2, 2, 2)))
    raw[PIXDIM1_OFFSET:PIXDIM1_OFFSET + 4] = np.float32(-3.0).tobytes()
    raw[PIXDIM1_OFFSET + 4:PIXDIM1_OFFSET + 8] = np.float32(0.0).tobytes()
    volume = decode_volume(bytes(raw))
    assert volume.spacing == (3.0, 1.0, 2.0)


def test_bad_magic_raises_format_error():
    raw = bytearray(make_nifti_bytes(np.zeros((2, 2, 2), dtype=np.float32)))
    raw[MAGIC_OFFSET:MAGIC_OFFSET + 4] = b"abcd"
    with pytest.raises(FormatError):
        decode_volume(bytes(raw))


def test_zero_dimension_raises_invalid_dimensions():
    raw = bytearray(make_nifti_bytes(np.zeros((2, 2, 2), dtype=np.float32)))
    raw[DIM1_OFFSET:DIM1_OFFSET + 2] = np.int16(0).tobytes()
    with pytest.raises(InvalidDimensionsError):
        decode_volume(bytes(raw))


def test_unsupported_datatype_raises_format_error():
    arr = np.zeros((2, 2, 2), dtype=np.complex64)
    raw = nib.Nifti1Image(arr, np.eye(4)).to_bytes()
    with pytest.raises(FormatError):
        decode_volume(raw)


def test_truncated_payload_raises_format_error():
    raw = make_nifti_bytes(np.zeros((4, 4, 4), dtype=np.float32))
    with pytest.raises(FormatError):
        decode_volume(raw[:-16])


@pytest.mark.parametrize("vox_offset", [1e20, float("inf"), float("nan"), 4096.0])
def test_out_of_range_data_offset_raises_format_error(vox_offset):
    raw = bytearray(make_nifti_bytes(np.zeros((2, 2, 2), dtype=np.float32)))
    raw[VOX_OFFSET_OFFSET:VOX_OFFSET_OFFSET + 4] = np.float32(vox_offset).tobytes()
    with pytest.raises(FormatError):
        decode_volume(bytes(raw))


def test_corrupt_gzip_raises_format_error():
    packed = gzip.compress(make_nifti_bytes(np.zeros((2, 2, 2), dtype=np.float32)))
    with pytest.raises(FormatError):
        decode_volume(packed[:20])


@pytest.mark.parametrize("raw", [b"", b"\x00" * 100])
def test_missing_header_bytes_raise_io_error(raw):
    with pytest.raises(VolumeIOError):
        decode_volume(raw)


def test_io_error_is_an_oserror():
    assert issubclass(VolumeIOError, OSError)
