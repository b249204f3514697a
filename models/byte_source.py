# -*- coding: utf-8 -*-
"""
体数据字节源（Model）。
背景体数据来自固定位置；统计图按查询词与生成参数拼出地址。
字节源只负责取回原始字节，解码交给 decode_volume。
"""

import logging
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from .errors import VolumeIOError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OverlayRequest:
    """统计图生成参数：查询词 + 体素大小、高斯 FWHM、核形状、半径。"""

    query: str
    voxel_size_mm: float = 2.0
    smoothing_fwhm: float = 10.0
    kernel: str = "gauss"
    radius: float = 6.0

    def to_url(self, api_base: str) -> str:
        params = urllib.parse.urlencode(
            {
                "voxel": f"{self.voxel_size_mm:g}",
                "fwhm": f"{self.smoothing_fwhm:g}",
                "kernel": self.kernel,
                "r": f"{self.radius:g}",
            }
        )
        query = urllib.parse.quote(self.query, safe="")
        return f"{api_base.rstrip('/')}/query/{query}/nii?{params}"


class ByteSource:
    """不透明的字节提供者，fetch() 在后台线程中调用。"""

    def fetch(self) -> bytes:
        raise NotImplementedError

    def describe(self) -> str:
        return type(self).__name__


class FileByteSource(ByteSource):
    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def fetch(self) -> bytes:
        try:
            return self.path.read_bytes()
        except OSError as e:
            raise VolumeIOError(f"读取 {self.path} 失败：{e}") from e

    def describe(self) -> str:
        return str(self.path)


class HttpByteSource(ByteSource):
    def __init__(self, url: str, timeout: float = 30.0):
        self.url = url
        self.timeout = timeout

    def fetch(self) -> bytes:
        logger.debug("GET %s", self.url)
        try:
            with urllib.request.urlopen(self.url, timeout=self.timeout) as response:
                return response.read()
        except urllib.error.HTTPError as e:
            body = e.read().decode("utf-8", errors="replace")
            raise VolumeIOError(f"GET {self.url} → {e.code} {body}".strip()) from e
        except (urllib.error.URLError, OSError) as e:
            raise VolumeIOError(f"GET {self.url} 失败：{e}") from e

    def describe(self) -> str:
        return self.url


def source_for(location: str, timeout: float = 30.0) -> ByteSource:
    """http(s) 地址使用 HttpByteSource，其它视为本地路径。"""
    if location.startswith(("http://", "https://")):
        return HttpByteSource(location, timeout=timeout)
    return FileByteSource(location)
