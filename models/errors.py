# -*- coding: utf-8 -*-
"""
体数据加载相关异常（Model）。
所有异常均可在调用方恢复：失败只影响对应的体数据槽位，不影响另一槽位的渲染。
"""


class VolumeError(Exception):
    """体数据加载/解码异常基类。"""


class FormatError(VolumeError):
    """头部缺失、魔数不识别、数据类型不支持或压缩数据损坏。"""


class InvalidDimensionsError(VolumeError):
    """头部声明的某个空间维度为 0。"""


class VolumeIOError(VolumeError, OSError):
    """字节源不可用：在拿到完整头部之前读取/传输失败。"""


class StaleResultDiscarded(VolumeError):
    """过期的加载结果（已被更新的加载取代），调用方应静默丢弃。"""
