# -*- coding: utf-8 -*-
"""
统计图阈值计算（Model）。
百分位模式对大体数据按固定步长抽样（约 20 万个样本）后排序取值，
是有意的近似，以限制每次重算的开销。
"""

import math
from typing import Optional

import numpy as np

from .app_state import ThresholdConfig, ThresholdMode, clamp_percentile
from .volume import Volume

PERCENTILE_SAMPLE_CAP = 200_000


def sample_stride(count: int, sample_cap: int = PERCENTILE_SAMPLE_CAP) -> int:
    return max(1, math.ceil(count / sample_cap))


def sampled_percentile(
    data: np.ndarray, p: float, sample_cap: int = PERCENTILE_SAMPLE_CAP
) -> float:
    """步长抽样后的百分位数，p 钳制到 [0,100]；空数据返回 0。"""
    if data.size == 0:
        return 0.0
    sample = np.sort(data[:: sample_stride(data.size, sample_cap)])
    p = clamp_percentile(p)
    k = math.floor(p / 100.0 * (sample.size - 1))
    k = max(0, min(sample.size - 1, k))
    return float(sample[k])


def compute_threshold(
    overlay: Optional[Volume],
    config: ThresholdConfig,
    sample_cap: int = PERCENTILE_SAMPLE_CAP,
) -> Optional[float]:
    """无统计图时返回 None；VALUE 模式返回字面值；PERCENTILE 模式抽样计算。"""
    if overlay is None:
        return None
    if config.mode is ThresholdMode.VALUE:
        return float(config.value)
    return sampled_percentile(overlay.data, config.percentile, sample_cap)
