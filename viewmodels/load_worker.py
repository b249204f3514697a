# -*- coding: utf-8 -*-
"""
后台体数据加载任务（ViewModel 辅助）。
在 QThreadPool 线程中取字节并解码，通过信号把结果（连同槽位与加载代号）送回 GUI 线程。
"""

import logging

from PySide6.QtCore import QObject, QRunnable, Signal

from models import ByteSource, VolumeError, decode_volume

logger = logging.getLogger(__name__)


class LoadSignals(QObject):
    # (slot, generation, Volume)
    finished = Signal(str, int, object)
    # (slot, generation, error_message)
    failed = Signal(str, int, str)


class VolumeLoadWorker(QRunnable):
    """单次加载：fetch -> decode_volume。不重试，失败只报告一次。"""

    def __init__(self, slot: str, generation: int, source: ByteSource):
        super().__init__()
        self.slot = slot
        self.generation = generation
        self.source = source
        self.signals = LoadSignals()

    def run(self) -> None:
        try:
            raw = self.source.fetch()
            volume = decode_volume(raw)
        except (VolumeError, OSError) as e:
            logger.debug("加载 %s 失败：%s", self.source.describe(), e)
            self.signals.failed.emit(self.slot, self.generation, str(e))
            return
        except Exception as e:
            logger.exception("加载 %s 时发生意外错误", self.source.describe())
            self.signals.failed.emit(self.slot, self.generation, f"{type(e).__name__}: {e}")
            return
        self.signals.finished.emit(self.slot, self.generation, volume)
