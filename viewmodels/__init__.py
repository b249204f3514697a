# -*- coding: utf-8 -*-
"""
ViewModel 层：连接 Model 与 View，暴露状态与命令，驱动 UI 更新。
- MainViewModel：体数据加载、光标/阈值/叠加样式状态、切面渲染与点击反算，通过信号通知 View 刷新。
- VolumeLoadWorker：后台加载任务。
"""

from .load_worker import VolumeLoadWorker
from .main_view_model import MainViewModel

__all__ = ["MainViewModel", "VolumeLoadWorker"]
