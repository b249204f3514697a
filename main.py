# -*- coding: utf-8 -*-
"""
NIfTI 切片浏览器 - 程序入口。
解析命令行参数、配置日志，创建 ViewModel 与主窗口，启动背景与（可选）统计图加载。
"""

import argparse
import logging
import sys

from PySide6.QtWidgets import QApplication

from models import OverlayRequest, ViewerConfig
from models.app_state import DEFAULT_API_BASE
from viewmodels import MainViewModel
from views import MainWindow

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="NIfTI 背景 + 统计图三切面浏览器")
    parser.add_argument(
        "--background",
        help="背景体数据的本地路径或 URL（默认 {api-base}/static/mni_2mm.nii.gz）",
    )
    parser.add_argument("--api-base", default=DEFAULT_API_BASE, help="统计图服务地址")
    parser.add_argument("--query", default="", help="启动时加载的统计图查询词")
    parser.add_argument("--fwhm", type=float, default=10.0, help="统计图高斯平滑 FWHM (mm)")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="日志级别",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> ViewerConfig:
    return ViewerConfig(api_base=args.api_base, background_source=args.background)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    app = QApplication(sys.argv[:1])
    view_model = MainViewModel(build_config(args))
    window = MainWindow(view_model)
    window.show()

    view_model.load_background()
    if args.query:
        view_model.set_overlay_request(OverlayRequest(args.query, smoothing_fwhm=args.fwhm))
    logger.info("界面已启动，服务地址 %s", args.api_base)
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
