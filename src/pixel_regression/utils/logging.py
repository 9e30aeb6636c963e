"""日志初始化。"""

from __future__ import annotations

import logging


def setup_logging(level: int = logging.INFO) -> None:
    """初始化项目日志配置，批量模式下线程名可区分不同用例。"""

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(threadName)s] %(levelname)s %(name)s: %(message)s",
    )
    # requests 底层连接日志过于冗长
    logging.getLogger("urllib3").setLevel(max(level, logging.WARNING))
