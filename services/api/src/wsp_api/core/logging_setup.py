"""日志初始化。"""

import logging

from wsp_api.core.config import Settings, get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(settings: Settings | None = None) -> None:
    """按配置初始化根日志器，重复调用只调整级别。"""
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level, logging.INFO)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    root.setLevel(level)
    logging.getLogger("wsp_api").setLevel(level)
