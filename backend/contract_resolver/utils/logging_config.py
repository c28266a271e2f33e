"""日志配置"""
import logging
import sys
from datetime import datetime
from pathlib import Path

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

NOISY_LOGGERS = ("uvicorn", "uvicorn.access", "httpx", "httpcore")


def setup_logging(
    log_level: str = "INFO",
    log_dir: str = "logs",
    app_name: str = "contract_resolver",
) -> None:
    """
    配置日志系统：控制台 + 按日期的普通日志 + 按日期的错误日志

    Args:
        log_level: 日志级别
        log_dir: 日志目录
        app_name: 日志文件名前缀
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, str(log_level or "INFO").upper(), logging.INFO))

    # 清除现有处理器
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    prefix = str(app_name or "contract_resolver").strip().replace(" ", "_").lower()
    today = datetime.now().strftime("%Y-%m-%d")

    file_handler = logging.FileHandler(log_path / f"{prefix}_{today}.log", encoding="utf-8")
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    error_handler = logging.FileHandler(log_path / f"{prefix}_error_{today}.log", encoding="utf-8")
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(formatter)
    root_logger.addHandler(error_handler)

    # 降低第三方库日志级别
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.info("Logging configured: level=%s, dir=%s", log_level, log_dir)
