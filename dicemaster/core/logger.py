"""
日志模块
统一的控制台 + 按日期滚动的文件日志
"""

import sys
import logging
import yaml
from logging.handlers import RotatingFileHandler
from pathlib import Path
from datetime import datetime

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
LOG_DIR = PROJECT_ROOT / "logs"
LOG_DIR.mkdir(exist_ok=True)

LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def _load_debug_mode() -> bool:
    """从 config.yaml 读取 project.debug"""
    config_path = PROJECT_ROOT / "config.yaml"
    try:
        if config_path.exists():
            with open(config_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
                if config and "project" in config:
                    return bool(config["project"].get("debug", False))
    except Exception as e:
        # 日志系统尚未就绪，只能写标准错误
        sys.stderr.write(f"Warning: Failed to load debug config: {e}\n")
    return False


DEBUG_MODE = _load_debug_mode()


class ConditionalFormatter(logging.Formatter):
    """WARNING 及以上级别附带模块名和行号"""

    PLAIN_FMT = "[%(asctime)s] [%(levelname)s] [%(name)s] - %(message)s"
    DETAILED_FMT = "[%(asctime)s] [%(levelname)s] [%(name)s] [%(module)s:%(lineno)d] - %(message)s"

    def format(self, record):
        if record.levelno >= logging.WARNING:
            self._style._fmt = self.DETAILED_FMT
        else:
            self._style._fmt = self.PLAIN_FMT
        return super().format(record)


def setup_logger(name="DiceMaster", log_level=logging.INFO):
    logger = logging.getLogger(name)
    logger.setLevel(log_level)

    # 同名 logger 只挂一次 handler
    if logger.handlers:
        return logger

    formatter = ConditionalFormatter(datefmt="%Y-%m-%d %H:%M:%S")
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # 文件名按日期
    today = datetime.now().strftime("%Y-%m-%d")
    file_handler = RotatingFileHandler(
        LOG_DIR / f"{today}.log",
        maxBytes=10 * 1024 * 1024,
        encoding="utf-8"
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    return logger


def get_logger(module_name: str, log_level: str = "INFO"):
    # 调试模式下 INFO 提升为 DEBUG
    if DEBUG_MODE and log_level.upper() == "INFO":
        log_level = "DEBUG"

    actual_level = LEVEL_MAP.get(log_level.upper(), logging.INFO)
    return setup_logger(name=module_name, log_level=actual_level)
