"""
工具模块

提供配置管理、日志设置和源码读取功能
"""

from .config import Config
from .logger import setup_logger, setup_logger_from_config, get_logger
from .file_utils import normalize_path, decode_source

__all__ = ["Config", "setup_logger", "setup_logger_from_config", "get_logger", "normalize_path", "decode_source"]
