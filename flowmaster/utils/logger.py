"""
日志配置工具

Flow Master 的日志统一走 loguru：
- 控制台只写 stderr（stdout 留给 MCP 协议）
- 文件日志按大小轮转并压缩
- 每条记录带 component 字段，区分提取器与 MCP 服务
"""

import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger

from .config import Config

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[component]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | "
    "{level: <8} | "
    "{extra[component]} | "
    "{name}:{function}:{line} - "
    "{message}"
)


def setup_logger(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    enable_console: bool = True,
    enable_file: bool = True,
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> List[int]:
    """
    设置日志配置

    Args:
        log_level: 日志级别
        log_file: 日志文件路径，为空时不写文件
        enable_console: 是否输出到 stderr
        enable_file: 是否启用文件输出
        rotation: 文件轮转条件
        retention: 旧日志保留时间

    Returns:
        新增的 handler ID 列表
    """
    logger.remove()
    logger.configure(extra={"component": "flowmaster"})
    handler_ids = []

    if enable_console:
        handler_ids.append(logger.add(sys.stderr, level=log_level, format=CONSOLE_FORMAT, colorize=True))

    if enable_file and log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler_ids.append(logger.add(
            str(log_path),
            level=log_level,
            format=FILE_FORMAT,
            rotation=rotation,
            retention=retention,
            compression="zip",
            encoding="utf-8",
        ))

    logger.info(f"Flow Master 日志已初始化，级别: {log_level}")
    return handler_ids


def setup_logger_from_config(config: Config, enable_console: bool = True) -> List[int]:
    """按配置项 log_level / log_file 初始化日志"""
    return setup_logger(
        log_level=config.get('log_level', 'INFO'),
        log_file=config.get('log_file'),
        enable_console=enable_console,
    )


def get_logger(component: str):
    """获取带 component 标记的日志记录器"""
    return logger.bind(component=component)
