"""
源码文件读取工具

处理跨平台的路径和编码问题：
- 路径分隔符统一
- 文件编码检测（chardet）
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Union

import chardet
from loguru import logger


def normalize_path(path: Union[str, Path]) -> str:
    """
    标准化路径：转为绝对路径并统一使用正斜杠

    同一文件经不同相对路径访问时得到相同的键。
    """
    absolute = os.path.abspath(os.path.expanduser(str(path)))
    return os.path.normpath(absolute).replace('\\', '/')


def detect_file_encoding(raw_data: bytes) -> str:
    """
    检测源码编码

    Args:
        raw_data: 文件原始字节

    Returns:
        编码名称，置信度过低时回退为 utf-8
    """
    result = chardet.detect(raw_data[:10240])
    encoding = result.get('encoding') or 'utf-8'
    confidence = result.get('confidence') or 0.0

    if confidence < 0.7:
        encoding = 'utf-8'

    encoding_map = {
        'gb2312': 'gbk',
        'ascii': 'utf-8',
    }
    encoding = encoding_map.get(encoding.lower(), encoding)
    logger.debug(f"检测到文件编码: {encoding} (置信度: {confidence:.2f})")
    return encoding


def decode_source(raw_data: bytes) -> str:
    """
    把源码字节解码为文本

    优先 utf-8（去掉 BOM），失败时按 chardet 检测结果解码。

    Raises:
        UnicodeDecodeError: 两种方式都无法解码
        LookupError: 检测到的编码名称不可用
    """
    try:
        return raw_data.decode('utf-8-sig')
    except UnicodeDecodeError:
        encoding = detect_file_encoding(raw_data)
        return raw_data.decode(encoding)

