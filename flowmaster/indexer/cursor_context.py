"""
光标上下文解析

给定文件与光标位置（行列从0开始），返回包围该位置的最内层函数名，
用于为调用流提取确定起始函数。
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

from loguru import logger
from tree_sitter import Node

from ..utils.config import Config
from .declaration_locator import (
    FUNCTION_DECLARATION_TYPES,
    FUNCTION_LIKE_TYPES,
    METHOD_TYPES,
    binding_name_for_literal,
)
from .errors import UnreadableSource
from .source_registry import SourceHandle, SourceRegistry


class CursorContextResolver:
    """光标所在函数解析器"""

    def __init__(self, registry: Optional[SourceRegistry] = None, config: Optional[Config] = None) -> None:
        self.registry = registry or SourceRegistry(config)

    def function_name_at(self, file_path: Union[str, Path], line: int, character: int) -> Optional[str]:
        """
        查找光标所在的函数名

        Args:
            file_path: 源文件路径
            line: 行号（0起）
            character: 列号（0起）

        Returns:
            函数名；光标不在任何有名函数内时返回 None
        """
        try:
            handle = self.registry.load(file_path)
        except UnreadableSource as e:
            logger.warning(str(e))
            return None

        offset = handle.offset_of(line, character)
        if offset is None:
            logger.debug(f"光标位置超出文件范围: {file_path}:{line}:{character}")
            return None

        containing = self._innermost_function(handle, offset)
        if containing is None:
            return None
        return self._function_name(handle, containing)

    @staticmethod
    def _innermost_function(handle: SourceHandle, offset: int) -> Optional[Node]:
        # 兄弟节点互不重叠，只沿着包含 offset 的路径向下
        containing = None
        stack = [handle.root]
        while stack:
            node = stack.pop()
            if not (node.start_byte <= offset < node.end_byte):
                continue
            if node.type in FUNCTION_LIKE_TYPES:
                containing = node
            stack.extend(node.named_children)
        return containing

    @staticmethod
    def _function_name(handle: SourceHandle, node: Node) -> Optional[str]:
        if node.type in FUNCTION_DECLARATION_TYPES or node.type in METHOD_TYPES:
            name_node = node.child_by_field_name("name")
            return handle.text(name_node) if name_node is not None else None
        return binding_name_for_literal(handle, node)
