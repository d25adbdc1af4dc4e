"""
源码注册表

基于 Tree-sitter 解析 TypeScript / JavaScript 源文件，并按路径缓存解析结果。

- 每次 load 都会重新读取磁盘内容，内容摘要变化时重新解析
- 行号对外使用从1开始的编号，CodeReference 使用从0开始的行列
"""
from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from loguru import logger
from tree_sitter import Language, Node, Parser, Tree
import tree_sitter_javascript as tsjavascript
import tree_sitter_typescript as tstypescript

from ..api.models import CodeReference, Position, Range
from ..utils.config import Config
from ..utils.file_utils import decode_source, normalize_path
from .errors import UnreadableSource


# 语言名称 -> grammar 加载函数
_LANGUAGE_LOADERS = {
    "typescript": tstypescript.language_typescript,
    "tsx": tstypescript.language_tsx,
    "javascript": tsjavascript.language,
}

_SUFFIX_LANGUAGE = {
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "javascript",
}


def language_for_path(file_path: Union[str, Path]) -> Optional[str]:
    """根据扩展名判断语言"""
    return _SUFFIX_LANGUAGE.get(Path(file_path).suffix.lower())


@dataclass(frozen=True)
class ImportBinding:
    """import 语句引入的一个本地名称"""
    local: str
    imported: str  # 导出名；"default" 表示默认导入，"*" 表示命名空间导入
    specifier: str


@dataclass(frozen=True)
class ReExport:
    """export ... from 语句"""
    exported: str  # "*" 表示 export * from
    imported: str
    specifier: str


def _string_value(handle: "SourceHandle", node: Optional[Node]) -> Optional[str]:
    if node is None:
        return None
    text = handle.text(node).strip()
    if len(text) >= 2 and text[0] in "'\"`" and text[-1] == text[0]:
        return text[1:-1]
    return text


class SourceHandle:
    """单个源文件的解析结果"""

    def __init__(self, path: str, source: bytes, tree: Tree, language: str) -> None:
        self.path = path
        self.source = source
        self.tree = tree
        self.language = language
        self.digest = hashlib.md5(source).hexdigest()
        self._lines: List[bytes] = source.split(b"\n")
        self._imports: Optional[Dict[str, ImportBinding]] = None
        self._reexports: Optional[List[ReExport]] = None

    @property
    def root(self) -> Node:
        return self.tree.root_node

    @property
    def basename(self) -> str:
        return Path(self.path).name

    def text(self, node: Node) -> str:
        return self.source[node.start_byte: node.end_byte].decode(errors="ignore")

    @staticmethod
    def start_line(node: Node) -> int:
        """节点起始行（1起）"""
        return node.start_point[0] + 1

    @staticmethod
    def end_line(node: Node) -> int:
        """节点结束行（1起）"""
        return node.end_point[0] + 1

    def _character(self, row: int, column: int) -> int:
        # Tree-sitter 的列是字节偏移，这里换算成字符数
        if row >= len(self._lines):
            return column
        return len(self._lines[row][:column].decode(errors="ignore"))

    def position(self, row: int, column: int) -> Position:
        return Position(line=row, character=self._character(row, column))

    def code_reference(self, node: Node, identifier: Optional[str] = None) -> CodeReference:
        start_row, start_col = node.start_point
        end_row, end_col = node.end_point
        return CodeReference(
            file_path=self.path,
            range=Range(
                start=self.position(start_row, start_col),
                end=self.position(end_row, end_col),
            ),
            identifier=identifier,
        )

    def offset_of(self, line: int, character: int) -> Optional[int]:
        """
        把（0起）行列换算为字节偏移

        Returns:
            字节偏移；位置超出文件范围时返回 None
        """
        if line < 0 or character < 0 or line >= len(self._lines):
            return None
        offset = sum(len(row) + 1 for row in self._lines[:line])
        line_text = self._lines[line].decode(errors="ignore")
        if character > len(line_text):
            return None
        return offset + len(line_text[:character].encode())

    # --------------------------
    # import / export 信息
    # --------------------------

    @property
    def imports(self) -> Dict[str, ImportBinding]:
        if self._imports is None:
            self._imports = self._collect_imports()
        return self._imports

    @property
    def reexports(self) -> List[ReExport]:
        if self._reexports is None:
            self._reexports = self._collect_reexports()
        return self._reexports

    def _collect_imports(self) -> Dict[str, ImportBinding]:
        bindings: Dict[str, ImportBinding] = {}
        for stmt in self.root.named_children:
            if stmt.type != "import_statement":
                continue
            specifier = _string_value(self, stmt.child_by_field_name("source"))
            if not specifier:
                continue
            for clause in stmt.named_children:
                if clause.type != "import_clause":
                    continue
                for part in clause.named_children:
                    if part.type == "identifier":
                        local = self.text(part)
                        bindings[local] = ImportBinding(local, "default", specifier)
                    elif part.type == "namespace_import":
                        for ident in part.named_children:
                            if ident.type == "identifier":
                                local = self.text(ident)
                                bindings[local] = ImportBinding(local, "*", specifier)
                    elif part.type == "named_imports":
                        for spec in part.named_children:
                            if spec.type != "import_specifier":
                                continue
                            name_node = spec.child_by_field_name("name")
                            alias_node = spec.child_by_field_name("alias")
                            if name_node is None:
                                continue
                            imported = _string_value(self, name_node)
                            local = self.text(alias_node) if alias_node is not None else imported
                            bindings[local] = ImportBinding(local, imported, specifier)
        return bindings

    def _collect_reexports(self) -> List[ReExport]:
        reexports: List[ReExport] = []
        for stmt in self.root.named_children:
            if stmt.type != "export_statement":
                continue
            specifier = _string_value(self, stmt.child_by_field_name("source"))
            if not specifier:
                continue
            clause = next((ch for ch in stmt.named_children if ch.type == "export_clause"), None)
            if clause is None:
                if any(ch.type == "*" for ch in stmt.children) and not any(
                    ch.type == "namespace_export" for ch in stmt.named_children
                ):
                    reexports.append(ReExport("*", "*", specifier))
                continue
            for spec in clause.named_children:
                if spec.type != "export_specifier":
                    continue
                name_node = spec.child_by_field_name("name")
                alias_node = spec.child_by_field_name("alias")
                if name_node is None:
                    continue
                imported = _string_value(self, name_node)
                exported = _string_value(self, alias_node) if alias_node is not None else imported
                reexports.append(ReExport(exported, imported, specifier))
        return reexports

    def __repr__(self) -> str:
        return f"SourceHandle({self.path!r}, {self.language})"


class SourceRegistry:
    """源码注册表：按路径缓存并保持解析结果最新"""

    def __init__(self, config: Optional[Config] = None) -> None:
        self.config = config or Config()
        self._handles: Dict[str, SourceHandle] = {}
        self._parsers: Dict[str, Parser] = {}

    def load(self, file_path: Union[str, Path]) -> SourceHandle:
        """
        加载源文件

        已缓存的文件会先从磁盘刷新；内容没变时直接复用原解析树。

        Raises:
            UnreadableSource: 文件不存在、类型不支持、无法解码或（严格模式下）含语法错误
        """
        key = normalize_path(file_path)
        path = Path(key)

        language = language_for_path(path)
        if language is None or not self.config.is_supported_file(path):
            raise UnreadableSource(key, f"不支持的文件类型 {path.suffix or '(无扩展名)'}")
        if not path.is_file():
            self._handles.pop(key, None)
            raise UnreadableSource(key, "文件不存在")

        max_size_mb = self.config.get('max_file_size_mb')
        try:
            if max_size_mb and path.stat().st_size > max_size_mb * 1024 * 1024:
                raise UnreadableSource(key, f"文件超过 {max_size_mb}MB 限制")
            raw = path.read_bytes()
        except OSError as e:
            raise UnreadableSource(key, f"读取失败: {e}") from e

        cached = self._handles.get(key)
        if cached is not None and cached.digest == hashlib.md5(raw).hexdigest():
            return cached

        try:
            text = decode_source(raw)
        except (UnicodeDecodeError, LookupError) as e:
            raise UnreadableSource(key, f"无法解码: {e}") from e

        source = text.encode()
        tree = self._parser_for(language).parse(source)
        if tree.root_node.has_error:
            if self.config.get('reject_syntax_errors'):
                raise UnreadableSource(key, "包含语法错误")
            # Tree-sitter 可以容错解析，继续使用部分结果
            logger.debug(f"Tree-sitter解析包含错误 {key}")

        handle = SourceHandle(key, source, tree, language)
        # 摘要以磁盘原始字节为准，便于下次比较
        handle.digest = hashlib.md5(raw).hexdigest()
        self._handles[key] = handle
        logger.debug(f"{'刷新' if cached else '加载'}源文件 {key} ({language})")
        return handle

    def get_cached(self, file_path: Union[str, Path]) -> Optional[SourceHandle]:
        return self._handles.get(normalize_path(file_path))

    def invalidate(self, file_path: Union[str, Path]) -> None:
        self._handles.pop(normalize_path(file_path), None)

    def clear(self) -> None:
        self._handles.clear()

    def __contains__(self, file_path: Union[str, Path]) -> bool:
        return normalize_path(file_path) in self._handles

    def __len__(self) -> int:
        return len(self._handles)

    def _parser_for(self, language: str) -> Parser:
        parser = self._parsers.get(language)
        if parser is None:
            parser = Parser(Language(_LANGUAGE_LOADERS[language]()))
            self._parsers[language] = parser
            logger.debug(f"Tree-sitter {language} 解析器初始化完成")
        return parser
