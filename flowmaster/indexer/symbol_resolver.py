"""
调用点符号解析器

把调用表达式的被调用者解析到其声明：
- 标识符：自内向外的词法查找，再查 import
- this.m()：所在类的成员
- X.m()：同文件或导入的类 X 的成员
- ns.f()：命名空间导入模块中的导出函数

动态分派、高阶调用、计算属性等一律视为无法解析。
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional, Set

from loguru import logger
from tree_sitter import Node

from ..utils.config import Config
from ..utils.file_utils import normalize_path
from .declaration_locator import CLASS_TYPES, FUNCTION_LIKE_TYPES, Declaration, DeclarationLocator
from .errors import UnreadableSource
from .source_registry import SourceHandle, SourceRegistry


# export ... from 链的最大跟随次数
MAX_REEXPORT_HOPS = 5

_JS_SUFFIXES = {".js", ".jsx", ".mjs", ".cjs"}
_TS_SIBLINGS = {
    ".js": [".ts", ".tsx"],
    ".jsx": [".tsx"],
    ".mjs": [".mts"],
    ".cjs": [".cts"],
}

_SCOPE_CONTAINER_TYPES = {"program", "statement_block", "class_static_block", "switch_case", "switch_default"}

# 只绑定名称、本身不引入嵌套名称的模式节点
_PATTERN_CONTAINER_TYPES = {"formal_parameters", "object_pattern", "array_pattern", "rest_pattern"}


def _binding_names(handle: SourceHandle, pattern: Node) -> Set[str]:
    """
    收集参数列表或解构模式绑定的名称

    类型注解与默认值中的标识符不算绑定。
    """
    names: Set[str] = set()
    stack = [pattern]
    while stack:
        node = stack.pop()
        if node.type in ("identifier", "shorthand_property_identifier_pattern"):
            names.add(handle.text(node))
        elif node.type in ("required_parameter", "optional_parameter"):
            inner = node.child_by_field_name("pattern")
            if inner is not None:
                stack.append(inner)
        elif node.type in ("assignment_pattern", "object_assignment_pattern"):
            inner = node.child_by_field_name("left")
            if inner is not None:
                stack.append(inner)
        elif node.type == "pair_pattern":
            inner = node.child_by_field_name("value")
            if inner is not None:
                stack.append(inner)
        elif node.type in _PATTERN_CONTAINER_TYPES:
            stack.extend(node.named_children)
    return names


class SymbolResolver:
    """调用点符号解析器"""

    def __init__(self, registry: SourceRegistry, locator: DeclarationLocator,
                 config: Optional[Config] = None) -> None:
        self.registry = registry
        self.locator = locator
        self.config = config or registry.config

    def resolve_call(self, handle: SourceHandle, call_node: Node) -> Optional[Declaration]:
        """
        解析调用表达式的被调用者

        Args:
            handle: 调用点所在文件
            call_node: call_expression 节点

        Returns:
            被调用函数的声明；无法解析时返回 None
        """
        callee = call_node.child_by_field_name("function")
        if callee is None:
            return None
        if callee.type == "identifier":
            return self.resolve_identifier(handle, call_node, handle.text(callee))
        if callee.type == "member_expression":
            return self._resolve_member(handle, call_node, callee)
        return None

    def resolve_identifier(self, handle: SourceHandle, site: Node, name: str) -> Optional[Declaration]:
        """
        从 site 开始自内向外查找名称绑定的函数

        参数、catch 参数和循环变量同样会遮蔽外层声明；
        这类绑定的值在运行时才确定，解析结果为 None。
        """
        child = site
        node = site.parent
        while node is not None:
            if node.type in _SCOPE_CONTAINER_TYPES:
                for stmt in node.named_children:
                    declared, decl = self.locator.declaration_in_statement(handle, stmt, name)
                    if declared:
                        return decl
            elif self._binds_locally(handle, node, child, name):
                logger.debug(f"{name} 被局部绑定遮蔽 (line {handle.start_line(node)})，不解析")
                return None
            child = node
            node = node.parent

        binding = handle.imports.get(name)
        if binding is None or binding.imported == "*":
            return None
        target = self._load_module(handle, binding.specifier)
        if target is None:
            return None
        if binding.imported == "default":
            return self.locator.find_default_export(target)
        return self.find_exported(target, binding.imported)

    def find_exported(self, handle: SourceHandle, name: str, hops: int = 0) -> Optional[Declaration]:
        """在模块中查找导出的函数，必要时跟随 export ... from"""
        decl = self.locator.find_declaration(handle, name)
        if decl is not None or hops >= MAX_REEXPORT_HOPS:
            return decl

        for reexport in handle.reexports:
            if reexport.exported not in (name, "*"):
                continue
            target = self._load_module(handle, reexport.specifier)
            if target is None:
                continue
            imported = name if reexport.exported == "*" else reexport.imported
            if imported == "default":
                decl = self.locator.find_default_export(target)
            else:
                decl = self.find_exported(target, imported, hops + 1)
            if decl is not None:
                return decl
        return None

    def resolve_module_path(self, from_path: str, specifier: str) -> Optional[str]:
        """
        解析 import 说明符对应的文件

        只处理相对/绝对路径；包名（如 'lodash'）属于外部依赖，返回 None。
        """
        if not specifier.startswith((".", "/")):
            return None

        base = Path(from_path).parent / specifier if specifier.startswith(".") else Path(specifier)
        extensions = self.config.get('module_extensions', [])

        candidates = []
        if base.suffix in extensions:
            candidates.append(base)
        if base.suffix in _JS_SUFFIXES:
            candidates.extend(base.with_suffix(suffix) for suffix in _TS_SIBLINGS[base.suffix])
        candidates.extend(Path(f"{base}{ext}") for ext in extensions)
        candidates.extend(base / f"index{ext}" for ext in extensions)

        for candidate in candidates:
            if candidate.is_file():
                return normalize_path(candidate)
        return None

    # --------------------------
    # 私有方法
    # --------------------------

    def _resolve_member(self, handle: SourceHandle, call_node: Node, callee: Node) -> Optional[Declaration]:
        obj = callee.child_by_field_name("object")
        prop = callee.child_by_field_name("property")
        if obj is None or prop is None or prop.type not in ("property_identifier", "private_property_identifier"):
            return None
        member = handle.text(prop)

        if obj.type == "this":
            class_node = self._enclosing_class(call_node)
            if class_node is None:
                return None
            return self.locator.find_member(handle, class_node, member)

        if obj.type != "identifier":
            return None
        name = handle.text(obj)

        class_node = self.locator.find_class(handle, name)
        if class_node is not None:
            return self.locator.find_member(handle, class_node, member)

        binding = handle.imports.get(name)
        if binding is None:
            return None
        target = self._load_module(handle, binding.specifier)
        if target is None:
            return None
        if binding.imported == "*":
            return self.find_exported(target, member)

        if binding.imported == "default":
            class_node = self.locator.find_default_export_class(target)
        else:
            class_node = self.locator.find_class(target, binding.imported)
        if class_node is None:
            return None
        return self.locator.find_member(target, class_node, member)

    def _binds_locally(self, handle: SourceHandle, node: Node, child: Node, name: str) -> bool:
        """node 是否通过参数、catch 参数或循环变量为 child 所在区域绑定了 name"""
        if node.type in FUNCTION_LIKE_TYPES:
            params = node.child_by_field_name("parameters")
            if params is None:
                # 箭头函数的单个无括号参数
                params = node.child_by_field_name("parameter")
            return params is not None and name in _binding_names(handle, params)

        if node.type == "catch_clause":
            param = node.child_by_field_name("parameter")
            return (param is not None and child == node.child_by_field_name("body")
                    and name in _binding_names(handle, param))

        if node.type == "for_in_statement":
            left = node.child_by_field_name("left")
            return (left is not None and child == node.child_by_field_name("body")
                    and name in _binding_names(handle, left))

        if node.type == "for_statement":
            initializer = node.child_by_field_name("initializer")
            if initializer is None or child == initializer:
                return False
            declared, _ = self.locator.declaration_in_statement(handle, initializer, name)
            return declared

        return False

    @staticmethod
    def _enclosing_class(node: Node) -> Optional[Node]:
        current = node.parent
        while current is not None:
            if current.type in CLASS_TYPES:
                return current
            current = current.parent
        return None

    def _load_module(self, handle: SourceHandle, specifier: str) -> Optional[SourceHandle]:
        path = self.resolve_module_path(handle.path, specifier)
        if path is None:
            logger.debug(f"外部模块或无法定位: '{specifier}' (from {handle.path})")
            return None
        try:
            return self.registry.load(path)
        except UnreadableSource as e:
            logger.debug(f"导入目标无法加载: {e}")
            return None
