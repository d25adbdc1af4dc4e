"""
函数声明定位器

在源文件中按名称查找"类函数"声明，支持：
- 顶层具名函数（含 export / export default）
- 类方法
- 类属性上绑定的箭头函数 / 函数表达式
- 顶层变量上绑定的箭头函数 / 函数表达式

声明统一表示为 Declaration（NAMED / METHOD_LIKE / BOUND_LITERAL 三种封闭变体）。
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterator, List, Optional

from loguru import logger
from tree_sitter import Node

from .source_registry import SourceHandle


FUNCTION_DECLARATION_TYPES = {"function_declaration", "generator_function_declaration"}
# tree-sitter-javascript 旧版本把函数表达式称为 "function"
FUNCTION_LITERAL_TYPES = {"arrow_function", "function_expression", "function", "generator_function"}
METHOD_TYPES = {"method_definition"}
FIELD_TYPES = {"public_field_definition", "field_definition"}
CLASS_TYPES = {"class_declaration", "abstract_class_declaration", "class"}
VARIABLE_DECLARATION_TYPES = {"lexical_declaration", "variable_declaration"}

FUNCTION_LIKE_TYPES = FUNCTION_DECLARATION_TYPES | FUNCTION_LITERAL_TYPES | METHOD_TYPES


class DeclarationKind(str, Enum):
    """声明变体"""
    NAMED = "named"                  # function foo() {}
    METHOD_LIKE = "method_like"      # class A { foo() {} }
    BOUND_LITERAL = "bound_literal"  # const foo = () => {} / class A { foo = () => {} }


@dataclass(eq=False)
class Declaration:
    """
    已定位的函数声明

    Attributes:
        kind: 声明变体
        name: 绑定名称，匿名函数为 None
        file_path: 所在文件
        node: 函数节点本身，作为作用域根节点遍历
        binding: 锚定行号时使用其范围的节点（变量/属性声明，或函数节点本身）
    """
    kind: DeclarationKind
    name: Optional[str]
    file_path: str
    node: Node
    binding: Node

    @property
    def start_line(self) -> int:
        return SourceHandle.start_line(self.node)

    @property
    def target_name(self) -> str:
        """递归展开时使用的函数名，匿名函数按行号合成"""
        return self.name or f"anonymous_func_at_L{self.start_line}"

    def spans_line(self, line: int) -> bool:
        return SourceHandle.start_line(self.binding) <= line <= SourceHandle.end_line(self.binding)


def field_name_node(field: Node) -> Optional[Node]:
    # TypeScript 语法使用 name 字段，JavaScript 语法使用 property 字段
    name_node = field.child_by_field_name("name")
    return name_node if name_node is not None else field.child_by_field_name("property")


def _read_name_field(handle: SourceHandle, node: Node, binding: Node) -> Optional[str]:
    name_node = node.child_by_field_name("name")
    return handle.text(name_node) if name_node is not None else None


def _read_bound(handle: SourceHandle, node: Node, binding: Node) -> Optional[str]:
    name_node = None
    if binding.type == "variable_declarator":
        name_node = binding.child_by_field_name("name")
        if name_node is not None and name_node.type != "identifier":
            name_node = None  # 解构绑定没有单一名称
    elif binding.type in FIELD_TYPES:
        name_node = field_name_node(binding)
    elif binding.type == "pair":
        name_node = binding.child_by_field_name("key")
    if name_node is None:
        # 具名函数表达式：const x = function foo() {}
        name_node = node.child_by_field_name("name")
    return handle.text(name_node) if name_node is not None else None


_NAME_READERS: Dict[DeclarationKind, Callable[[SourceHandle, Node, Node], Optional[str]]] = {
    DeclarationKind.NAMED: _read_name_field,
    DeclarationKind.METHOD_LIKE: _read_name_field,
    DeclarationKind.BOUND_LITERAL: _read_bound,
}


def make_declaration(handle: SourceHandle, kind: DeclarationKind, node: Node,
                     binding: Optional[Node] = None) -> Declaration:
    binding = binding if binding is not None else node
    name = _NAME_READERS[kind](handle, node, binding)
    return Declaration(kind=kind, name=name, file_path=handle.path, node=node, binding=binding)


def binding_name_for_literal(handle: SourceHandle, literal: Node) -> Optional[str]:
    """函数字面量绑定到的名称（变量、对象属性、类属性或自身名称）"""
    parent = literal.parent
    binding = parent if parent is not None and parent.type in (
        {"variable_declarator", "pair"} | FIELD_TYPES) else literal
    return _read_bound(handle, literal, binding)


def top_level_declarations(handle: SourceHandle) -> Iterator[Node]:
    """遍历顶层声明，展开 export 语句"""
    for stmt in handle.root.named_children:
        if stmt.type == "export_statement":
            declaration = stmt.child_by_field_name("declaration")
            if declaration is not None:
                yield declaration
        else:
            yield stmt


class DeclarationLocator:
    """函数声明定位器"""

    def find_declaration(self, handle: SourceHandle, name: str,
                         anchor_line: Optional[int] = None) -> Optional[Declaration]:
        """
        按名称查找声明，第一个匹配者胜出

        Args:
            handle: 源文件
            name: 函数名
            anchor_line: 锚定行（1起），给定时候选声明必须覆盖该行

        Returns:
            声明；找不到返回 None（表示未解析符号，而不是错误）
        """
        def accept(decl: Declaration) -> bool:
            return decl.name == name and (anchor_line is None or decl.spans_line(anchor_line))

        candidates = [
            self._top_level_functions,
            self._class_methods,
            self._class_property_literals,
            self._variable_literals,
        ]
        for collect in candidates:
            for decl in collect(handle):
                if accept(decl):
                    return decl

        logger.debug(f"未找到声明 {name} (anchor={anchor_line}) in {handle.path}")
        return None

    def find_class(self, handle: SourceHandle, name: str) -> Optional[Node]:
        """查找顶层类声明"""
        for node in top_level_declarations(handle):
            if node.type in CLASS_TYPES:
                name_node = node.child_by_field_name("name")
                if name_node is not None and handle.text(name_node) == name:
                    return node
        return None

    def find_member(self, handle: SourceHandle, class_node: Node, name: str) -> Optional[Declaration]:
        """查找类的方法或函数属性"""
        for decl in self._members(handle, class_node):
            if decl.name == name:
                return decl
        return None

    def find_default_export(self, handle: SourceHandle) -> Optional[Declaration]:
        """查找 export default 导出的函数"""
        for stmt in handle.root.named_children:
            if stmt.type != "export_statement" or not any(ch.type == "default" for ch in stmt.children):
                continue
            declaration = stmt.child_by_field_name("declaration")
            if declaration is not None and declaration.type in FUNCTION_DECLARATION_TYPES:
                return make_declaration(handle, DeclarationKind.NAMED, declaration)
            value = stmt.child_by_field_name("value")
            if value is None:
                continue
            if value.type in FUNCTION_LITERAL_TYPES:
                return make_declaration(handle, DeclarationKind.BOUND_LITERAL, value, value)
            if value.type == "identifier":
                return self.find_declaration(handle, handle.text(value))
        return None

    def find_default_export_class(self, handle: SourceHandle) -> Optional[Node]:
        for stmt in handle.root.named_children:
            if stmt.type != "export_statement" or not any(ch.type == "default" for ch in stmt.children):
                continue
            node = stmt.child_by_field_name("declaration")
            if node is None:
                node = stmt.child_by_field_name("value")
            if node is None:
                continue
            if node.type in CLASS_TYPES:
                return node
            if node.type == "identifier":
                return self.find_class(handle, handle.text(node))
        return None

    def declaration_in_statement(self, handle: SourceHandle, stmt: Node, name: str):
        """
        检查单条语句是否声明了 name

        Returns:
            (是否声明了该名称, 类函数声明或 None)
        """
        if stmt.type == "export_statement":
            inner = stmt.child_by_field_name("declaration")
            if inner is None:
                return False, None
            stmt = inner

        if stmt.type in FUNCTION_DECLARATION_TYPES:
            decl = make_declaration(handle, DeclarationKind.NAMED, stmt)
            return (True, decl) if decl.name == name else (False, None)

        if stmt.type in VARIABLE_DECLARATION_TYPES:
            for declarator in stmt.named_children:
                if declarator.type != "variable_declarator":
                    continue
                name_node = declarator.child_by_field_name("name")
                if name_node is None or handle.text(name_node) != name:
                    continue
                value = declarator.child_by_field_name("value")
                if value is not None and value.type in FUNCTION_LITERAL_TYPES:
                    return True, make_declaration(handle, DeclarationKind.BOUND_LITERAL, value, declarator)
                return True, None

        if stmt.type in CLASS_TYPES:
            name_node = stmt.child_by_field_name("name")
            if name_node is not None and handle.text(name_node) == name:
                return True, None

        return False, None

    # --------------------------
    # 候选声明收集
    # --------------------------

    def _top_level_functions(self, handle: SourceHandle) -> Iterator[Declaration]:
        for node in top_level_declarations(handle):
            if node.type in FUNCTION_DECLARATION_TYPES:
                yield make_declaration(handle, DeclarationKind.NAMED, node)

    def _classes(self, handle: SourceHandle) -> List[Node]:
        return [node for node in top_level_declarations(handle) if node.type in CLASS_TYPES]

    def _class_methods(self, handle: SourceHandle) -> Iterator[Declaration]:
        for class_node in self._classes(handle):
            for member in self._class_body(class_node):
                if member.type in METHOD_TYPES:
                    yield make_declaration(handle, DeclarationKind.METHOD_LIKE, member)

    def _class_property_literals(self, handle: SourceHandle) -> Iterator[Declaration]:
        for class_node in self._classes(handle):
            for member in self._class_body(class_node):
                decl = self._field_literal(handle, member)
                if decl is not None:
                    yield decl

    def _variable_literals(self, handle: SourceHandle) -> Iterator[Declaration]:
        for node in top_level_declarations(handle):
            if node.type not in VARIABLE_DECLARATION_TYPES:
                continue
            for declarator in node.named_children:
                if declarator.type != "variable_declarator":
                    continue
                value = declarator.child_by_field_name("value")
                if value is not None and value.type in FUNCTION_LITERAL_TYPES:
                    yield make_declaration(handle, DeclarationKind.BOUND_LITERAL, value, declarator)

    def _members(self, handle: SourceHandle, class_node: Node) -> Iterator[Declaration]:
        for member in self._class_body(class_node):
            if member.type in METHOD_TYPES:
                yield make_declaration(handle, DeclarationKind.METHOD_LIKE, member)
            else:
                decl = self._field_literal(handle, member)
                if decl is not None:
                    yield decl

    @staticmethod
    def _class_body(class_node: Node) -> List[Node]:
        body = class_node.child_by_field_name("body")
        return list(body.named_children) if body is not None else []

    @staticmethod
    def _field_literal(handle: SourceHandle, member: Node) -> Optional[Declaration]:
        if member.type not in FIELD_TYPES:
            return None
        value = member.child_by_field_name("value")
        if value is None or value.type not in FUNCTION_LITERAL_TYPES:
            return None
        return make_declaration(handle, DeclarationKind.BOUND_LITERAL, value, member)
