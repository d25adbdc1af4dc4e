"""
作用域提取器

按文档顺序遍历一个作用域（函数体、整个文件或文件中的行范围），
为每个调用表达式生成 Function 步骤，并按调用出现的先后顺序串成一条链。

只建模线性调用顺序，不区分分支和循环。
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from loguru import logger
from tree_sitter import Node

from ..api.models import ExtractionResult, Step, StepKind
from ..utils.config import Config
from .declaration_locator import Declaration
from .source_registry import SourceHandle
from .symbol_resolver import SymbolResolver


class ScopeKind(str, Enum):
    FUNCTION = "function"
    RANGE = "range"
    FILE = "file"


@dataclass(frozen=True)
class LineBounds:
    """行窗口（1起，闭区间）"""
    start: int
    end: int

    def contains(self, start_line: int, end_line: int) -> bool:
        return start_line >= self.start and end_line <= self.end

    def disjoint(self, start_line: int, end_line: int) -> bool:
        return end_line < self.start or start_line > self.end


@dataclass
class Scope:
    """一次遍历的作用域描述"""
    kind: ScopeKind
    root: Node
    name: Optional[str] = None
    declaration: Optional[Declaration] = None
    bounds: Optional[LineBounds] = None
    is_recursive: bool = False


@dataclass
class CallSite:
    """作用域中发现的一次调用"""
    step_id: str
    callee_name: str
    declaration: Optional[Declaration] = None
    expand: bool = False
    continuation_id: Optional[str] = None


@dataclass
class ScopeExtraction:
    """作用域的本地提取结果"""
    result: ExtractionResult
    calls: List[CallSite] = field(default_factory=list)

    @property
    def pending(self) -> List[CallSite]:
        """需要递归展开的调用"""
        return [call for call in self.calls if call.expand]


def _last_token(node: Node) -> Node:
    while node.child_count > 0:
        node = node.children[-1]
    return node


def _clean_ws(s: str) -> str:
    return " ".join(s.split())


class ScopeExtractor:
    """作用域提取器"""

    def __init__(self, resolver: SymbolResolver, config: Optional[Config] = None) -> None:
        self.resolver = resolver
        self.config = config or resolver.config

    def extract_scope(self, handle: SourceHandle, scope: Scope) -> ScopeExtraction:
        """
        提取作用域内的调用链

        先生成入口/出口步骤，然后按文档顺序遍历后代节点。
        已解析且位于项目内的调用被记录为待展开，不再深入其子树；
        其余调用继续遍历子树（例如参数中的嵌套调用）。

        出口连线在递归结果拼接之后由调用方补上。
        """
        entry, exit_ = self._boundary_steps(handle, scope)
        result = ExtractionResult(steps=[entry, exit_], entry_step_id=entry.id, exit_step_id=exit_.id)
        extraction = ScopeExtraction(result=result)

        last_step_id = entry.id
        bounds = scope.bounds
        stack = list(reversed(scope.root.named_children))
        while stack:
            node = stack.pop()

            if bounds is not None:
                start_line, end_line = handle.start_line(node), handle.end_line(node)
                if not bounds.contains(start_line, end_line):
                    if not bounds.disjoint(start_line, end_line):
                        stack.extend(reversed(node.named_children))
                    continue

            if node.type == "call_expression":
                step, call = self._call_site(handle, node)
                result.steps.append(step)
                result.add_flow(last_step_id, call.step_id)
                last_step_id = call.step_id
                extraction.calls.append(call)
                if call.expand:
                    # 被调函数内部由递归展开处理
                    continue

            stack.extend(reversed(node.named_children))

        # 每个调用的后继：链上的下一个调用，最后一个调用接作用域出口
        for current, following in zip(extraction.calls, extraction.calls[1:]):
            current.continuation_id = following.step_id
        if extraction.calls:
            extraction.calls[-1].continuation_id = exit_.id

        logger.debug(
            f"作用域 {scope.name or scope.kind.value} 提取完成: {len(extraction.calls)} 个调用, "
            f"{len(extraction.pending)} 个待展开"
        )
        return extraction

    def callee_name(self, handle: SourceHandle, call_node: Node) -> str:
        """调用表达式的可读名称：标识符，或 receiver.method"""
        callee = call_node.child_by_field_name("function")
        if callee is None:
            return _clean_ws(handle.text(call_node))
        if callee.type == "member_expression":
            obj = callee.child_by_field_name("object")
            prop = callee.child_by_field_name("property")
            if obj is not None and prop is not None:
                return f"{_clean_ws(handle.text(obj))}.{handle.text(prop)}"
        return _clean_ws(handle.text(callee))

    # --------------------------
    # 私有方法
    # --------------------------

    def _call_site(self, handle: SourceHandle, node: Node):
        name = self.callee_name(handle, node)
        step = Step(
            label=f"Call: {name}",
            kind=StepKind.FUNCTION,
            code_reference=handle.code_reference(node),
            description=f"Invocation of {name}",
        )
        call = CallSite(step_id=step.id, callee_name=name)

        declaration = self.resolver.resolve_call(handle, node)
        if declaration is not None:
            call.declaration = declaration
            call.expand = self.config.is_project_path(declaration.file_path)
            if not call.expand:
                logger.debug(f"{name} 解析到项目外文件 {declaration.file_path}，不展开")
        return step, call

    def _boundary_steps(self, handle: SourceHandle, scope: Scope):
        if scope.kind is ScopeKind.FUNCTION:
            decl = scope.declaration
            name = scope.name
            entry = Step(
                label=name,
                kind=StepKind.ENTRY_POINT,
                code_reference=handle.code_reference(decl.node, decl.name or name),
                description=f"{'Function' if scope.is_recursive else 'Entry'}: {name}",
            )
            exit_ = Step(
                label=f"Exit {name}",
                kind=StepKind.EXIT_POINT,
                code_reference=handle.code_reference(_last_token(decl.node)),
                description=f"Exit of {name}",
            )
        elif scope.kind is ScopeKind.RANGE:
            span = f"Lines {scope.bounds.start}-{scope.bounds.end}"
            entry = Step(
                label=f"Code Block ({span})",
                kind=StepKind.ENTRY_POINT,
                description=f"Selected code block in {handle.basename}",
            )
            exit_ = Step(
                label=f"Exit Block ({span})",
                kind=StepKind.EXIT_POINT,
                description=f"Exit of selected block in {handle.basename}",
            )
        else:
            entry = Step(
                label=handle.basename,
                kind=StepKind.ENTRY_POINT,
                code_reference=handle.code_reference(handle.root),
                description=f"Entry: File {handle.basename}",
            )
            exit_ = Step(
                label=f"Exit File {handle.basename}",
                kind=StepKind.EXIT_POINT,
                description=f"Exit of file {handle.basename}",
            )
        return entry, exit_
