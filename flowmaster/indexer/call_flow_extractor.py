"""
调用流提取器（递归控制器）

从指定函数、文件行范围或整个文件出发，提取调用流图：
1. 定位作用域并提取本地调用链
2. 对每个已解析的项目内调用并发递归展开
3. 把子结果的入口/出口拼接回调用点所在的链上

同一次顶层请求内，每个 (文件, 作用域) 最多展开一次，以此终止循环调用。
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Set, Union

from loguru import logger

from ..api.models import ExtractionResult, Step, StepKind
from ..utils.config import Config
from ..utils.file_utils import normalize_path
from .declaration_locator import Declaration, DeclarationLocator
from .errors import CycleOrDuplicate, MalformedBounds, UnreadableSource, UnresolvedSymbol
from .scope_extractor import LineBounds, Scope, ScopeExtractor, ScopeKind
from .source_registry import SourceHandle, SourceRegistry
from .symbol_resolver import SymbolResolver


@dataclass
class ExtractionContext:
    """
    单次顶层请求的共享状态

    只在事件循环线程中访问，claim 内部没有 await，检查与插入是原子的。
    """
    visited: Set[str] = field(default_factory=set)
    step_count: int = 0

    def claim(self, visited_key: str) -> None:
        """
        登记作用域

        Raises:
            CycleOrDuplicate: 本次请求中已经展开过
        """
        if visited_key in self.visited:
            raise CycleOrDuplicate(visited_key)
        self.visited.add(visited_key)


def visited_key(file_path: str, function_name: Optional[str],
                start_line: Optional[int], end_line: Optional[int]) -> str:
    """作用域去重键：文件路径 :: 函数名 或 range:起-止"""
    scope = function_name or f"range:{start_line}-{end_line}"
    return f"{file_path}::{scope}"


def _note_result(label: str, description: str, *diagnostics: str) -> ExtractionResult:
    note = Step(label=label, kind=StepKind.NOTE, description=description)
    return ExtractionResult(
        steps=[note],
        entry_step_id=note.id,
        exit_step_id=note.id,
        diagnostics=list(diagnostics),
    )


class CallFlowExtractor:
    """调用流提取器"""

    def __init__(self, config: Optional[Config] = None, registry: Optional[SourceRegistry] = None) -> None:
        """
        初始化提取器

        Args:
            config: 配置，默认从环境变量加载
            registry: 源码注册表，可在多个提取器之间共享
        """
        self.config = config or Config()
        self.registry = registry or SourceRegistry(self.config)
        self.locator = DeclarationLocator()
        self.resolver = SymbolResolver(self.registry, self.locator, self.config)
        self.scope_extractor = ScopeExtractor(self.resolver, self.config)

    async def extract(
        self,
        file_path: Union[str, Path],
        function_name: Optional[str] = None,
        start_line: Optional[int] = None,
        end_line: Optional[int] = None,
    ) -> ExtractionResult:
        """
        提取调用流图

        Args:
            file_path: 源文件路径
            function_name: 起始函数名；为空时按行范围或整个文件提取
            start_line: 起始行（1起）；与 function_name 同时给出时用于消除同名歧义
            end_line: 结束行（1起，含）

        Returns:
            合并后的提取结果；失败只体现在 diagnostics 中，不会抛出
        """
        context = ExtractionContext()
        logger.info(f"开始提取调用流: {file_path}, 函数: {function_name}, 范围: {start_line}-{end_line}")

        result = await self._extract(context, normalize_path(file_path), function_name,
                                     start_line, end_line, is_recursive=False, depth=0)

        logger.info(
            f"调用流提取完成: {len(result.steps)} 个步骤, {len(result.flows)} 条流, "
            f"展开 {len(context.visited)} 个作用域"
        )
        return result

    async def extract_with_timeout(
        self,
        file_path: Union[str, Path],
        function_name: Optional[str] = None,
        start_line: Optional[int] = None,
        end_line: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> ExtractionResult:
        """
        带超时的提取，超时后丢弃未完成的部分结果

        Args:
            timeout: 超时秒数，默认取配置 timeout_seconds；0 或 None 表示不限
        """
        timeout = timeout if timeout is not None else self.config.get('timeout_seconds')
        if not timeout:
            return await self.extract(file_path, function_name, start_line, end_line)
        try:
            return await asyncio.wait_for(
                self.extract(file_path, function_name, start_line, end_line), timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"调用流提取超时 ({timeout}s): {file_path}")
            return ExtractionResult.empty(f"Extraction of {file_path} timed out after {timeout}s.")

    # --------------------------
    # 递归主体
    # --------------------------

    async def _extract(
        self,
        context: ExtractionContext,
        file_path: str,
        function_name: Optional[str],
        start_line: Optional[int],
        end_line: Optional[int],
        is_recursive: bool,
        depth: int,
        declaration: Optional[Declaration] = None,
    ) -> ExtractionResult:
        try:
            self._check_bounds(start_line, end_line)
        except MalformedBounds as e:
            logger.warning(str(e))
            return ExtractionResult.empty(f"Invalid line range {start_line}-{end_line} for {file_path}.")

        if is_recursive:
            limited = self._limit_reached(context, file_path, function_name, depth)
            if limited is not None:
                return limited

        key = visited_key(file_path, function_name, start_line, end_line)
        try:
            context.claim(key)
        except CycleOrDuplicate:
            logger.debug(f"跳过已访问的作用域: {key}")
            return ExtractionResult.empty()

        logger.debug(f"解析 {key}{' (递归)' if is_recursive else ''}")

        try:
            handle = self.registry.load(file_path)
        except UnreadableSource as e:
            logger.error(str(e))
            return ExtractionResult.empty(
                f"Could not parse file {file_path}. Ensure it's a valid TypeScript/JavaScript file."
            )

        try:
            scope = self._resolve_scope(handle, function_name, start_line, end_line, is_recursive, declaration)
        except UnresolvedSymbol as e:
            logger.error(str(e))
            message = f"Function {function_name} not found in {file_path}."
            # 递归目标只在未携带声明、按名称也找不到时到达这里
            if is_recursive:
                return _note_result(
                    f"Unresolved: {function_name}",
                    f"Function {function_name} in {file_path} not found during recursive call.",
                    message,
                )
            return ExtractionResult.empty(message)

        if scope is None:
            logger.error(f"递归调用缺少函数名: {file_path}")
            return ExtractionResult.empty()

        extraction = self.scope_extractor.extract_scope(handle, scope)
        result = extraction.result
        context.step_count += len(result.steps)

        # 兄弟分支并发展开，全部完成后再按遍历顺序合并
        pending = extraction.pending
        sub_results = await asyncio.gather(*(
            self._extract(
                context,
                call.declaration.file_path,
                call.declaration.target_name,
                call.declaration.start_line,
                None,
                is_recursive=True,
                depth=depth + 1,
                declaration=call.declaration,
            )
            for call in pending
        ))

        for call, sub in zip(pending, sub_results):
            if sub.entry_step_id is None:
                result.diagnostics.extend(sub.diagnostics)
                continue
            result.merge(sub)
            result.add_flow(call.step_id, sub.entry_step_id)
            # 被调函数"返回"后回到调用链的下一步
            if sub.exit_step_id is not None and not result.has_outgoing(sub.exit_step_id):
                result.add_flow(sub.exit_step_id, call.continuation_id)

        last_step_id = extraction.calls[-1].step_id if extraction.calls else result.entry_step_id
        if not result.has_outgoing(last_step_id):
            result.add_flow(last_step_id, result.exit_step_id)

        logger.debug(f"{key} 解析完成: {len(result.steps)} 个步骤, {len(result.flows)} 条流")
        return result

    def _resolve_scope(
        self,
        handle: SourceHandle,
        function_name: Optional[str],
        start_line: Optional[int],
        end_line: Optional[int],
        is_recursive: bool,
        declaration: Optional[Declaration] = None,
    ) -> Optional[Scope]:
        """
        确定本次遍历的作用域

        Raises:
            UnresolvedSymbol: 指定的函数在文件中不存在
        """
        bounds = LineBounds(start_line, end_line) if start_line is not None and end_line is not None else None

        if function_name:
            if declaration is None:
                declaration = self.locator.find_declaration(handle, function_name, start_line)
            if declaration is None:
                raise UnresolvedSymbol(function_name, handle.path)
            return Scope(
                kind=ScopeKind.FUNCTION,
                root=declaration.node,
                name=function_name,
                declaration=declaration,
                bounds=bounds,
                is_recursive=is_recursive,
            )

        if is_recursive:
            return None
        if bounds is not None:
            return Scope(kind=ScopeKind.RANGE, root=handle.root, bounds=bounds)
        return Scope(kind=ScopeKind.FILE, root=handle.root)

    @staticmethod
    def _check_bounds(start_line: Optional[int], end_line: Optional[int]) -> None:
        for line in (start_line, end_line):
            if line is not None and line < 1:
                raise MalformedBounds(start_line, end_line)
        if start_line is not None and end_line is not None and end_line < start_line:
            raise MalformedBounds(start_line, end_line)

    def _limit_reached(self, context: ExtractionContext, file_path: str,
                       function_name: Optional[str], depth: int) -> Optional[ExtractionResult]:
        max_depth = self.config.get('max_depth')
        max_steps = self.config.get('max_steps')

        if max_depth is not None and depth > max_depth:
            label = f"Depth limit reached: {function_name}"
        elif max_steps is not None and context.step_count >= max_steps:
            label = f"Step limit reached: {function_name}"
        else:
            return None

        logger.warning(f"{label} ({file_path})")
        return _note_result(label, f"Expansion of {function_name} in {file_path} was not attempted.")
