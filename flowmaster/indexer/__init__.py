"""
调用流提取模块

基于 Tree-sitter 的 TypeScript / JavaScript 解析、声明定位、符号解析与递归调用流提取
"""

from .call_flow_extractor import CallFlowExtractor, ExtractionContext
from .cursor_context import CursorContextResolver
from .declaration_locator import Declaration, DeclarationKind, DeclarationLocator
from .errors import CycleOrDuplicate, FlowExtractionError, MalformedBounds, UnreadableSource, UnresolvedSymbol
from .scope_extractor import ScopeExtractor
from .source_registry import SourceHandle, SourceRegistry
from .symbol_resolver import SymbolResolver

__all__ = [
    "CallFlowExtractor",
    "ExtractionContext",
    "CursorContextResolver",
    "Declaration",
    "DeclarationKind",
    "DeclarationLocator",
    "ScopeExtractor",
    "SourceHandle",
    "SourceRegistry",
    "SymbolResolver",
    "FlowExtractionError",
    "UnreadableSource",
    "UnresolvedSymbol",
    "CycleOrDuplicate",
    "MalformedBounds",
]
