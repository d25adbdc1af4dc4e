"""
Flow Master 调用流提取工具

从 TypeScript / JavaScript 源码中提取函数调用流图（步骤 + 流）
"""

from .api.models import CodeReference, ExtractionResult, Flow, FlowKind, Step, StepKind
from .indexer.call_flow_extractor import CallFlowExtractor
from .indexer.cursor_context import CursorContextResolver
from .utils.config import Config

__version__ = "0.1.0"

__all__ = [
    "CallFlowExtractor",
    "CursorContextResolver",
    "Config",
    "ExtractionResult",
    "Step",
    "Flow",
    "StepKind",
    "FlowKind",
    "CodeReference",
]
