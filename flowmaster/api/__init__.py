"""
API模块

调用流数据模型，以及供 LLM 客户端调用的 MCP 服务
"""

from .models import CodeReference, ExtractionResult, Flow, FlowKind, Position, Range, Step, StepKind

__all__ = ["CodeReference", "ExtractionResult", "Flow", "FlowKind", "Position", "Range", "Step", "StepKind"]
