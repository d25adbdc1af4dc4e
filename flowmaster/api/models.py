"""
调用流数据模型

定义步骤（Step）、流（Flow）与提取结果（ExtractionResult）的数据结构
"""

import uuid
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field


def new_id() -> str:
    """生成全局唯一的步骤/流 ID"""
    return str(uuid.uuid4())


class StepKind(str, Enum):
    """步骤类型枚举"""
    ENTRY_POINT = "EntryPoint"
    EXIT_POINT = "ExitPoint"
    FUNCTION = "Function"
    CONDITION = "Condition"
    MANUAL_STEP = "ManualStep"
    NOTE = "Note"


class FlowKind(str, Enum):
    """流（边）类型枚举"""
    DIRECT_CALL = "DirectCall"
    CONDITIONAL_CALL = "ConditionalCall"
    ASYNC_CALL = "AsyncCall"


class Position(BaseModel):
    """源码位置（行列均从0开始）"""
    model_config = ConfigDict(frozen=True)

    line: int = Field(..., description="行号（0起）", ge=0)
    character: int = Field(..., description="列号（0起）", ge=0)


class Range(BaseModel):
    """源码区间"""
    model_config = ConfigDict(frozen=True)

    start: Position = Field(..., description="起始位置")
    end: Position = Field(..., description="结束位置")


class CodeReference(BaseModel):
    """代码引用：精确定位到源码位置"""
    model_config = ConfigDict(frozen=True)

    file_path: str = Field(..., description="文件路径")
    range: Range = Field(..., description="源码区间")
    identifier: Optional[str] = Field(None, description="绑定到该位置的名称")


class Step(BaseModel):
    """调用流图中的一个顶点：作用域入口/出口或一次调用"""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id, description="步骤唯一ID")
    label: str = Field(..., description="显示名称")
    kind: StepKind = Field(..., description="步骤类型")
    code_reference: Optional[CodeReference] = Field(None, description="对应的源码位置")
    description: Optional[str] = Field(None, description="描述")


class Flow(BaseModel):
    """两个步骤之间的有向边"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(default_factory=new_id, description="流唯一ID")
    from_step: str = Field(..., alias="from", description="起点步骤ID")
    to_step: str = Field(..., alias="to", description="终点步骤ID")
    kind: FlowKind = Field(FlowKind.DIRECT_CALL, description="流类型")
    label: Optional[str] = Field(None, description="标签")


class ExtractionResult(BaseModel):
    """
    一次提取（顶层或递归）的结果

    递归控制器把一棵结果树逐层合并成一个结果。
    """
    steps: List[Step] = Field(default_factory=list, description="步骤列表")
    flows: List[Flow] = Field(default_factory=list, description="流列表")
    entry_step_id: Optional[str] = Field(None, description="入口步骤ID")
    exit_step_id: Optional[str] = Field(None, description="出口步骤ID")
    diagnostics: List[str] = Field(default_factory=list, description="面向用户的诊断信息")

    @classmethod
    def empty(cls, *diagnostics: str) -> "ExtractionResult":
        """没有入口/出口的空结果"""
        return cls(diagnostics=list(diagnostics))

    @property
    def is_empty(self) -> bool:
        return not self.steps

    def step_ids(self) -> Set[str]:
        return {step.id for step in self.steps}

    def get_step(self, step_id: str) -> Optional[Step]:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def has_outgoing(self, step_id: str) -> bool:
        """步骤是否已有出边"""
        return any(flow.from_step == step_id for flow in self.flows)

    def add_flow(self, from_step: str, to_step: str, kind: FlowKind = FlowKind.DIRECT_CALL) -> Flow:
        flow = Flow(from_step=from_step, to_step=to_step, kind=kind)
        self.flows.append(flow)
        return flow

    def merge(self, other: "ExtractionResult") -> None:
        """把子结果的步骤、流和诊断追加进来（入口/出口保持不变）"""
        self.steps.extend(other.steps)
        self.flows.extend(other.flows)
        self.diagnostics.extend(other.diagnostics)

    def to_dict(self) -> Dict[str, Any]:
        """转换为可 JSON 序列化的字典（流使用 from/to 字段名）"""
        return self.model_dump(mode="json", by_alias=True)
