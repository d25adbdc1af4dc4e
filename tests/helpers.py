"""测试断言辅助函数"""

from typing import List, Set, Tuple

from flowmaster.api.models import ExtractionResult, StepKind


def labels(result: ExtractionResult) -> Set[str]:
    return {step.label for step in result.steps}


def flow_labels(result: ExtractionResult) -> Set[Tuple[str, str]]:
    """以 (起点标签, 终点标签) 表示的流集合"""
    by_id = {step.id: step.label for step in result.steps}
    return {(by_id[flow.from_step], by_id[flow.to_step]) for flow in result.flows}


def entry_labels(result: ExtractionResult) -> List[str]:
    return [step.label for step in result.steps if step.kind == StepKind.ENTRY_POINT]
