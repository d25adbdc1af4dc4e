"""
数据模型测试
"""

import pytest
from pydantic import ValidationError

from flowmaster.api.models import ExtractionResult, Flow, FlowKind, Step, StepKind


def _result_with_two_steps():
    entry = Step(label="main", kind=StepKind.ENTRY_POINT)
    exit_ = Step(label="Exit main", kind=StepKind.EXIT_POINT)
    return ExtractionResult(steps=[entry, exit_], entry_step_id=entry.id, exit_step_id=exit_.id)


def test_step_ids_are_unique():
    steps = [Step(label="x", kind=StepKind.FUNCTION) for _ in range(50)]

    assert len({step.id for step in steps}) == 50


def test_step_is_immutable():
    step = Step(label="x", kind=StepKind.FUNCTION)

    with pytest.raises(ValidationError):
        step.label = "y"


def test_flow_aliases():
    flow = Flow(**{"from": "a", "to": "b"})

    assert flow.from_step == "a"
    assert flow.to_step == "b"
    assert flow.kind == FlowKind.DIRECT_CALL


def test_to_dict_uses_wire_names():
    result = _result_with_two_steps()
    result.add_flow(result.entry_step_id, result.exit_step_id)

    data = result.to_dict()

    assert data["flows"][0]["from"] == result.entry_step_id
    assert data["flows"][0]["to"] == result.exit_step_id
    assert data["flows"][0]["kind"] == "DirectCall"
    assert data["steps"][0]["kind"] == "EntryPoint"


def test_has_outgoing():
    result = _result_with_two_steps()

    assert not result.has_outgoing(result.entry_step_id)
    result.add_flow(result.entry_step_id, result.exit_step_id)
    assert result.has_outgoing(result.entry_step_id)
    assert not result.has_outgoing(result.exit_step_id)


def test_merge_keeps_own_boundaries():
    parent = _result_with_two_steps()
    child = _result_with_two_steps()
    child.diagnostics.append("note")

    parent.merge(child)

    assert len(parent.steps) == 4
    assert parent.entry_step_id != child.entry_step_id
    assert parent.diagnostics == ["note"]
    assert parent.get_step(child.entry_step_id) is not None


def test_empty_result():
    result = ExtractionResult.empty("Function x not found in a.ts.")

    assert result.is_empty
    assert result.entry_step_id is None
    assert result.diagnostics == ["Function x not found in a.ts."]
