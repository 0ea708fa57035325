import threading
import time
from dataclasses import dataclass
from typing import List

import pytest
from pydantic import BaseModel

from tool_core.domain.context import InvocationContext
from tool_core.domain.exceptions import (
    ConversionError,
    SchemaInferenceError,
    SchemaOverrideError,
    ToolCancelledError,
    ToolExecutionError,
    ValidationError,
)
from tool_core.domain.request import LLMRequest
from tool_core.tools.base import DeclaringTool, Tool, ToolContext
from tool_core.tools.function_tool import FunctionTool, FunctionToolConfig, function_tool, new_function_tool


@dataclass
class AddArgs:
    A: int
    B: int


@dataclass
class AddResult:
    Sum: int


def add(ctx: InvocationContext, args: AddArgs) -> AddResult:
    return AddResult(Sum=args.A + args.B)


class Outcome(BaseModel):
    ok: bool
    detail: str = ""


class Query(BaseModel):
    words: List[str]


def count_words(ctx: InvocationContext, args: Query) -> Outcome:
    if not args.words:
        return Outcome(ok=False, detail="no words")
    return Outcome(ok=True, detail=str(len(args.words)))


def test_add_tool_run():
    tool = FunctionTool(FunctionToolConfig(name="add", description="add two ints"), add)
    out = tool.run(InvocationContext(), ToolContext(function_call_id="c1"), {"A": 2, "B": 3})
    assert out == {"Sum": 5}


def test_function_tool_satisfies_protocols():
    tool = new_function_tool(FunctionToolConfig(name="add"), add)
    assert isinstance(tool, Tool)
    assert isinstance(tool, DeclaringTool)
    assert tool.name == "add"
    assert tool.description == ""


def test_declaration_uses_inferred_schemas():
    tool = FunctionTool(FunctionToolConfig(name="add", description="add two ints"), add)
    decl = tool.function_declaration()
    assert decl.name == "add"
    assert decl.description == "add two ints"
    assert decl.parameters_json_schema["type"] == "object"
    assert set(decl.parameters_json_schema["required"]) == {"A", "B"}
    assert decl.parameters_json_schema["properties"]["A"]["type"] == "integer"
    assert decl.response_json_schema["properties"]["Sum"]["type"] == "integer"


def test_declaration_is_a_copy():
    tool = FunctionTool(FunctionToolConfig(name="add"), add)
    decl = tool.function_declaration()
    decl.parameters_json_schema["properties"].clear()
    again = tool.function_declaration()
    assert "A" in again.parameters_json_schema["properties"]


def test_mismatched_output_override_is_adopted_verbatim():
    override = {
        "type": "object",
        "properties": {"Total": {"type": "string"}},
        "required": ["Total"],
    }
    tool = FunctionTool(FunctionToolConfig(name="add", output_schema=override), add)
    assert tool.output_schema.source == "override"
    assert tool.function_declaration().response_json_schema == override


def test_malformed_override_fails_construction():
    with pytest.raises(SchemaOverrideError) as ei:
        FunctionTool(FunctionToolConfig(name="add", input_schema={"type": 12}), add)
    assert "input schema" in ei.value.message


def test_missing_annotation_fails_construction():
    def untyped(ctx, args) -> AddResult:
        return AddResult(Sum=0)

    with pytest.raises(SchemaInferenceError):
        FunctionTool(FunctionToolConfig(name="untyped"), untyped)


def test_primitive_argument_type_fails_construction():
    def square(ctx: InvocationContext, x: int) -> AddResult:
        return AddResult(Sum=x * x)

    with pytest.raises(SchemaInferenceError) as ei:
        FunctionTool(FunctionToolConfig(name="square"), square)
    assert ei.value.code == "SCHEMA_INFERENCE_ERROR"


def test_unsupported_result_type_fails_construction():
    class Opaque:
        pass

    def make(ctx: InvocationContext, args: AddArgs) -> Opaque:
        return Opaque()

    with pytest.raises(SchemaInferenceError):
        FunctionTool(FunctionToolConfig(name="make"), make)


def test_empty_name_rejected():
    with pytest.raises(ValidationError):
        FunctionTool(FunctionToolConfig(name=""), add)


def test_explicit_types_for_lambda():
    tool = FunctionTool(
        FunctionToolConfig(name="add"),
        lambda ctx, args: AddResult(Sum=args.A * 10 + args.B),
        args_type=AddArgs,
        result_type=AddResult,
    )
    assert tool.run(InvocationContext(), ToolContext(), {"A": 1, "B": 2}) == {"Sum": 12}


def test_run_rejects_string_for_int():
    tool = FunctionTool(FunctionToolConfig(name="add"), add)
    with pytest.raises(ConversionError) as ei:
        tool.run(InvocationContext(), ToolContext(), {"A": "2", "B": 3})
    assert ei.value.path == "A"


def test_run_reports_missing_field():
    tool = FunctionTool(FunctionToolConfig(name="add"), add)
    with pytest.raises(ConversionError) as ei:
        tool.run(InvocationContext(), ToolContext(), {"A": 2})
    assert ei.value.path == "B"


def test_run_lenient_and_strict_unknown_fields():
    lenient = FunctionTool(FunctionToolConfig(name="add", reject_unknown_fields=False), add)
    assert lenient.run(InvocationContext(), ToolContext(), {"A": 1, "B": 1, "C": 9}) == {"Sum": 2}

    strict = FunctionTool(FunctionToolConfig(name="add", reject_unknown_fields=True), add)
    with pytest.raises(ConversionError) as ei:
        strict.run(InvocationContext(), ToolContext(), {"A": 1, "B": 1, "C": 9})
    assert ei.value.path == "C"


def test_business_failure_encoded_in_result():
    tool = FunctionTool(FunctionToolConfig(name="count_words"), count_words)
    assert tool.run(InvocationContext(), ToolContext(), {"words": []}) == {"ok": False, "detail": "no words"}
    assert tool.run(InvocationContext(), ToolContext(), {"words": ["a", "b"]}) == {"ok": True, "detail": "2"}


def test_handler_exception_becomes_execution_error():
    def boom(ctx: InvocationContext, args: AddArgs) -> AddResult:
        raise ZeroDivisionError("division by zero")

    tool = FunctionTool(FunctionToolConfig(name="boom"), boom)
    with pytest.raises(ToolExecutionError) as ei:
        tool.run(InvocationContext(), ToolContext(), {"A": 1, "B": 0})
    assert ei.value.tool_name == "boom"
    assert isinstance(ei.value.__cause__, ZeroDivisionError)


def test_output_override_mismatch_fails_at_run():
    override = {
        "type": "object",
        "properties": {"Total": {"type": "string"}},
        "required": ["Total"],
    }
    tool = FunctionTool(FunctionToolConfig(name="add", output_schema=override), add)
    with pytest.raises(ConversionError) as ei:
        tool.run(InvocationContext(), ToolContext(), {"A": 1, "B": 1})
    assert ei.value.path == "Total"


def test_cancel_mid_run_returns_promptly():
    release = threading.Event()
    started = threading.Event()

    def slow(ctx: InvocationContext, args: AddArgs) -> AddResult:
        started.set()
        release.wait(5)
        return AddResult(Sum=args.A + args.B)

    tool = FunctionTool(FunctionToolConfig(name="slow"), slow)
    ctx = InvocationContext()

    def cancel_when_started():
        started.wait(5)
        ctx.cancel("user interrupted")

    canceller = threading.Thread(target=cancel_when_started)
    canceller.start()
    begin = time.monotonic()
    try:
        with pytest.raises(ToolCancelledError) as ei:
            tool.run(ctx, ToolContext(), {"A": 1, "B": 2})
    finally:
        release.set()
        canceller.join()
    assert time.monotonic() - begin < 4
    assert "user interrupted" in ei.value.message


def test_already_cancelled_context_skips_handler():
    calls = []

    def record(ctx: InvocationContext, args: AddArgs) -> AddResult:
        calls.append(args)
        return AddResult(Sum=0)

    ctx = InvocationContext()
    ctx.cancel()
    tool = FunctionTool(FunctionToolConfig(name="record"), record)
    with pytest.raises(ToolCancelledError):
        tool.run(ctx, ToolContext(), {"A": 1, "B": 2})
    assert calls == []


def test_deadline_cancels_run():
    def sleepy(ctx: InvocationContext, args: AddArgs) -> AddResult:
        ctx.wait(5)
        return AddResult(Sum=0)

    tool = FunctionTool(FunctionToolConfig(name="sleepy"), sleepy)
    with pytest.raises(ToolCancelledError) as ei:
        tool.run(InvocationContext().with_timeout(0.05), ToolContext(), {"A": 1, "B": 2})
    assert "deadline" in ei.value.message


def test_concurrent_runs_share_one_tool():
    tool = FunctionTool(FunctionToolConfig(name="add"), add)
    results = {}

    def worker(i: int) -> None:
        results[i] = tool.run(InvocationContext(), ToolContext(), {"A": i, "B": i})

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert results == {i: {"Sum": 2 * i} for i in range(8)}


def test_handler_without_arguments_or_result():
    seen = []

    def ping(ctx: InvocationContext) -> None:
        seen.append(ctx)

    tool = FunctionTool(FunctionToolConfig(name="ping"), ping)
    decl = tool.function_declaration()
    assert decl.parameters_json_schema is None
    assert decl.response_json_schema is None
    assert tool.run(InvocationContext(), ToolContext(), {"ignored": 1}) == {}
    assert len(seen) == 1


def test_override_for_missing_side_rejected():
    def ping(ctx: InvocationContext) -> None:
        return None

    with pytest.raises(ValidationError):
        FunctionTool(FunctionToolConfig(name="ping", input_schema={"type": "object"}), ping)


def test_process_request_registers_tool():
    tool = FunctionTool(FunctionToolConfig(name="add"), add)
    req = LLMRequest()
    tool.process_request(InvocationContext(), ToolContext(), req)
    assert req.tools == {"add": tool}
    assert [d.name for d in req.generate_config.tools] == ["add"]


def test_function_tool_decorator():
    @function_tool()
    def multiply(ctx: InvocationContext, args: AddArgs) -> AddResult:
        """Multiply A by B.

        The result is reported as Sum.
        """
        return AddResult(Sum=args.A * args.B)

    assert isinstance(multiply, FunctionTool)
    assert multiply.name == "multiply"
    assert multiply.description == "Multiply A by B."
    assert multiply.run(InvocationContext(), ToolContext(), {"A": 3, "B": 4}) == {"Sum": 12}


def test_repeated_runs_leave_no_callbacks_on_context(monkeypatch):
    tool = FunctionTool(FunctionToolConfig(name="add"), add)
    ctx = InvocationContext()
    for i in range(200):
        assert tool.run(ctx, None, {"A": i, "B": 1}) == {"Sum": i + 1}
    assert ctx.callback_count == 0

    monkeypatch.setattr("tool_core.tools.function_tool.settings.tool_run_timeout", 5.0)
    for i in range(20):
        tool.run(ctx, None, {"A": i, "B": 1})
    assert ctx.callback_count == 0
    assert not ctx.cancelled
