"""把带类型标注的 Python 函数包装成工具。

被包装函数的形状为 (ctx, args: TArgs) -> TResults，也可以只接收 ctx：

    @dataclass
    class AddArgs:
        A: int
        B: int

    @dataclass
    class AddResult:
        Sum: int

    def add(ctx: InvocationContext, args: AddArgs) -> AddResult:
        return AddResult(Sum=args.A + args.B)

    tool = FunctionTool(FunctionToolConfig(name="add", description="两数相加"), add)

构造时立即根据 TArgs / TResults（或显式 Schema）解析入参与出参 Schema，
任何一侧失败都会让构造失败，不会得到半成品工具。

被包装函数只返回结果、不返回错误：业务失败需要体现在 TResults 里。
函数内部抛出的异常会在工具边界被捕获并转换为 ToolExecutionError。
"""

import functools
import inspect
import logging
import threading
import time
import typing
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, Tuple, TypeVar

from tool_core.config.settings import settings
from tool_core.domain.context import InvocationContext
from tool_core.domain.exceptions import (
    ConversionError,
    SchemaInferenceError,
    SchemaOverrideError,
    ToolCancelledError,
    ToolExecutionError,
    ValidationError,
)
from tool_core.domain.models import FunctionDeclaration
from tool_core.domain.request import LLMRequest
from tool_core.infrastructure.logging.logger import log_event, logger
from tool_core.tools.base import ToolContext
from tool_core.tools.converter import to_document, to_typed
from tool_core.tools.schema import ResolvedSchema, SchemaMode, resolve_schema

TArgs = TypeVar("TArgs")
TResults = TypeVar("TResults")

Function = Callable[[InvocationContext, TArgs], TResults]

_MISSING: Any = object()
_POSITIONAL = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)


@dataclass(frozen=True)
class FunctionToolConfig:
    """FunctionTool 的构造参数。

    - input_schema / output_schema: 可选的显式 JSON Schema；为空时根据函数类型推断。
    - reject_unknown_fields: 入参出现 Schema 未声明字段时是否拒绝，为空时取配置项。
    """

    name: str
    description: str = ""
    input_schema: Optional[Dict[str, Any]] = None
    output_schema: Optional[Dict[str, Any]] = None
    reject_unknown_fields: Optional[bool] = None


class FunctionTool(Generic[TArgs, TResults]):
    """包装 Python 函数的工具，构造后不可变，可被并发调用。"""

    def __init__(
        self,
        config: FunctionToolConfig,
        handler: Function,
        args_type: Any = _MISSING,
        result_type: Any = _MISSING,
    ):
        if not config.name:
            raise ValidationError(code="EMPTY_TOOL_NAME", message="function tool requires a name")
        takes_args, args_type, result_type = _handler_types(handler, args_type, result_type)

        input_schema: Optional[ResolvedSchema] = None
        if takes_args:
            input_schema = _resolve("input", args_type, config.input_schema, "validation")
        elif config.input_schema is not None:
            raise ValidationError(
                code="UNUSED_SCHEMA",
                message=f"tool {config.name!r}: input_schema given but handler takes no arguments",
            )

        output_schema: Optional[ResolvedSchema] = None
        if result_type not in (None, type(None)):
            output_schema = _resolve("output", result_type, config.output_schema, "serialization")
        elif config.output_schema is not None:
            raise ValidationError(
                code="UNUSED_SCHEMA",
                message=f"tool {config.name!r}: output_schema given but handler returns None",
            )

        self._config = config
        self._handler = handler
        self._takes_args = takes_args
        self._input_schema = input_schema
        self._output_schema = output_schema
        if config.reject_unknown_fields is None:
            self._reject_unknown = settings.tool_reject_unknown_fields
        else:
            self._reject_unknown = config.reject_unknown_fields

    def __repr__(self) -> str:
        return f"FunctionTool(name={self.name!r})"

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def description(self) -> str:
        return self._config.description

    @property
    def input_schema(self) -> Optional[ResolvedSchema]:
        return self._input_schema

    @property
    def output_schema(self) -> Optional[ResolvedSchema]:
        return self._output_schema

    def process_request(self, ctx: InvocationContext, tool_ctx: ToolContext, request: LLMRequest) -> None:
        request.append_tools(self)

    def function_declaration(self) -> FunctionDeclaration:
        decl = FunctionDeclaration(name=self.name, description=self.description)
        if self._input_schema is not None:
            decl.parameters_json_schema = self._input_schema.schema()
        if self._output_schema is not None:
            decl.response_json_schema = self._output_schema.schema()
        return decl

    def run(
        self,
        ctx: InvocationContext,
        tool_ctx: Optional[ToolContext],
        args: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        """执行工具：文档 -> TArgs -> 函数 -> TResults -> 文档。"""

        ctx.raise_if_cancelled()
        start = time.monotonic()
        call_id = tool_ctx.function_call_id if tool_ctx is not None else None
        log_ctx = {"tool_name": self.name, "function_call_id": call_id}

        value: Any = None
        if self._input_schema is not None:
            try:
                value = to_typed(args if args is not None else {}, self._input_schema, self._reject_unknown)
            except ConversionError as exc:
                log_event(logging.WARNING, "Tool input conversion failed", path=exc.path, error=exc.message, **log_ctx)
                raise

        output = self._invoke(ctx, value, log_ctx)

        document: Dict[str, Any] = {}
        if self._output_schema is not None:
            try:
                document = to_document(output, self._output_schema)
            except ConversionError as exc:
                log_event(logging.WARNING, "Tool output conversion failed", path=exc.path, error=exc.message, **log_ctx)
                raise
        log_event(
            logging.INFO,
            "Tool run finished",
            elapsed_ms=round((time.monotonic() - start) * 1000, 2),
            **log_ctx,
        )
        return document

    def _invoke(self, ctx: InvocationContext, value: Any, log_ctx: Dict[str, Any]) -> Any:
        """在工作线程中执行函数，ctx 被取消时立即返回。"""

        timeout = settings.tool_run_timeout
        run_ctx = ctx.with_timeout(timeout) if timeout else ctx
        if self._takes_args:
            call = functools.partial(self._handler, run_ctx, value)
        else:
            call = functools.partial(self._handler, run_ctx)

        done = threading.Event()
        outcome: Dict[str, Any] = {}

        def _target() -> None:
            try:
                outcome["value"] = call()
            except Exception as exc:
                outcome["error"] = exc
            finally:
                done.set()

        on_cancel = run_ctx.add_done_callback(lambda _c: done.set())
        try:
            worker = threading.Thread(target=_target, name=f"tool-{self.name}", daemon=True)
            worker.start()
            done.wait()
        finally:
            run_ctx.remove_done_callback(on_cancel)
            if run_ctx is not ctx:
                run_ctx.cancel("run finished")

        if "value" not in outcome and "error" not in outcome:
            reason = run_ctx.reason or "context cancelled"
            log_event(logging.WARNING, "Tool run cancelled", reason=reason, **log_ctx)
            raise ToolCancelledError(f"tool {self.name!r} cancelled: {reason}", tool_name=self.name)

        error = outcome.get("error")
        if isinstance(error, ToolCancelledError):
            raise error
        if error is not None:
            logger.error(
                "Tool handler raised",
                exc_info=error,
                extra={"extra": dict(log_ctx, error_type=type(error).__name__)},
            )
            raise ToolExecutionError(
                f"tool {self.name!r} failed: {type(error).__name__}: {error}",
                tool_name=self.name,
            ) from error
        return outcome["value"]


def new_function_tool(
    config: FunctionToolConfig,
    handler: Function,
    args_type: Any = _MISSING,
    result_type: Any = _MISSING,
) -> FunctionTool:
    """创建 FunctionTool；Schema 推断失败时抛出 SchemaInferenceError。"""

    return FunctionTool(config, handler, args_type=args_type, result_type=result_type)


def function_tool(
    name: Optional[str] = None,
    description: Optional[str] = None,
    input_schema: Optional[Dict[str, Any]] = None,
    output_schema: Optional[Dict[str, Any]] = None,
) -> Callable[[Function], FunctionTool]:
    """装饰器形式：名称默认取函数名，描述默认取 docstring 第一段。"""

    def decorator(handler: Function) -> FunctionTool:
        doc = inspect.getdoc(handler) or ""
        config = FunctionToolConfig(
            name=name or handler.__name__,
            description=description if description is not None else doc.split("\n\n", 1)[0].strip(),
            input_schema=input_schema,
            output_schema=output_schema,
        )
        return FunctionTool(config, handler)

    return decorator


def _resolve(kind: str, type_: Any, override: Optional[Dict[str, Any]], mode: SchemaMode) -> ResolvedSchema:
    try:
        return resolve_schema(type_, override, mode=mode)
    except SchemaOverrideError as exc:
        raise SchemaOverrideError(f"failed to resolve {kind} schema: {exc.message}") from exc
    except SchemaInferenceError as exc:
        raise SchemaInferenceError(f"failed to infer {kind} schema: {exc.message}") from exc


def _handler_types(handler: Callable, args_type: Any, result_type: Any) -> Tuple[bool, Any, Any]:
    """从函数签名中取出 (是否接收参数, TArgs, TResults)。"""

    if not callable(handler):
        raise SchemaInferenceError(f"handler is not callable: {handler!r}")
    try:
        sig = inspect.signature(handler)
    except (TypeError, ValueError) as exc:
        raise SchemaInferenceError(f"cannot inspect handler signature: {exc}") from exc
    params = [p for p in sig.parameters.values() if p.kind in _POSITIONAL]
    if len(params) not in (1, 2):
        raise SchemaInferenceError("handler must accept (ctx) or (ctx, args)")
    takes_args = len(params) == 2

    hints: Dict[str, Any] = {}
    if (takes_args and args_type is _MISSING) or result_type is _MISSING:
        target = handler
        if not (inspect.isfunction(handler) or inspect.ismethod(handler)):
            target = getattr(handler, "__call__", handler)
        try:
            hints = typing.get_type_hints(target)
        except (NameError, TypeError) as exc:
            raise SchemaInferenceError(f"cannot resolve handler annotations: {exc}") from exc

    if takes_args and args_type is _MISSING:
        arg_name = params[1].name
        if arg_name not in hints:
            raise SchemaInferenceError(f"handler parameter {arg_name!r} has no type annotation")
        args_type = hints[arg_name]
    if result_type is _MISSING:
        if "return" not in hints:
            raise SchemaInferenceError("handler has no return type annotation")
        result_type = hints["return"]
    return takes_args, (args_type if takes_args else None), result_type
