import logging
from typing import Dict, Iterable, List, Optional

from tool_core.domain.context import InvocationContext
from tool_core.domain.exceptions import BusinessError, ToolCancelledError
from tool_core.domain.models import Content, Part
from tool_core.domain.request import LLMRequest
from tool_core.domain.response import LLMResponse
from tool_core.infrastructure.logging.logger import log_event
from tool_core.tools.base import Tool, ToolContext
from .definitions import ToolCall, ToolResult


class ToolExecutor:
    """按名称把模型的函数调用分发到请求中注册的工具。

    转换失败、执行失败、未知工具都会变成 is_error 的 ToolResult，交给模型自行处理；
    取消错误直接向上抛出，由编排层中止本轮。
    """

    def __init__(self, request_or_tools):
        if isinstance(request_or_tools, LLMRequest):
            self._tools: Dict[str, Tool] = request_or_tools.tools
        else:
            self._tools = dict(request_or_tools)

    def execute(
        self,
        ctx: InvocationContext,
        call: ToolCall,
        invocation_id: Optional[str] = None,
    ) -> ToolResult:
        tool = self._tools.get(call.name)
        if tool is None:
            log_event(logging.WARNING, "Tool not registered", tool_name=call.name)
            return ToolResult(
                call_id=call.id,
                name=call.name,
                content={"error": {"code": "TOOL_NOT_FOUND", "message": f"tool {call.name!r} not registered"}},
                is_error=True,
            )
        tool_ctx = ToolContext(function_call_id=call.id, invocation_id=invocation_id)
        try:
            content = tool.run(ctx, tool_ctx, call.arguments)
        except ToolCancelledError:
            raise
        except BusinessError as exc:
            error = {"code": exc.code, "message": exc.message}
            path = exc.extra.get("path")
            if path:
                error["path"] = path
            return ToolResult(call_id=call.id, name=call.name, content={"error": error}, is_error=True)
        return ToolResult(call_id=call.id, name=call.name, content=content)

    def execute_all(
        self,
        ctx: InvocationContext,
        calls: Iterable[ToolCall],
        invocation_id: Optional[str] = None,
    ) -> List[ToolResult]:
        results = []
        for call in calls:
            ctx.raise_if_cancelled()
            results.append(self.execute(ctx, call, invocation_id))
        return results

    def execute_response(
        self,
        ctx: InvocationContext,
        response: LLMResponse,
        invocation_id: Optional[str] = None,
    ) -> List[ToolResult]:
        """执行一个模型输出元素里的全部函数调用。"""

        if response.content is None:
            return []
        calls = [ToolCall.from_function_call(fc) for fc in response.content.function_calls]
        return self.execute_all(ctx, calls, invocation_id)

    @staticmethod
    def function_response_content(results: Iterable[ToolResult]) -> Content:
        """把执行结果组装成回传给模型的 Content。"""

        return Content(
            role="tool",
            parts=[Part(function_response=r.to_function_response()) for r in results],
        )
