"""工具能力协议。

所有工具（FunctionTool 以及 MCP、搜索、代码执行等其他类型）都满足 Tool 协议：

- name / description: 只读配置，构造后不再变化。
- process_request(ctx, tool_ctx, request): 把自己注册进请求的工具表。
- run(ctx, tool_ctx, args): 执行工具，入参与结果均为 JSON 对象（dict）。

额外实现 function_declaration() 的工具会同时出现在模型可见的声明列表中；
没有声明的工具只会被注册用于分发。
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Optional, Protocol, runtime_checkable

from tool_core.domain.context import InvocationContext
from tool_core.domain.models import FunctionDeclaration

if TYPE_CHECKING:
    # 仅在类型检查时导入，避免运行时循环依赖
    from tool_core.domain.request import LLMRequest


@dataclass
class ToolContext:
    """单次工具调用的附带信息，不直接传给被包装的函数。"""

    function_call_id: Optional[str] = None
    invocation_id: Optional[str] = None
    state: Dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class Tool(Protocol):
    @property
    def name(self) -> str:
        ...

    @property
    def description(self) -> str:
        ...

    def process_request(
        self, ctx: InvocationContext, tool_ctx: ToolContext, request: "LLMRequest"
    ) -> None:
        ...

    def run(
        self, ctx: InvocationContext, tool_ctx: ToolContext, args: Dict[str, Any]
    ) -> Dict[str, Any]:
        ...


@runtime_checkable
class DeclaringTool(Protocol):
    """提供函数声明的工具。"""

    def function_declaration(self) -> Optional[FunctionDeclaration]:
        ...
