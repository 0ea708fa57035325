"""工具调用数据结构定义。

这些 dataclass 用于在编排层保存和执行模型触发的函数调用：
- ToolCall: 从模型输出中取出的一次调用请求。
- ToolResult: 工具执行结果（JSON 对象），可直接回传给模型。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from tool_core.domain.models import FunctionCall, FunctionResponse


@dataclass
class ToolCall:
    """模型发起的一次工具调用请求。"""

    id: Optional[str]
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_function_call(cls, call: FunctionCall) -> "ToolCall":
        return cls(id=call.id, name=call.name, arguments=dict(call.args or {}))


@dataclass
class ToolResult:
    """工具执行结果。is_error 为真时 content 形如 {"error": {...}}。"""

    call_id: Optional[str]
    name: str
    content: Dict[str, Any]
    is_error: bool = False

    def to_function_response(self) -> FunctionResponse:
        return FunctionResponse(id=self.call_id, name=self.name, response=self.content)
