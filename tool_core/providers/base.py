"""模型后端抽象接口。

上层编排不直接依赖具体厂商的 HTTP SDK，而是依赖此协议：

- 每个厂商实现一个 Model（如 GlmModel）。
- 负责：将 LLMRequest 转成具体 API 请求，并把响应解析为 LLMResponseStream。

这样可以在不改编排代码的前提下接入更多厂商。
"""

from typing import Protocol

from tool_core.domain.context import InvocationContext
from tool_core.domain.request import LLMRequest
from tool_core.domain.response import LLMResponseStream


class Model(Protocol):
    """模型后端协议。

    实现者需要提供：
    - name: 模型名称，用于日志/统计。
    - generate_content(ctx, req, stream): 产出本轮输出的响应流。
    """

    @property
    def name(self) -> str:
        ...

    def generate_content(self, ctx: InvocationContext, req: LLMRequest, stream: bool = False) -> LLMResponseStream:
        ...
