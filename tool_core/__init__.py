"""tool_core 顶层包。

该包把带类型标注的 Python 函数暴露为模型可调用的工具，并组装每轮发给模型的请求，
包括 Schema 推断、文档与类型值的双向转换、工具注册与声明同步、
响应流约定以及配置与日志等基础能力。
"""

from tool_core.domain.context import InvocationContext
from tool_core.domain.request import LLMRequest
from tool_core.domain.response import LLMResponse, LLMResponseStream
from tool_core.tools.base import Tool, ToolContext
from tool_core.tools.function_tool import FunctionTool, FunctionToolConfig, function_tool, new_function_tool

__all__ = [
    "FunctionTool",
    "FunctionToolConfig",
    "InvocationContext",
    "LLMRequest",
    "LLMResponse",
    "LLMResponseStream",
    "Tool",
    "ToolContext",
    "function_tool",
    "new_function_tool",
]
