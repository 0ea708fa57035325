"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在编排层（对话循环）做统一捕获，再决定重试、回报模型还是中止本轮。

错误分类：
- 构造期（致命）：SchemaInferenceError / SchemaOverrideError。
- 运行期（可恢复）：ConversionError / ToolExecutionError。
- 请求组装：RegistrationError。
- 取消：ToolCancelledError。
"""

from typing import Optional


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "CONVERSION_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 tool_name、path 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(BusinessError):
    """第三方 API 返回非 2xx/429 错误时抛出。"""


class RateLimitError(BusinessError):
    """Provider 限流错误，由上层负责重试/退避策略。"""


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class SchemaInferenceError(BusinessError):
    """无法从类型推断出 JSON Schema，工具构造失败。"""

    def __init__(self, message: str, **extra):
        super().__init__(code="SCHEMA_INFERENCE_ERROR", message=message, http_status=500, **extra)


class SchemaOverrideError(BusinessError):
    """显式传入的 Schema 不是合法的 JSON Schema。"""

    def __init__(self, message: str, **extra):
        super().__init__(code="SCHEMA_OVERRIDE_ERROR", message=message, http_status=500, **extra)


class ConversionError(BusinessError):
    """文档与类型值之间转换失败。

    path 为出错字段的路径，例如 "items.0.name"；根对象本身出错时为空字符串。
    """

    def __init__(self, message: str, path: str = "", **extra):
        self.path = path
        text = f"{path}: {message}" if path else message
        super().__init__(code="CONVERSION_ERROR", message=text, path=path, **extra)


class RegistrationError(BusinessError):
    """向请求注册工具失败（空名称、None 或重名）。"""

    def __init__(
        self,
        message: str,
        index: int,
        tool_name: Optional[str] = None,
        code: str = "REGISTRATION_ERROR",
    ):
        self.index = index
        self.tool_name = tool_name
        super().__init__(code=code, message=message, index=index, tool_name=tool_name)


class ToolCancelledError(BusinessError):
    """调用上下文被取消（或超过截止时间）时抛出。"""

    def __init__(self, message: str = "context cancelled", **extra):
        super().__init__(code="CANCELLED", message=message, http_status=499, **extra)


class ToolExecutionError(BusinessError):
    """被包装的函数在执行时抛出了未受控的异常。"""

    def __init__(self, message: str, tool_name: str, **extra):
        self.tool_name = tool_name
        super().__init__(
            code="TOOL_EXECUTION_ERROR",
            message=message,
            http_status=500,
            tool_name=tool_name,
            **extra,
        )
