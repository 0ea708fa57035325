"""模型单轮输出。

LLMResponse 是模型后端为一个轮次产生的单个元素；LLMResponseStream 把后端的
产出包装成只能遍历一次的有序序列：

- 非流式：只有一个终止元素。
- 流式：若干 partial=True 的文本增量，最后是一个 partial=False 的终止元素。

元素一旦带有 interrupted / turn_complete / 错误信息，就是本轮最后一个元素，
流会在产出它之后立即结束并关闭底层生成器。
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from tool_core.domain.context import InvocationContext
from tool_core.domain.models import Content, Usage
from tool_core.infrastructure.logging.logger import log_event


@dataclass
class LLMResponse:
    """模型的一次输出元素。

    - partial: 是否为纯文本增量，仅在流式模式且内容为纯文本时使用。
    - turn_complete: 本轮生成是否结束。
    - interrupted: 是否被外部打断（例如用户在双向流式中插话）。
    - error_code / error_message: 后端错误，非空时本元素为最后一个元素。
    """

    content: Optional[Content] = None
    partial: bool = False
    turn_complete: bool = False
    interrupted: bool = False
    error_code: Optional[int] = None
    error_message: Optional[str] = None
    usage: Optional[Usage] = None

    @property
    def has_error(self) -> bool:
        return self.error_code is not None or bool(self.error_message)

    @property
    def is_terminal(self) -> bool:
        return self.interrupted or self.turn_complete or self.has_error


class LLMResponseStream(Iterator[LLMResponse]):
    """单次遍历的响应流。

    迭代器本身即为自己的 __iter__，遍历结束后不能重新开始。
    传入 ctx 时，每取下一个元素前都会检查取消状态，已取消则停止并关闭生产者。
    """

    def __init__(self, source: Iterable[LLMResponse], ctx: Optional[InvocationContext] = None):
        self._source = iter(source)
        self._ctx = ctx
        self._done = False
        self.cancelled = False

    @classmethod
    def single(cls, response: LLMResponse, ctx: Optional[InvocationContext] = None) -> "LLMResponseStream":
        return cls([response], ctx=ctx)

    def __iter__(self) -> "LLMResponseStream":
        return self

    def __next__(self) -> LLMResponse:
        if self._done:
            raise StopIteration
        if self._ctx is not None and self._ctx.cancelled:
            self.cancelled = True
            log_event(logging.INFO, "Response stream cancelled", reason=self._ctx.reason)
            self.close()
            raise StopIteration
        try:
            response = next(self._source)
        except StopIteration:
            self._done = True
            raise
        except BaseException:
            self.close()
            raise
        if response.is_terminal:
            self.close()
        return response

    def close(self) -> None:
        """停止产出并关闭底层生成器（若支持）。"""

        if self._done and self._source is None:
            return
        self._done = True
        source, self._source = self._source, None
        close = getattr(source, "close", None)
        if close is not None:
            close()
