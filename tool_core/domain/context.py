"""可取消的调用上下文。

InvocationContext 贯穿 process_request / run / generate_content，
用于在一次模型轮次内传递取消信号与截止时间：

- cancel(): 取消当前上下文及其所有子上下文。
- with_timeout(): 派生一个带截止时间的子上下文，父上下文取消时子上下文同步取消。
- add_done_callback() / remove_done_callback(): 取消时回调，FunctionTool 依赖它让 run 立即返回，
  run 结束后会把回调移除。子上下文被取消后自动从父上下文摘除，用完的子上下文应调用 cancel()。

该类是线程安全的，可以在编排线程中取消、在工具线程中检查。
"""

import threading
import time
from typing import Callable, List, Optional

from tool_core.domain.exceptions import ToolCancelledError

DoneCallback = Callable[["InvocationContext"], None]


class InvocationContext:
    """携带取消信号的上下文，deadline 使用 time.monotonic() 时间轴。"""

    def __init__(
        self,
        deadline: Optional[float] = None,
        parent: Optional["InvocationContext"] = None,
    ):
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._reason: Optional[str] = None
        self._callbacks: List[DoneCallback] = []
        self._timer: Optional[threading.Timer] = None
        self._parent: Optional["InvocationContext"] = None
        self._parent_callback: Optional[DoneCallback] = None

        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self.deadline = deadline

        if parent is not None:
            self._parent = parent
            self._parent_callback = parent.add_done_callback(lambda p: self.cancel(p.reason))
        if deadline is not None and not self.cancelled:
            delay = max(0.0, deadline - time.monotonic())
            self._timer = threading.Timer(delay, self.cancel, args=("deadline exceeded",))
            self._timer.daemon = True
            self._timer.start()

    def with_timeout(self, seconds: float) -> "InvocationContext":
        """派生一个最多存活 seconds 秒的子上下文。"""

        return InvocationContext(deadline=time.monotonic() + seconds, parent=self)

    def child(self) -> "InvocationContext":
        return InvocationContext(parent=self)

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def remaining(self) -> Optional[float]:
        """距离截止时间的剩余秒数；没有截止时间时返回 None。"""

        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def cancel(self, reason: Optional[str] = None) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason or "context cancelled"
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
            timer, self._timer = self._timer, None
            parent, self._parent = self._parent, None
            parent_callback, self._parent_callback = self._parent_callback, None
        if timer is not None:
            timer.cancel()
        # 子上下文一旦结束即从父上下文摘除
        if parent is not None and parent_callback is not None:
            parent.remove_done_callback(parent_callback)
        for cb in callbacks:
            cb(self)

    def add_done_callback(self, fn: DoneCallback) -> DoneCallback:
        """注册取消回调；若已取消则立即在当前线程执行。

        返回 fn 本身，可作为 remove_done_callback 的参数。
        """

        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(fn)
                return fn
        fn(self)
        return fn

    def remove_done_callback(self, fn: DoneCallback) -> bool:
        """移除尚未执行的回调，返回是否真的移除了。"""

        with self._lock:
            try:
                self._callbacks.remove(fn)
            except ValueError:
                return False
            return True

    @property
    def callback_count(self) -> int:
        """当前挂起的回调数量。"""

        with self._lock:
            return len(self._callbacks)

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise ToolCancelledError(self._reason or "context cancelled")
