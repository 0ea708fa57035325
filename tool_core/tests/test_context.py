import pytest

from tool_core.domain.context import InvocationContext
from tool_core.domain.exceptions import ToolCancelledError


def test_cancel_sets_reason_and_runs_callbacks():
    ctx = InvocationContext()
    seen = []
    ctx.add_done_callback(lambda c: seen.append(c.reason))
    assert not ctx.cancelled
    ctx.cancel("stop")
    ctx.cancel("again")
    assert ctx.cancelled
    assert ctx.reason == "stop"
    assert seen == ["stop"]
    with pytest.raises(ToolCancelledError) as ei:
        ctx.raise_if_cancelled()
    assert ei.value.code == "CANCELLED"


def test_callback_after_cancel_runs_immediately():
    ctx = InvocationContext()
    ctx.cancel()
    seen = []
    ctx.add_done_callback(lambda c: seen.append(True))
    assert seen == [True]


def test_child_cancelled_with_parent():
    parent = InvocationContext()
    child = parent.child()
    parent.cancel("parent gone")
    assert child.cancelled
    assert child.reason == "parent gone"


def test_timeout_cancels_context():
    ctx = InvocationContext().with_timeout(0.05)
    assert ctx.remaining() is not None
    assert ctx.wait(5)
    assert ctx.reason == "deadline exceeded"


def test_child_deadline_not_later_than_parent():
    parent = InvocationContext().with_timeout(10)
    child = parent.with_timeout(100)
    assert child.deadline == parent.deadline
    assert InvocationContext().remaining() is None


def test_remove_done_callback():
    ctx = InvocationContext()
    seen = []
    handle = ctx.add_done_callback(lambda c: seen.append(True))
    assert ctx.callback_count == 1
    assert ctx.remove_done_callback(handle)
    assert not ctx.remove_done_callback(handle)
    ctx.cancel()
    assert seen == []


def test_finished_children_detach_from_parent():
    parent = InvocationContext()
    for _ in range(50):
        parent.with_timeout(10).cancel("done")
        parent.child().cancel()
    assert parent.callback_count == 0
    assert not parent.cancelled


def test_child_of_cancelled_parent_is_cancelled():
    parent = InvocationContext()
    parent.cancel("gone")
    child = parent.with_timeout(10)
    assert child.cancelled
    assert child.reason == "gone"
