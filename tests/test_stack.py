"""
Tests for the execution stack
"""

import asyncio
import logging

import pytest

from actionstack.core.actions import Action
from actionstack.core.stack import ExecutionStack, Operation, OperationType


class TestExecutionStack:
    """Test ExecutionStack operations"""

    def test_push_peek_pop(self):
        stack = ExecutionStack()
        stack.push("a")
        stack.push("b")

        assert stack.length == 2
        assert len(stack) == 2
        assert stack.peek() == "b"
        assert stack.pop() == "b"
        assert stack.to_list() == ["a"]

    def test_pop_on_empty_is_noop(self):
        """Test pop on an empty stack returns None and publishes nothing"""
        stack = ExecutionStack()
        snapshots = []
        stack.subscribe(snapshots.append)

        assert stack.pop() is None
        assert stack.peek() is None
        assert snapshots == []

    def test_filter_returns_retained(self):
        """Test filter keeps matching entries and returns them"""
        stack = ExecutionStack()
        for item in (1, 2, 3, 4):
            stack.push(item)

        retained = stack.filter(lambda item: item % 2 == 0)

        assert retained == [2, 4]
        assert stack.to_array() == [2, 4]

    def test_snapshots_are_copies(self):
        """Test returned snapshots are detached from the stack"""
        stack = ExecutionStack()
        stack.push("a")
        snapshot = stack.to_list()
        snapshot.append("b")

        assert stack.to_list() == ["a"]

    def test_subscribe_and_unsubscribe(self):
        """Test subscribers receive every snapshot until unsubscribed"""
        stack = ExecutionStack()
        snapshots = []
        unsubscribe = stack.subscribe(snapshots.append)

        stack.push("a")
        stack.push("b")
        stack.clear()
        unsubscribe()
        stack.push("c")

        assert snapshots == [["a"], ["a", "b"], []]

    def test_failing_subscriber_is_logged(self, caplog):
        stack = ExecutionStack()

        def broken(_):
            raise RuntimeError("subscriber failed")

        stack.subscribe(broken)

        with caplog.at_level(logging.ERROR, logger="actionstack.core.stack"):
            stack.push("a")

        assert stack.to_list() == ["a"]
        assert "subscriber failed" in caplog.text

    def test_operation_identity(self):
        """Test operations compare by identity"""
        action = Action("INC")
        first = Operation(OperationType.ACTION, action)
        second = Operation(OperationType.ACTION, action)

        assert first != second
        assert first.operation.value == "action"
        assert OperationType.ASYNC_ACTION.value == "async action"
        assert OperationType.EFFECT.value == "effect"

    @pytest.mark.asyncio
    async def test_wait_for_empty_when_empty(self):
        """Test waiting on an empty stack returns immediately"""
        stack = ExecutionStack()

        assert await stack.wait_for_empty() == []

    @pytest.mark.asyncio
    async def test_wait_for_empty_releases_on_drain(self):
        """Test waiters are released when the length reaches zero"""
        stack = ExecutionStack()
        stack.push("a")
        stack.push("b")

        waiter = asyncio.create_task(stack.wait_for_empty())
        await asyncio.sleep(0)
        assert not waiter.done()

        stack.pop()
        await asyncio.sleep(0)
        assert not waiter.done()

        stack.filter(lambda item: False)
        result = await asyncio.wait_for(waiter, timeout=1)

        assert result == []

    @pytest.mark.asyncio
    async def test_multiple_waiters(self):
        stack = ExecutionStack()
        stack.push("a")

        waiters = [asyncio.create_task(stack.wait_for_empty()) for _ in range(3)]
        await asyncio.sleep(0)
        stack.clear()

        results = await asyncio.wait_for(asyncio.gather(*waiters), timeout=1)

        assert results == [[], [], []]
