"""
Tests for exclusive and concurrent admission strategies
"""

import asyncio

import pytest

from actionstack.core.actions import Action, ActionStatus
from actionstack.core.stack import OperationType
from actionstack.core.store import Store

from conftest import history


def delayed_append(tag, delay):
    """Thunk appending ``tag`` to the state after ``delay`` seconds"""
    async def thunk(dispatch, get_state, dependencies):
        await asyncio.sleep(delay)
        dispatch(Action("APPEND", tag))

    thunk.__name__ = f"append_{tag}"
    return thunk


def track_running_thunks(store):
    """Record the largest number of thunks in flight at once"""
    peak = {"thunks": 0}

    def on_change(snapshot):
        running = sum(1 for op in snapshot if op.operation is OperationType.ASYNC_ACTION)
        peak["thunks"] = max(peak["thunks"], running)

    store.stack.subscribe(on_change)
    return peak


class TestExclusiveStrategy:
    """Test serialized admission of root dispatches"""

    @pytest.mark.asyncio
    async def test_root_dispatch_waits_for_empty_stack(self, make_store):
        release = asyncio.Event()

        async def slow(dispatch, get_state, dependencies):
            await release.wait()
            dispatch(Action("INC", 10))

        store = make_store()
        first_token = store.dispatch(slow)
        second_token = store.dispatch(Action("INC"))

        assert store.get_state() == 0
        assert second_token.status is ActionStatus.PENDING
        assert not store.is_idle

        release.set()
        await asyncio.wait_for(second_token, timeout=1)

        assert first_token.status is ActionStatus.RESOLVED
        assert store.get_state() == 11
        assert store.is_idle

    @pytest.mark.asyncio
    async def test_task_outliving_its_thunk_waits_for_admission(self, make_store):
        """Test a task spawned by a finished thunk dispatches as a root"""
        late = asyncio.Event()
        release = asyncio.Event()
        spawned = []
        late_tokens = []

        async def spawn(dispatch, get_state, dependencies):
            async def later():
                await late.wait()
                late_tokens.append(dispatch(Action("INC")))
            spawned.append(asyncio.create_task(later()))

        async def slow(dispatch, get_state, dependencies):
            await release.wait()
            dispatch(Action("INC", 10))

        store = make_store()
        await asyncio.wait_for(store.dispatch(spawn), timeout=1)
        store.dispatch(slow)

        late.set()
        await asyncio.wait_for(spawned[0], timeout=1)

        assert late_tokens[0].status is ActionStatus.PENDING
        assert store.get_state() == 0

        release.set()
        await asyncio.wait_for(late_tokens[0], timeout=1)

        assert store.get_state() == 11
        assert store.is_idle

    @pytest.mark.asyncio
    async def test_arrival_order(self):
        """Test slow roots still commit in arrival order"""
        store = Store.create({"reducer": history, "initial_state": []})
        peak = track_running_thunks(store)

        for tag, delay in (("a", 0.03), ("b", 0.01), ("c", 0)):
            store.dispatch(delayed_append(tag, delay))

        await asyncio.wait_for(store.wait_until_idle(), timeout=1)

        assert store.get_state() == ["a", "b", "c"]
        assert peak["thunks"] == 1

    @pytest.mark.asyncio
    async def test_nested_dispatch_does_not_wait(self):
        """Test dispatches issued by a running thunk start at once"""
        store = Store.create({"reducer": history, "initial_state": []})

        async def outer(dispatch, get_state, dependencies):
            await dispatch(delayed_append("inner", 0))
            dispatch(Action("APPEND", "outer"))

        await asyncio.wait_for(store.dispatch(outer), timeout=1)

        assert store.get_state() == ["inner", "outer"]

    @pytest.mark.asyncio
    async def test_plain_actions_commit_immediately_when_idle(self, store):
        for _ in range(3):
            store.dispatch(Action("INC"))

        assert store.get_state() == 3
        assert store.is_idle


class TestConcurrentStrategy:
    """Test overlapping root dispatches"""

    @pytest.mark.asyncio
    async def test_root_dispatch_starts_at_once(self, make_store):
        release = asyncio.Event()

        async def slow(dispatch, get_state, dependencies):
            await release.wait()
            dispatch(Action("INC", 10))

        store = make_store(strategy="concurrent")
        slow_token = store.dispatch(slow)
        quick_token = store.dispatch(Action("INC"))

        assert quick_token.status is ActionStatus.RESOLVED
        assert store.get_state() == 1
        assert slow_token.status is ActionStatus.PENDING

        release.set()
        await asyncio.wait_for(slow_token, timeout=1)

        assert store.get_state() == 11

    @pytest.mark.asyncio
    async def test_completion_order(self):
        """Test overlapping roots commit as they finish"""
        store = Store.create({"reducer": history, "initial_state": [], "strategy": "concurrent"})
        peak = track_running_thunks(store)

        tokens = [
            store.dispatch(delayed_append(tag, delay))
            for tag, delay in (("a", 0.03), ("b", 0.01), ("c", 0))
        ]
        await asyncio.wait_for(asyncio.gather(*tokens), timeout=1)

        assert store.get_state() == ["c", "b", "a"]
        assert peak["thunks"] == 3
        assert store.is_idle
