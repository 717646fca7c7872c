"""
Execution stack for Actionstack

Ordered ledger of in-flight operations. Every change publishes a new snapshot
to subscribers, and callers can wait for the ledger to drain without polling.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OperationType(str, Enum):
    """Kinds of tracked operations"""
    ACTION = "action"
    ASYNC_ACTION = "async action"
    EFFECT = "effect"


@dataclass(frozen=True, eq=False)
class Operation:
    """One in-flight dispatch or effect tracked by the execution stack"""
    operation: OperationType
    instance: Any

    def __repr__(self) -> str:
        return f"Operation({self.operation.value}, {self.instance!r})"


class ExecutionStack(Generic[T]):
    """
    Observable stack of operations.

    The current contents live in a value holder that is replaced on every
    change. Subscribers receive each new snapshot; ``wait_for_empty()``
    waiters are released synchronously when the length drops to zero.
    """

    def __init__(self) -> None:
        self._value: List[T] = []
        self._subscribers: List[Callable[[List[T]], None]] = []
        self._empty_waiters: List[asyncio.Future] = []

    @property
    def length(self) -> int:
        return len(self._value)

    def __len__(self) -> int:
        return len(self._value)

    def push(self, item: T) -> None:
        """Push an item onto the stack"""
        self._next([*self._value, item])

    def peek(self) -> Optional[T]:
        """Top item of the stack, or None if empty"""
        return self._value[-1] if self._value else None

    def pop(self) -> Optional[T]:
        """Remove and return the top item; no-op returning None on empty"""
        if not self._value:
            return None
        item = self._value[-1]
        self._next(self._value[:-1])
        return item

    def filter(self, predicate: Callable[[T], bool]) -> List[T]:
        """Keep only the items satisfying ``predicate`` and return them"""
        retained = [item for item in self._value if predicate(item)]
        self._next(retained)
        return list(retained)

    def clear(self) -> None:
        """Remove all items"""
        self._next([])

    def to_list(self) -> List[T]:
        """Snapshot of the stack, bottom first"""
        return list(self._value)

    to_array = to_list

    def subscribe(self, callback: Callable[[List[T]], None]) -> Callable[[], None]:
        """
        Receive every new snapshot of the stack.

        Returns a function that removes the subscription.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def wait_for_empty(self) -> List[T]:
        """Wait until the stack is empty and return the (empty) snapshot"""
        if not self._value:
            return []

        waiter = asyncio.get_running_loop().create_future()
        self._empty_waiters.append(waiter)
        try:
            return await waiter
        finally:
            if waiter in self._empty_waiters:
                self._empty_waiters.remove(waiter)

    def _next(self, value: List[T]) -> None:
        self._value = value

        for subscriber in list(self._subscribers):
            try:
                subscriber(list(value))
            except Exception as e:
                logger.error(f"Error in execution stack subscriber: {e}")

        if not value and self._empty_waiters:
            waiters, self._empty_waiters = self._empty_waiters, []
            for waiter in waiters:
                if not waiter.done():
                    waiter.set_result([])

    def __repr__(self) -> str:
        return f"ExecutionStack(length={len(self._value)})"
