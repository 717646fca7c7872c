"""
Performance monitor middleware

Measures how long every action spends in the chain below the monitor,
including awaited middleware work, and keeps per-type statistics.
"""

import inspect
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, Optional, Tuple

from actionstack.core.actions import Action
from actionstack.core.store import MiddlewareContext

logger = logging.getLogger(__name__)


@dataclass
class ActionTiming:
    """Aggregated timings of one action type"""
    action_type: str
    count: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0
    failures: int = 0

    @property
    def average_ms(self) -> float:
        return self.total_ms / self.count if self.count else 0.0

    def record(self, duration_ms: float, failed: bool = False) -> None:
        self.count += 1
        self.total_ms += duration_ms
        self.max_ms = max(self.max_ms, duration_ms)
        if failed:
            self.failures += 1


class PerformanceMonitor:
    """
    Middleware collecting dispatch durations.

    Usage:
        monitor = PerformanceMonitor(slow_threshold_ms=50)
        store = Store.create({"reducer": reducer, "middleware": [monitor]})
        ...
        monitor.get_statistics()
    """

    def __init__(self, max_history: int = 1000, slow_threshold_ms: Optional[float] = None):
        self.max_history = max_history
        self.slow_threshold_ms = slow_threshold_ms
        self.timings: Dict[str, ActionTiming] = {}
        self.history: Deque[Tuple[str, float]] = deque(maxlen=max_history)

    def __call__(self, context: MiddlewareContext, next_fn: Callable[[Action], Any]) -> Callable[[Action], Any]:

        def handle(action: Action) -> Any:
            started = time.perf_counter()
            try:
                result = next_fn(action)
            except Exception:
                self._record(action, started, failed=True)
                raise

            if inspect.isawaitable(result) and not isinstance(result, Action):
                async def finish() -> Any:
                    failed = True
                    try:
                        value = await result
                        failed = False
                        return value
                    finally:
                        self._record(action, started, failed=failed)
                return finish()

            self._record(action, started)
            return result

        return handle

    def _record(self, action: Action, started: float, failed: bool = False) -> None:
        duration_ms = (time.perf_counter() - started) * 1000
        timing = self.timings.get(action.type)
        if timing is None:
            timing = self.timings[action.type] = ActionTiming(action.type)
        timing.record(duration_ms, failed=failed)
        self.history.append((action.type, duration_ms))

        if self.slow_threshold_ms is not None and duration_ms > self.slow_threshold_ms:
            logger.warning(
                f"Slow action '{action.type}': {duration_ms:.2f}ms "
                f"(threshold {self.slow_threshold_ms}ms)"
            )

    def get_statistics(self) -> Dict[str, Any]:
        """Get per-type and overall timing statistics"""
        total_count = sum(t.count for t in self.timings.values())
        total_ms = sum(t.total_ms for t in self.timings.values())
        return {
            'actions_measured': total_count,
            'average_ms': total_ms / total_count if total_count else 0.0,
            'by_type': {
                action_type: {
                    'count': timing.count,
                    'average_ms': timing.average_ms,
                    'max_ms': timing.max_ms,
                    'failures': timing.failures,
                }
                for action_type, timing in self.timings.items()
            },
        }

    def reset(self) -> None:
        """Clear all collected timings"""
        self.timings.clear()
        self.history.clear()


perfmon = PerformanceMonitor()
