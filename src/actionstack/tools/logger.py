"""
Logging middleware

Logs every action passing through the chain and the state committed for it.
"""

import inspect
import logging
from typing import Any, Callable, Optional

from actionstack.core.actions import Action
from actionstack.core.store import MiddlewareContext

logger = logging.getLogger(__name__)


def create_logger(
    level: int = logging.INFO,
    log_state: bool = True,
    target: Optional[logging.Logger] = None,
) -> Callable[[MiddlewareContext, Callable[[Action], Any]], Callable[[Action], Any]]:
    """Create a logging middleware writing to ``target`` (this module's logger by default)"""
    log = target or logger

    def middleware(context: MiddlewareContext, next_fn: Callable[[Action], Any]) -> Callable[[Action], Any]:

        def after(action: Action) -> None:
            if log_state:
                log.log(level, f"state after '{action.type}': {context.get_state()!r}")

        def handle(action: Action) -> Any:
            log.log(level, f"action '{action.type}' payload={action.payload!r}")
            result = next_fn(action)

            if inspect.isawaitable(result) and not isinstance(result, Action):
                async def finish() -> Any:
                    value = await result
                    after(action)
                    return value
                return finish()

            after(action)
            return result

        return handle

    return middleware


action_logger = create_logger()
