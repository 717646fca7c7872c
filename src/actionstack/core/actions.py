"""
Actions and action creators for Actionstack

An Action is both the descriptor of a state change (type, payload, error,
meta, source) and a completion token: the store settles it once the unit of
work it started has finished, and callers may await it.
"""

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from .errors import ActionRejectedError

logger = logging.getLogger(__name__)


class ActionStatus(Enum):
    """Completion state of an action"""
    PENDING = "pending"
    RESOLVED = "resolved"
    REJECTED = "rejected"


class Action:
    """
    Immutable action descriptor paired with a manually settled completion state.

    Constructed with a string type the action is a plain, synchronous action.
    Constructed with a callable it wraps a thunk; ``type`` then carries the
    callable's name and ``is_async()`` is true.

    ``resolve()`` and ``reject()`` settle the action at most once; any later
    call is ignored.
    """

    def __init__(
        self,
        type_or_thunk: Union[str, Callable[..., Any]],
        payload: Any = None,
        error: Optional[bool] = None,
        meta: Any = None,
        source: Any = None,
    ):
        if isinstance(type_or_thunk, str):
            self._type = type_or_thunk
            self._thunk = None
        elif callable(type_or_thunk):
            self._type = getattr(type_or_thunk, "__name__", type(type_or_thunk).__name__)
            self._thunk = type_or_thunk
        else:
            raise TypeError(
                f"Action type must be a string or a callable, got '{kind_of(type_or_thunk)}'"
            )

        self._payload = payload
        self._error = error
        self._meta = meta
        self._source = source

        self._status = ActionStatus.PENDING
        self._reason: Any = None
        self._waiters: List[asyncio.Future] = []
        self._callbacks: List[Callable[["Action"], None]] = []

    @property
    def type(self) -> str:
        return self._type

    @property
    def payload(self) -> Any:
        return self._payload

    @property
    def error(self) -> Optional[bool]:
        return self._error

    @property
    def meta(self) -> Any:
        return self._meta

    @property
    def source(self) -> Any:
        return self._source

    @property
    def thunk(self) -> Optional[Callable[..., Any]]:
        """The wrapped callable for asynchronous actions"""
        return self._thunk

    @property
    def status(self) -> ActionStatus:
        return self._status

    @property
    def reason(self) -> Any:
        """Rejection reason, ``None`` unless rejected"""
        return self._reason

    def is_async(self) -> bool:
        return self._thunk is not None

    def has_executed(self) -> bool:
        return self._status is not ActionStatus.PENDING

    def resolve(self) -> None:
        """Settle the action successfully"""
        self._settle(ActionStatus.RESOLVED, None)

    def reject(self, reason: Any = None) -> None:
        """Settle the action with a failure reason"""
        self._settle(ActionStatus.REJECTED, reason)

    def add_done_callback(self, callback: Callable[["Action"], None]) -> None:
        """Run ``callback(action)`` at settlement, or now if already settled"""
        if self.has_executed():
            callback(self)
        else:
            self._callbacks.append(callback)

    async def wait_for_completion(self) -> None:
        """Wait until the action settles; raises the rejection reason if rejected"""
        if self._status is ActionStatus.RESOLVED:
            return
        if self._status is ActionStatus.REJECTED:
            raise self._rejection_error()

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        finally:
            if waiter in self._waiters:
                self._waiters.remove(waiter)

    def __await__(self):
        return self.wait_for_completion().__await__()

    def _settle(self, status: ActionStatus, reason: Any) -> None:
        if self._status is not ActionStatus.PENDING:
            return

        self._status = status
        self._reason = reason

        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if waiter.done():
                continue
            if status is ActionStatus.RESOLVED:
                waiter.set_result(None)
            else:
                waiter.set_exception(self._rejection_error())

        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback(self)
            except Exception as e:
                logger.error(f"Error in completion callback of action '{self._type}': {e}")

    def _rejection_error(self) -> BaseException:
        if isinstance(self._reason, BaseException):
            return self._reason
        return ActionRejectedError(self._type, self._reason)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the action descriptor to a dictionary"""
        data: Dict[str, Any] = {"type": self._type}
        if self._payload is not None:
            data["payload"] = self._payload
        if self._error is not None:
            data["error"] = self._error
        if self._meta is not None:
            data["meta"] = self._meta
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Action":
        """Create an action from a ``{"type", "payload", "error", "meta"}`` mapping"""
        return cls(
            data["type"],
            payload=data.get("payload"),
            error=data.get("error"),
            meta=data.get("meta"),
            source=data.get("source"),
        )

    def __repr__(self) -> str:
        kind = "async " if self.is_async() else ""
        return f"Action({kind}type='{self._type}', status={self._status.value})"


def is_action(candidate: Any) -> bool:
    """Check whether ``candidate`` is a plain (non-thunk) action"""
    return isinstance(candidate, Action) and not candidate.is_async()


def kind_of(value: Any) -> str:
    """Human readable kind of a value, used in diagnostics"""
    if value is None:
        return "None"
    if isinstance(value, Action):
        return "action"
    if isinstance(value, Mapping):
        return "mapping"
    if inspect.isroutine(value) or isinstance(value, ActionCreator):
        return "function"
    return type(value).__name__


Thunk = Callable[[Callable[..., Any], Callable[..., Any], Dict[str, Any]], Any]


class ActionCreator:
    """
    Callable producing actions of one type.

    For a string type, calling the creator builds a plain Action. The payload
    is ``payload_creator(*args, **kwargs)`` when a payload creator is given,
    otherwise the first positional argument. ``meta`` and ``error`` keys of a
    mapping payload are lifted onto the action.

    For a callable, the callable is a thunk factory: calling the creator with
    arguments returns an async thunk ``(dispatch, get_state, dependencies)``
    that runs ``factory(*args, **kwargs)(dispatch, get_state, dependencies)``.
    Errors inside the thunk are logged and swallowed.
    """

    def __init__(
        self,
        type_or_thunk: Union[str, Callable[..., Any]],
        payload_creator: Optional[Callable[..., Any]] = None,
    ):
        if isinstance(type_or_thunk, str):
            self.type = type_or_thunk
            self._factory = None
        elif callable(type_or_thunk):
            self.type = getattr(type_or_thunk, "__name__", type(type_or_thunk).__name__)
            self._factory = type_or_thunk
        else:
            raise TypeError(
                f"create_action expected a string or a callable, got '{kind_of(type_or_thunk)}'"
            )
        self.payload_creator = payload_creator

    @property
    def is_thunk(self) -> bool:
        return self._factory is not None

    def __call__(self, *args: Any, **kwargs: Any) -> Union[Action, Thunk]:
        if self._factory is not None:
            return self._create_thunk(args, kwargs)

        if self.payload_creator is not None:
            payload = self.payload_creator(*args, **kwargs)
            if payload is None:
                logger.warning(
                    "payload_creator did not return an object. "
                    "Did you forget to initialize an action with params?"
                )
        else:
            payload = args[0] if args else None

        error = None
        meta = None
        if isinstance(payload, Mapping):
            error = payload.get("error")
            meta = payload.get("meta")

        return Action(self.type, payload, error=error, meta=meta)

    def _create_thunk(self, args: tuple, kwargs: Dict[str, Any]) -> Thunk:
        factory = self._factory

        async def thunk(dispatch, get_state, dependencies):
            try:
                result = factory(*args, **kwargs)(dispatch, get_state, dependencies)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(f"Error in action '{self.type}': {e}")

        thunk.__name__ = self.type
        thunk.__qualname__ = self.type
        return thunk

    def match(self, candidate: Any) -> bool:
        """True if ``candidate`` is a plain action of this creator's type"""
        return not self.is_thunk and is_action(candidate) and candidate.type == self.type

    def __str__(self) -> str:
        return self.type

    def __repr__(self) -> str:
        return f"ActionCreator(type='{self.type}')"


def create_action(
    type_or_thunk: Union[str, Callable[..., Any]],
    payload_creator: Optional[Callable[..., Any]] = None,
) -> ActionCreator:
    """Create an action creator for a type string or a thunk factory"""
    return ActionCreator(type_or_thunk, payload_creator)


action = create_action


def bind_action_creator(action_creator: Callable[..., Any], dispatch: Callable[[Any], Any]) -> Callable[..., Any]:
    """
    Bind an action creator to a dispatch function.

    The bound function creates the action with the given arguments, dispatches
    it and returns the dispatched action. Thunks are dispatched as well and the
    action wrapping them is returned.
    """

    def bound_action_creator(*args: Any, **kwargs: Any) -> Any:
        created = action_creator(*args, **kwargs)
        if is_action(created):
            dispatch(created)
            return created
        if callable(created):
            return dispatch(created)
        logger.warning(
            f"Action creator returned '{kind_of(created)}' instead of an action; nothing dispatched."
        )
        return None

    bound_action_creator.__name__ = getattr(action_creator, "__name__", str(action_creator))
    return bound_action_creator


def bind_action_creators(action_creators: Any, dispatch: Callable[[Any], Any]) -> Any:
    """
    Bind a single action creator or a mapping of action creators to dispatch.

    Mapping entries that are not callable are skipped. Any other input logs a
    warning and returns ``None``.
    """
    if callable(action_creators) and not isinstance(action_creators, Mapping):
        return bind_action_creator(action_creators, dispatch)

    if not isinstance(action_creators, Mapping):
        logger.warning(
            f"bind_action_creators expected a mapping or a function, "
            f"but instead received: '{kind_of(action_creators)}'."
        )
        return None

    bound_action_creators: Dict[str, Callable[..., Any]] = {}
    for key, action_creator in action_creators.items():
        if callable(action_creator):
            bound_action_creators[key] = bind_action_creator(action_creator, dispatch)

    return bound_action_creators
