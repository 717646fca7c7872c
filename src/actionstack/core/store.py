"""
Store and dispatch pipeline for Actionstack

The store owns the state value, the middleware chain, the admission strategy
and the execution stack. Every dispatched action is tracked on the stack from
the moment it is admitted until its completion token settles.

Admission:
- dispatches issued from inside a running chain (thunks, middleware, tracked
  effects) are re-entrant and start immediately, as long as the operation of
  that chain is still on the stack
- root dispatches start immediately under the concurrent strategy
- under the exclusive strategy a root dispatch starts only once the stack is
  empty; otherwise it waits in arrival order

Synchronous parts of a chain run eagerly inside ``dispatch()``, so state
commits follow dispatch arrival order.
"""

import asyncio
import inspect
import logging
from collections import deque
from collections.abc import Hashable
from contextvars import ContextVar
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, List, Mapping, Optional, Set, Union

from pydantic import ValidationError

from .actions import Action, kind_of
from .errors import ConfigurationError, ErrorCode, ModuleLoadError
from .models import FeatureModule, MainModule, Strategy
from .stack import ExecutionStack, Operation, OperationType

logger = logging.getLogger(__name__)


class SystemActionTypes(str, Enum):
    """Actions dispatched by the store itself"""
    INITIALIZE_STATE = "@@actionstack/INITIALIZE_STATE"
    MODULE_LOADED = "@@actionstack/MODULE_LOADED"
    MODULE_UNLOADED = "@@actionstack/MODULE_UNLOADED"


@dataclass(frozen=True)
class _ChainFrame:
    store: "Store"
    action: Optional[Action]
    operation: Operation


_current_chain: ContextVar[Optional[_ChainFrame]] = ContextVar("actionstack_chain", default=None)


def current_action() -> Optional[Action]:
    """The action whose chain is currently executing, if any"""
    frame = _current_chain.get()
    return frame.action if frame is not None else None


class MiddlewareContext:
    """Store-like context handed to every middleware"""

    def __init__(self, store: "Store"):
        self._store = store

    def dispatch(self, action: Any) -> Optional[Action]:
        return self._store.dispatch(action)

    def get_state(self, selector: Optional[Callable[[Any], Any]] = None) -> Any:
        return self._store.get_state(selector)

    @property
    def dependencies(self) -> Dict[str, Any]:
        return self._store.dependencies

    @property
    def strategy(self) -> Strategy:
        return self._store.strategy

    @property
    def stack(self) -> ExecutionStack:
        return self._store.stack

    def track_effect(self, awaitable: Awaitable[Any]) -> "asyncio.Task":
        """Run ``awaitable`` as a tracked effect that keeps the store busy"""
        return self._store._track_effect(awaitable)


Middleware = Callable[[MiddlewareContext, Callable[[Action], Any]], Callable[[Action], Any]]
StoreEnhancer = Callable[[Callable[..., "Store"]], Callable[..., "Store"]]


class Store:
    """
    Dispatch and execution-tracking engine.

    Example:
        ```python
        store = Store.create({"reducer": counter, "initial_state": 0})
        await store.dispatch(increment())
        assert store.get_state() == 1
        ```
    """

    def __init__(self, main_module: Union[MainModule, Mapping[str, Any], None] = None):
        self.settings = self._load_settings(main_module)
        self.strategy: Strategy = self.settings.strategy
        self.stack: ExecutionStack[Operation] = ExecutionStack()

        self._reducer = self.settings.reducer
        self._state: Any = self.settings.initial_state
        self._main_dependencies: Dict[str, Any] = dict(self.settings.dependencies)
        self.dependencies: Dict[str, Any] = dict(self._main_dependencies)

        # Feature modules
        self._modules: Dict[str, FeatureModule] = {}
        self._module_dependencies: Dict[str, Dict[str, Any]] = {}

        self._listeners: List[Callable[[Any], None]] = []
        self._pending: Deque[Action] = deque()
        self._admission_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()

        self._context = MiddlewareContext(self)
        self._middleware: List[Middleware] = list(self.settings.middleware)
        self._pipeline = self._compose()

        self.stats = {
            "actions_dispatched": 0,
            "actions_committed": 0,
            "actions_failed": 0,
            "thunks_failed": 0,
            "effects_tracked": 0,
        }

        # Initial state is committed directly, outside the middleware chain
        self._state = self._reduce(self._state, Action(SystemActionTypes.INITIALIZE_STATE.value))

        logger.info(f"Store initialized with {self.strategy.value} strategy")

    @classmethod
    def create(
        cls,
        main_module: Union[MainModule, Mapping[str, Any], None] = None,
        enhancer: Optional[StoreEnhancer] = None,
    ) -> "Store":
        """Create a store, optionally through an enhancer wrapping the creation"""
        if enhancer is not None:
            return enhancer(cls.create)(main_module)
        return cls(main_module)

    @staticmethod
    def _load_settings(main_module: Union[MainModule, Mapping[str, Any], None]) -> MainModule:
        if main_module is None:
            return MainModule()
        if isinstance(main_module, MainModule):
            return main_module
        if not isinstance(main_module, Mapping):
            raise ConfigurationError(
                f"Store configuration must be a MainModule or a mapping, got '{kind_of(main_module)}'"
            )

        try:
            return MainModule.model_validate(dict(main_module))
        except ValidationError as e:
            code = ErrorCode.INVALID_CONFIGURATION
            if any(error["loc"][:1] == ("strategy",) for error in e.errors()):
                code = ErrorCode.UNKNOWN_STRATEGY
            raise ConfigurationError(
                f"Invalid store configuration: {e}",
                code=code,
                data={"fields": [".".join(str(part) for part in error["loc"]) for error in e.errors()]},
            ) from e

    # State access

    @property
    def state(self) -> Any:
        return self._state

    def get_state(self, selector: Optional[Callable[[Any], Any]] = None) -> Any:
        """Current state, or ``selector(state)`` when a selector is given"""
        if selector is not None:
            return selector(self._state)
        return self._state

    def subscribe(self, listener: Callable[[Any], None]) -> Callable[[], None]:
        """
        Call ``listener(state)`` after every state commit.

        Returns a function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def is_idle(self) -> bool:
        """True when nothing is queued and nothing is in flight"""
        return not self._pending and self.stack.length == 0

    async def wait_until_idle(self) -> None:
        """
        Wait until every queued and in-flight operation has settled.

        Must not be awaited from inside a dispatch chain, which would wait
        on itself.
        """
        while True:
            if self.stack.length:
                await self.stack.wait_for_empty()
            elif self._pending:
                self._ensure_admission()
                await asyncio.shield(self._admission_task)
            else:
                return

    # Middleware

    def apply_middleware(self, *middleware: Middleware) -> "Store":
        """Append middleware to the chain"""
        self._middleware.extend(middleware)
        self._pipeline = self._compose()
        return self

    def _compose(self) -> Callable[[Action], Any]:
        dispatch_fn: Callable[[Action], Any] = self._commit
        for middleware in reversed(self._middleware):
            dispatch_fn = middleware(self._context, dispatch_fn)
        return dispatch_fn

    # Dispatch

    def dispatch(self, action: Any) -> Optional[Action]:
        """
        Dispatch an action, a thunk or a ``{"type": ...}`` mapping.

        Returns the action tracking the dispatch; await it to wait for its
        completion. Invalid input is logged and ``None`` is returned.

        An exception raised synchronously by the middleware chain or the
        reducer rejects the action and propagates to the caller. Failures
        in an awaited part of the chain only reject the action.
        """
        token = self._to_action(action)
        if token is None:
            return None

        self.stats["actions_dispatched"] += 1

        if self._is_reentrant():
            self._start(token)
        elif self.strategy is Strategy.CONCURRENT:
            self._start(token)
        elif not self._pending and self.stack.length == 0:
            self._start(token)
        else:
            self._ensure_admission()
            self._pending.append(token)
            logger.debug(f"Queued action '{token.type}' ({len(self._pending)} waiting)")

        return token

    def _is_reentrant(self) -> bool:
        # Tasks that outlive the chain which spawned them dispatch as roots
        frame = _current_chain.get()
        if frame is None or frame.store is not self:
            return False
        return any(item is frame.operation for item in self.stack.to_list())

    def _to_action(self, action: Any) -> Optional[Action]:
        if isinstance(action, Action):
            return action
        if isinstance(action, Mapping):
            if isinstance(action.get("type"), str):
                return Action.from_dict(action)
            logger.warning("Actions must have a string 'type' property; nothing dispatched.")
            return None
        if callable(action):
            return Action(action)

        logger.warning(
            f"Actions must be actions, mappings or callables, "
            f"but instead received: '{kind_of(action)}'; nothing dispatched."
        )
        return None

    def _ensure_admission(self) -> None:
        if self._admission_task is None or self._admission_task.done():
            loop = asyncio.get_running_loop()
            self._admission_task = loop.create_task(self._admit_pending())

    async def _admit_pending(self) -> None:
        """Start queued root dispatches one at a time, each on an empty stack"""
        while self._pending:
            while self.stack.length:
                await self.stack.wait_for_empty()
            action = self._pending.popleft()
            logger.debug(f"Admitting queued action '{action.type}'")
            try:
                self._start(action)
            except Exception:
                # The action is already rejected and logged
                continue

    def _start(self, action: Action) -> None:
        operation = Operation(
            OperationType.ASYNC_ACTION if action.is_async() else OperationType.ACTION,
            action,
        )
        self.stack.push(operation)
        action.add_done_callback(lambda _: self._remove(operation))

        reset_token = _current_chain.set(_ChainFrame(self, action, operation))
        try:
            if action.is_async():
                self._run_thunk(action)
            else:
                self._run_action(action)
        finally:
            _current_chain.reset(reset_token)

    def _run_thunk(self, action: Action) -> None:
        try:
            result = action.thunk(self.dispatch, self.get_state, self.dependencies)
        except Exception as e:
            self._thunk_failed(action, e)
            action.resolve()
            return

        if inspect.isawaitable(result):
            self._continue(action, self._await_thunk(action, result), result)
        else:
            action.resolve()

    def _run_action(self, action: Action) -> None:
        try:
            result = self._pipeline(action)
        except Exception as e:
            self._action_failed(action, e)
            raise

        if inspect.isawaitable(result) and not isinstance(result, Action):
            self._continue(action, self._await_action(action, result), result)
        else:
            action.resolve()

    def _continue(self, action: Action, coro: Any, awaitable: Any) -> None:
        try:
            self._spawn(coro)
        except RuntimeError as e:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            action.reject(e)
            logger.error(f"Cannot continue action '{action.type}' without a running event loop")

    async def _await_thunk(self, action: Action, awaitable: Awaitable[Any]) -> None:
        try:
            await awaitable
        except asyncio.CancelledError as e:
            action.reject(e)
            raise
        except Exception as e:
            self._thunk_failed(action, e)
        finally:
            action.resolve()

    async def _await_action(self, action: Action, awaitable: Awaitable[Any]) -> None:
        try:
            await awaitable
        except asyncio.CancelledError as e:
            action.reject(e)
            raise
        except Exception as e:
            self._action_failed(action, e)
        else:
            action.resolve()

    def _thunk_failed(self, action: Action, error: Exception) -> None:
        self.stats["thunks_failed"] += 1
        logger.warning(f"Error in action '{action.type}': {error}")

    def _action_failed(self, action: Action, error: Exception) -> None:
        self.stats["actions_failed"] += 1
        logger.error(f"Error while processing action '{action.type}': {error}")
        action.reject(error)

    def _remove(self, operation: Operation) -> None:
        self.stack.filter(lambda item: item is not operation)

    def _spawn(self, coro: Any) -> "asyncio.Task":
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            raise
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _track_effect(self, awaitable: Awaitable[Any]) -> "asyncio.Task":
        operation = Operation(OperationType.EFFECT, awaitable)
        self.stack.push(operation)
        self.stats["effects_tracked"] += 1
        parent = _current_chain.get()

        async def run_effect() -> Any:
            # Dispatches from the effect are re-entrant while it is tracked
            _current_chain.set(_ChainFrame(self, parent.action if parent else None, operation))
            try:
                return await awaitable
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error in effect: {e}")
                return None
            finally:
                self._remove(operation)

        try:
            return self._spawn(run_effect())
        except RuntimeError:
            self._remove(operation)
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise

    # Commit

    def _commit(self, action: Action) -> None:
        """Final stage of the chain: apply the reducers and replace the state"""
        if not isinstance(action, Action):
            logger.warning(f"Middleware passed '{kind_of(action)}' to the reducer; ignored.")
            return

        self._state = self._reduce(self._state, action)
        self.stats["actions_committed"] += 1

        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception as e:
                logger.error(f"Error in state listener: {e}")

    def _reduce(self, state: Any, action: Action) -> Any:
        new_state = self._reducer(state, action)
        if self._modules:
            new_state = self._reduce_slices(new_state, action)

        if (
            action.type == SystemActionTypes.MODULE_UNLOADED.value
            and (action.meta or {}).get("clear_state")
            and isinstance(new_state, Mapping)
            and action.payload in new_state
        ):
            new_state = {key: value for key, value in new_state.items() if key != action.payload}

        return new_state

    def _reduce_slices(self, state: Any, action: Action) -> Any:
        if state is None:
            state = {}
        if not isinstance(state, Mapping):
            raise ModuleLoadError(
                ", ".join(self._modules),
                f"state became '{kind_of(state)}', feature slices need a mapping",
                code=ErrorCode.INVALID_STATE_SHAPE,
            )

        next_state = dict(state)
        changed = not isinstance(state, dict)
        for slice_name, module in self._modules.items():
            previous = state.get(slice_name, module.initial_state)
            updated = module.reducer(previous, action)
            if slice_name not in state or updated is not previous:
                next_state[slice_name] = updated
                changed = True

        return next_state if changed else state

    # Feature modules

    def load_module(self, module: Union[FeatureModule, Mapping[str, Any]], injector: Optional[Mapping[Any, Any]] = None) -> Optional[Action]:
        """
        Attach a feature module to the store.

        The module's reducer manages ``state[module.slice]``. Its dependencies
        are merged into the store dependencies, each value looked up in
        ``injector`` when the injector provides it. Loading a slice that is
        already loaded is ignored.
        """
        module = self._load_feature(module)

        if module.slice in self._modules:
            logger.warning(f"Module '{module.slice}' is already loaded")
            return None

        if self._state is not None and not isinstance(self._state, Mapping):
            raise ModuleLoadError(
                module.slice,
                f"store state is '{kind_of(self._state)}', feature slices need a mapping",
                code=ErrorCode.INVALID_STATE_SHAPE,
            )

        self._modules[module.slice] = module
        self._module_dependencies[module.slice] = self._resolve_dependencies(module.dependencies, injector)
        self._rebuild_dependencies()

        logger.info(f"Loaded module '{module.slice}'")
        return self.dispatch(Action(SystemActionTypes.MODULE_LOADED.value, payload=module.slice))

    def unload_module(self, module: Union[FeatureModule, str], clear_state: bool = False) -> Optional[Action]:
        """Detach a feature module, optionally dropping its slice of the state"""
        slice_name = module.slice if isinstance(module, FeatureModule) else module

        if self._modules.pop(slice_name, None) is None:
            logger.warning(f"Module '{slice_name}' is not loaded")
            return None

        self._module_dependencies.pop(slice_name, None)
        self._rebuild_dependencies()

        logger.info(f"Unloaded module '{slice_name}'")
        return self.dispatch(Action(
            SystemActionTypes.MODULE_UNLOADED.value,
            payload=slice_name,
            meta={"clear_state": clear_state},
        ))

    @property
    def modules(self) -> List[FeatureModule]:
        return list(self._modules.values())

    @staticmethod
    def _load_feature(module: Union[FeatureModule, Mapping[str, Any]]) -> FeatureModule:
        if isinstance(module, FeatureModule):
            return module
        if not isinstance(module, Mapping):
            raise ModuleLoadError(str(module), f"expected a FeatureModule or a mapping, got '{kind_of(module)}'")
        try:
            return FeatureModule.model_validate(dict(module))
        except ValidationError as e:
            raise ModuleLoadError(str(module.get("slice")), f"invalid module definition: {e}") from e

    @staticmethod
    def _resolve_dependencies(dependencies: Dict[str, Any], injector: Optional[Mapping[Any, Any]]) -> Dict[str, Any]:
        if injector is None:
            return dict(dependencies)

        resolved = {}
        for key, value in dependencies.items():
            if isinstance(value, Hashable) and value in injector:
                resolved[key] = injector[value]
            else:
                resolved[key] = value
        return resolved

    def _rebuild_dependencies(self) -> None:
        # Mutated in place so thunks holding the mapping see module dependencies
        self.dependencies.clear()
        self.dependencies.update(self._main_dependencies)
        for module_dependencies in self._module_dependencies.values():
            self.dependencies.update(module_dependencies)

    def __repr__(self) -> str:
        return (
            f"Store(strategy={self.strategy.value}, modules={list(self._modules)}, "
            f"in_flight={self.stack.length}, queued={len(self._pending)})"
        )
