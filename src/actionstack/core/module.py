"""
Store module for Actionstack

Keeps a single store instance per application. Feature modules registered
before the store exists are queued and loaded once the store has been
created.
"""

import asyncio
import logging
from typing import Any, Callable, List, Mapping, Optional, Union

from .actions import Action
from .models import FeatureModule, MainModule
from .store import Store, StoreEnhancer

logger = logging.getLogger(__name__)


class StoreModule:
    """Memoized root store plus the queue of pending feature registrations"""

    store: Optional[Store] = None
    modules_fn: List[Callable[[], Any]] = []
    injector: Optional[Mapping[Any, Any]] = None

    @classmethod
    def for_root(
        cls,
        main_module: Union[MainModule, Mapping[str, Any], None] = None,
        enhancer: Optional[StoreEnhancer] = None,
        injector: Optional[Mapping[Any, Any]] = None,
    ) -> Store:
        """
        Create the root store once and return it.

        Queued feature modules are loaded after the current synchronous turn
        when an event loop is running, otherwise right after the store has
        been assigned.
        """
        if injector is not None:
            cls.injector = injector

        if cls.store is None:
            cls.store = Store.create(main_module, enhancer)
            logger.info("Root store created")

        cls._schedule_flush()
        return cls.store

    @classmethod
    def for_feature(cls, module: Union[FeatureModule, Mapping[str, Any]]) -> Optional[Action]:
        """Load a feature module now, or queue it until the root store exists"""

        def load_feature_module() -> Optional[Action]:
            return cls.store.load_module(module, cls.injector)

        if cls.store is None:
            cls.modules_fn.append(load_feature_module)
            logger.debug(f"Queued feature module ({len(cls.modules_fn)} pending)")
            return None

        return load_feature_module()

    @classmethod
    def _schedule_flush(cls) -> None:
        if not cls.modules_fn:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            cls._flush_modules()
        else:
            loop.call_soon(cls._flush_modules)

    @classmethod
    def _flush_modules(cls) -> None:
        if cls.store is None:
            return

        pending, cls.modules_fn = cls.modules_fn, []
        for load_feature_module in pending:
            try:
                load_feature_module()
            except Exception as e:
                logger.error(f"Failed to load queued feature module: {e}")

    @classmethod
    def reset(cls) -> None:
        """Forget the root store and any queued feature modules"""
        cls.store = None
        cls.modules_fn = []
        cls.injector = None


def provide_store(
    main_module: Union[MainModule, Mapping[str, Any], None] = None,
    enhancer: Optional[StoreEnhancer] = None,
    injector: Optional[Mapping[Any, Any]] = None,
) -> Store:
    """Create (or return) the application store"""
    return StoreModule.for_root(main_module, enhancer=enhancer, injector=injector)


def provide_module(module: Union[FeatureModule, Mapping[str, Any]]) -> Optional[Action]:
    """Register a feature module with the application store"""
    return StoreModule.for_feature(module)


register_feature = provide_module


def get_store() -> Optional[Store]:
    """Get the application store, if it has been created"""
    return StoreModule.store
