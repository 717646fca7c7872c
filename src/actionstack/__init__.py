"""Actionstack - dispatch and execution-tracking engine for state stores"""

__version__ = "0.1.0"

from actionstack.core import (
    Action,
    ActionCreator,
    ActionStatus,
    ExecutionStack,
    FeatureModule,
    MainModule,
    Store,
    StoreModule,
    Strategy,
    action,
    bind_action_creator,
    bind_action_creators,
    create_action,
    current_action,
    get_store,
    provide_module,
    provide_store,
    register_feature,
)
from actionstack.core.errors import ActionstackError, ConfigurationError, ModuleLoadError
from actionstack.tools import PerformanceMonitor, action_logger, create_logger, perfmon

__all__ = [
    "Action",
    "ActionCreator",
    "ActionStatus",
    "action",
    "create_action",
    "bind_action_creator",
    "bind_action_creators",
    "ExecutionStack",
    "Store",
    "Strategy",
    "MainModule",
    "FeatureModule",
    "StoreModule",
    "provide_store",
    "provide_module",
    "register_feature",
    "get_store",
    "current_action",
    "ActionstackError",
    "ConfigurationError",
    "ModuleLoadError",
    "action_logger",
    "create_logger",
    "perfmon",
    "PerformanceMonitor",
]
