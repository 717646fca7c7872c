"""
Core dispatch engine: actions, execution stack, store and store module
"""

from actionstack.core.actions import (
    Action,
    ActionCreator,
    ActionStatus,
    action,
    bind_action_creator,
    bind_action_creators,
    create_action,
    is_action,
    kind_of,
)
from actionstack.core.errors import (
    ActionRejectedError,
    ActionstackError,
    ConfigurationError,
    ErrorCode,
    ModuleLoadError,
)
from actionstack.core.models import FeatureModule, MainModule, Strategy
from actionstack.core.module import (
    StoreModule,
    get_store,
    provide_module,
    provide_store,
    register_feature,
)
from actionstack.core.stack import ExecutionStack, Operation, OperationType
from actionstack.core.store import (
    MiddlewareContext,
    Store,
    SystemActionTypes,
    current_action,
)

__all__ = [
    # Actions
    'Action',
    'ActionCreator',
    'ActionStatus',
    'action',
    'create_action',
    'bind_action_creator',
    'bind_action_creators',
    'is_action',
    'kind_of',

    # Execution stack
    'ExecutionStack',
    'Operation',
    'OperationType',

    # Store
    'Store',
    'MiddlewareContext',
    'SystemActionTypes',
    'current_action',
    'MainModule',
    'FeatureModule',
    'Strategy',
    'StoreModule',
    'provide_store',
    'provide_module',
    'register_feature',
    'get_store',

    # Errors
    'ActionstackError',
    'ActionRejectedError',
    'ConfigurationError',
    'ModuleLoadError',
    'ErrorCode',
]
