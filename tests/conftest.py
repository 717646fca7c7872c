"""
Global pytest configuration and fixtures for Actionstack tests
"""

import logging

import pytest

from actionstack.core.actions import Action
from actionstack.core.module import StoreModule
from actionstack.core.store import Store

# Configure logging for tests
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)


def counter(state, action: Action):
    """Counter reducer: INC adds the payload (default 1), DEC subtracts it"""
    if state is None:
        state = 0
    step = action.payload if isinstance(action.payload, int) else 1
    if action.type == "INC":
        return state + step
    if action.type == "DEC":
        return state - step
    return state


def todos(state, action: Action):
    """List reducer for feature slice tests"""
    if action.type == "todos/add":
        return [*state, action.payload]
    return state


def history(state, action: Action):
    """Reducer appending the payload of every APPEND action"""
    if action.type == "APPEND":
        return [*(state or []), action.payload]
    return state


@pytest.fixture(autouse=True)
def reset_store_module():
    """Automatically forget the memoized root store around each test"""
    StoreModule.reset()
    yield
    StoreModule.reset()


@pytest.fixture
def make_store():
    """Factory for counter stores; keyword arguments extend the main module"""

    def factory(**overrides):
        main_module = {"reducer": counter, "initial_state": 0}
        main_module.update(overrides)
        return Store.create(main_module)

    return factory


@pytest.fixture
def store(make_store):
    """Counter store with the default (exclusive) strategy"""
    return make_store()


@pytest.fixture
def no_user_config(monkeypatch, tmp_path):
    """Isolate configuration from the environment and ~/.actionstack"""
    import actionstack.config as config_module

    for name in ("ACTIONSTACK_STRATEGY", "ACTIONSTACK_LOG_LEVEL", "ACTIONSTACK_LOG_FORMAT"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATH", tmp_path / "missing.yaml")
    return tmp_path


# Custom markers for test categorization
def pytest_configure(config):
    """Configure custom pytest markers"""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
