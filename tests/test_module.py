"""
Tests for the memoized root store and feature registration
"""

import asyncio
import logging

import pytest

from actionstack.core.models import FeatureModule
from actionstack.core.module import (
    StoreModule,
    get_store,
    provide_module,
    provide_store,
    register_feature,
)
from actionstack.core.store import SystemActionTypes

from conftest import counter, todos


class TestStoreModule:
    """Test StoreModule registration"""

    def test_for_root_is_memoized(self):
        first = StoreModule.for_root({"initial_state": {}})
        second = StoreModule.for_root({"initial_state": {"ignored": True}})

        assert first is second
        assert get_store() is first
        assert first.get_state() == {}

    def test_feature_before_root_without_loop(self):
        """Test queued features are loaded right after the store is created"""
        assert register_feature(FeatureModule(slice="todos", reducer=todos, initial_state=[])) is None
        assert len(StoreModule.modules_fn) == 1

        store = provide_store({"initial_state": {}})

        assert store.get_state() == {"todos": []}
        assert StoreModule.modules_fn == []

    @pytest.mark.asyncio
    async def test_feature_before_root_with_loop(self):
        """Test queued features are loaded after the current turn of the loop"""
        provide_module({"slice": "todos", "reducer": todos, "initial_state": []})

        store = provide_store({"initial_state": {}})
        assert store.get_state() == {}

        await asyncio.sleep(0)

        assert store.get_state() == {"todos": []}
        assert [m.slice for m in store.modules] == ["todos"]

    @pytest.mark.asyncio
    async def test_feature_after_root(self):
        store = provide_store()

        token = StoreModule.for_feature(FeatureModule(slice="todos", reducer=todos, initial_state=[]))
        await asyncio.wait_for(token, timeout=1)

        assert token.type == SystemActionTypes.MODULE_LOADED.value
        assert store.get_state() == {"todos": []}

    def test_injector(self):
        """Test the root injector resolves queued feature dependencies"""
        client = object()
        register_feature(FeatureModule(slice="users", dependencies={"client": "HttpClient"}))

        store = StoreModule.for_root(injector={"HttpClient": client})

        assert store.dependencies["client"] is client

    def test_failed_queued_feature_is_logged(self, caplog):
        register_feature(FeatureModule(slice="todos", reducer=todos))

        with caplog.at_level(logging.ERROR, logger="actionstack.core.module"):
            store = provide_store({"reducer": counter, "initial_state": 0})

        assert store.get_state() == 0
        assert store.modules == []
        assert "Failed to load queued feature module" in caplog.text

    def test_reset(self):
        provide_store()
        register_feature(FeatureModule(slice="later"))

        StoreModule.reset()

        assert get_store() is None
        assert StoreModule.modules_fn == []
        assert StoreModule.injector is None
