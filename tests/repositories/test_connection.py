"""
Tests for the MongoDB connection manager.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from src.repositories.connection import SCORING_INDEXES, DatabaseManager, db_manager


@pytest.fixture
def collections():
    collections = {name: MagicMock() for name in SCORING_INDEXES}
    for collection in collections.values():
        collection.create_index = AsyncMock()
    return collections


@pytest.fixture
def fake_database(monkeypatch, collections):
    database = MagicMock()
    database.__getitem__.side_effect = collections.__getitem__
    monkeypatch.setattr(db_manager, "_database", database)
    return database


class TestDatabaseManager:

    def test_singleton(self):
        assert DatabaseManager() is db_manager

    def test_database_requires_connect(self, monkeypatch):
        monkeypatch.setattr(db_manager, "_database", None)

        with pytest.raises(RuntimeError):
            db_manager.database

    def test_client_requires_connect(self, monkeypatch):
        monkeypatch.setattr(db_manager, "_client", None)

        with pytest.raises(RuntimeError):
            db_manager.client

    async def test_disconnect_is_idempotent(self, monkeypatch):
        monkeypatch.setattr(db_manager, "_client", None)
        await db_manager.disconnect()

    async def test_connect_reuses_healthy_client(self, monkeypatch):
        client = MagicMock()
        client.admin.command = AsyncMock(return_value={"ok": 1})
        monkeypatch.setattr(db_manager, "_client", client)

        await db_manager.connect()

        assert db_manager.client is client
        client.admin.command.assert_awaited_once_with("ping")


class TestCreateIndexes:

    async def test_unique_keys(self, fake_database, collections):
        await db_manager.create_indexes()

        collections["deals"].create_index.assert_any_await(
            "deal_id", unique=True, name="idx_deal_id_unique"
        )
        collections["settings"].create_index.assert_awaited_once_with(
            "key", unique=True, name="idx_settings_key_unique"
        )

    async def test_every_collection_indexed(self, fake_database, collections):
        await db_manager.create_indexes()

        for name, indexes in SCORING_INDEXES.items():
            assert collections[name].create_index.await_count == len(indexes)
