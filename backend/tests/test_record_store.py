"""Tests for the record store implementations."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

from eudora.core.config import settings
from eudora.core.exceptions import StorageWriteFailure
from eudora.db.base import Base
from eudora.db.init_db import ensure_collections
from eudora.db.record_store import MemoryRecordStore, SqlRecordStore
from eudora.db.session import build_engine


@pytest.fixture
def sql_engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'store.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(params=["memory", "sql"])
def any_store(request, sql_engine):
    if request.param == "memory":
        return MemoryRecordStore()
    return SqlRecordStore(sessionmaker(bind=sql_engine))


def test_missing_key_is_none(any_store):
    assert any_store.get("nothing") is None


def test_set_replaces_whole_collection(any_store):
    any_store.set("items", [{"id": 1}, {"id": 2}])
    any_store.set("items", [{"id": 3}])

    assert any_store.get("items") == [{"id": 3}]


def test_get_returns_independent_copy(any_store):
    any_store.set("items", [{"id": 1}])

    loaded = any_store.get("items")
    loaded.append({"id": 2})

    assert any_store.get("items") == [{"id": 1}]


def test_values_are_stored_as_json(any_store):
    any_store.set("prices", {"price": Decimal("2.50"), "at": datetime(2024, 1, 1, tzinfo=timezone.utc)})

    assert any_store.get("prices") == {"price": "2.50", "at": "2024-01-01 00:00:00+00:00"}


def test_remove(any_store):
    any_store.set("items", [1])
    any_store.remove("items")
    any_store.remove("items")

    assert any_store.get("items") is None


def test_ensure_collections_keeps_existing_data(any_store):
    any_store.set(settings.ORDERS_KEY, [{"id": "ord_1"}])

    ensure_collections(any_store)

    assert any_store.get(settings.ORDERS_KEY) == [{"id": "ord_1"}]
    assert any_store.get(settings.PRODUCTS_KEY) == []
    assert any_store.get(settings.CART_KEY) == {}
    assert any_store.get(settings.NOTIFICATIONS_KEY) == []


def test_sql_write_failure(sql_engine):
    store = SqlRecordStore(sessionmaker(bind=sql_engine))
    Base.metadata.drop_all(bind=sql_engine)

    with pytest.raises(StorageWriteFailure):
        store.set("items", [1])


def test_unserialisable_value_is_a_write_failure():
    store = MemoryRecordStore()
    loop = []
    loop.append(loop)

    with pytest.raises(StorageWriteFailure):
        store.set("items", loop)
