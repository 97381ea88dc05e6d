import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from practica.db import Base
from practica.errors import PersistenceError
from practica.store import MemoryStateStore, SafeStore, SqlStateStore, StateStore


@pytest.fixture
def sql_store():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    return SqlStateStore(sessionmaker(bind=engine, future=True))


class BrokenStore(StateStore):
    def __init__(self):
        self.calls = 0

    def get(self, key):
        self.calls += 1
        raise PersistenceError("disk on fire")

    def set(self, key, value):
        self.calls += 1
        raise PersistenceError("disk on fire")

    def remove(self, key):
        self.calls += 1
        raise PersistenceError("disk on fire")


def test_memory_store_json_helpers():
    store = MemoryStateStore()
    assert store.get_json("missing", default=[]) == []
    store.set_json("k", {"a": [1, 2]})
    assert store.get_json("k") == {"a": [1, 2]}
    store.remove("k")
    assert store.get("k") is None


def test_invalid_json_falls_back_to_default():
    store = MemoryStateStore({"k": "{not json"})
    assert store.get_json("k", default="fallback") == "fallback"


def test_sql_store_set_get_remove(sql_store):
    assert sql_store.get("theme") is None
    sql_store.set("theme", "dark")
    assert sql_store.get("theme") == "dark"
    sql_store.set("theme", "light")
    assert sql_store.get("theme") == "light"
    sql_store.remove("theme")
    assert sql_store.get("theme") is None
    # removing a missing key is fine
    sql_store.remove("theme")


def test_sql_store_wraps_database_errors():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    store = SqlStateStore(sessionmaker(bind=engine, future=True))  # no tables created
    with pytest.raises(PersistenceError):
        store.get("theme")
    with pytest.raises(PersistenceError):
        store.set("theme", "dark")


def test_safe_store_degrades_to_memory():
    backend = BrokenStore()
    store = SafeStore(backend)
    store.set("theme", "dark")
    assert store.degraded
    assert store.get("theme") == "dark"
    store.remove("theme")
    assert store.get("theme") is None
    # the broken backend is not hammered after the first failure
    assert backend.calls == 1


def test_safe_store_passes_through_when_healthy(sql_store):
    store = SafeStore(sql_store)
    store.set_json("examSettings", {"numQuestions": 7})
    assert sql_store.get_json("examSettings") == {"numQuestions": 7}
    assert store.get_json("examSettings") == {"numQuestions": 7}
    assert not store.degraded


def test_sql_store_on_application_session_factory():
    from practica.db import SessionLocal, engine

    Base.metadata.create_all(bind=engine)
    store = SqlStateStore(SessionLocal)
    store.set("factory-key", "valor")
    assert store.get("factory-key") == "valor"
    store.remove("factory-key")
    assert store.get("factory-key") is None
