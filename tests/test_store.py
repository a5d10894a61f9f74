import pytest

from db.client import dispose_engine, get_engine, get_session

from finboard.classification import REFERENCE_CLASSIFICATIONS, ClassificationRegistry
from finboard.file_types import FileType
from finboard.store import ClassificationStore, DatasetStore


def test_store_replaces_previous_dataset(db_url):
    store = DatasetStore(database_url=db_url)
    first = store.store("shopify", {"rows": [{"a": "1"}]}, uploaded_by="alice")
    second = store.store(FileType.SHOPIFY, {"rows": [{"a": "2"}]})

    assert second.id != first.id
    latest = store.fetch_latest_active("shopify")
    assert latest is not None
    assert latest.id == second.id
    assert latest.data == {"rows": [{"a": "2"}]}
    assert latest.is_active
    assert latest.uploaded_at is not None


def test_file_types_are_independent(db_url):
    store = DatasetStore(database_url=db_url)
    store.store("tiktok", {"rows": []})
    store.store("subscription", {"rows": [{"plan": "pro"}]})

    status = store.upload_status()
    assert status["tiktok"] is True
    assert status["subscription"] is True
    assert status["shopify"] is False
    assert set(status) == {ft.value for ft in FileType}
    assert store.upload_status([FileType.TIKTOK]) == {"tiktok": True}


def test_delete(db_url):
    store = DatasetStore(database_url=db_url)
    store.store("pl_client1", {"rows": [], "categories": []})
    assert store.delete("pl_client1") == 1
    assert store.delete("pl_client1") == 0
    assert store.fetch_latest_active("pl_client1") is None


def test_classification_versions_round_trip(db_url):
    store = ClassificationStore(database_url=db_url)
    assert store.fetch_active() is None

    reg = ClassificationRegistry()
    v1 = reg.replace(REFERENCE_CLASSIFICATIONS, actor_role="admin", actor="alice")
    store.replace(v1)
    v2 = reg.replace({"Sales": "Quant Revenue"}, actor_role="admin", actor="bob")
    store.replace(v2)

    active = store.fetch_active()
    assert active is not None
    assert active.version == 2
    assert active.created_by == "bob"
    assert dict(active.mappings) == {"Sales": "Quant Revenue"}

    history = store.history()
    assert [(h["version"], h["is_active"]) for h in history] == [(1, False), (2, True)]
    assert history[0]["labels"] == len(REFERENCE_CLASSIFICATIONS)


def test_sessions_follow_the_engine_lifecycle(db_url):
    dispose_engine()
    with pytest.raises(RuntimeError, match="DATABASE_URL is not set"):
        get_session()

    session = get_session(database_url=db_url)
    try:
        assert session.bind is get_engine()
    finally:
        session.close()
    with pytest.raises(RuntimeError, match="different URL"):
        get_session(database_url="sqlite+pysqlite:///other.db")
