from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import mongomock
import pytest

from src.api.db.mongo import MongoManager
from src.api.db.records import MongoRecordStore


@pytest.fixture(params=["mongomock", "mongodb"])
def store(request):
    """
    Record store on a throwaway database, dropped after the test.

    Runs in-process against mongomock, and again against a real server when
    BACKEND_MONGO_URI is set.
    """
    db_name = f"servicegraph_test_{uuid.uuid4().hex[:8]}"
    if request.param == "mongomock":
        mongo = MongoManager("mongodb://localhost:27017", db_name)
        mongo._app_client = mongomock.MongoClient()
    else:
        mongo = MongoManager(request.getfixturevalue("mongo_uri"), db_name)
        if not mongo.ping():
            pytest.skip("MongoDB not reachable")
    mongo.init_indexes()
    try:
        yield MongoRecordStore(mongo)
    finally:
        mongo.app_db().client.drop_database(db_name)
        mongo.close()


def test_topology_reads_are_sorted(store):
    cols = store._mongo.collections()
    cols.namespaces.insert_many([{"name": "payments"}, {"name": "checkout"}])
    cols.services.insert_many(
        [
            {"service_namespace": "payments", "service_name": "charge"},
            {"service_namespace": "checkout", "service_name": "api", "tags": ["web"]},
        ]
    )
    assert store.list_namespaces() == ["checkout", "payments"]
    assert [d["service_name"] for d in store.list_services()] == ["api", "charge"]


def test_alert_window_keeps_open_alerts(store):
    now = datetime.now(timezone.utc)
    old = now - timedelta(days=10)
    store._mongo.collections().alerts.insert_many(
        [
            {"id": "recent", "service_namespace": "a", "service_name": "x", "severity": "warning", "opened_at": now},
            {"id": "old-open", "service_namespace": "a", "service_name": "x", "severity": "fatal", "opened_at": old},
            {"id": "old-resolved", "service_namespace": "a", "service_name": "x", "severity": "fatal",
             "opened_at": old, "resolved_at": old + timedelta(minutes=5)},
        ]
    )
    docs = store.list_alerts(since=now - timedelta(days=1))
    assert [d["id"] for d in docs] == ["recent", "old-open"]
    # Both open alerts plus the one resolved alert; the cap only bounds history.
    assert len(store.list_alerts(since=None, limit=1)) == 3


def test_namespace_dependency_upsert_and_delete(store):
    now = datetime.now(timezone.utc)
    first = store.upsert_namespace_dependency(
        {"from_namespace": "checkout", "to_namespace": "payments", "dependency_type": "manual", "created_at": now}
    )
    second = store.upsert_namespace_dependency(
        {"from_namespace": "checkout", "to_namespace": "payments", "dependency_type": "runtime", "created_at": now}
    )
    assert first["_id"] == second["_id"]
    assert second["dependency_type"] == "runtime"
    assert len(store.list_namespace_dependencies()) == 1

    assert store.delete_namespace_dependency("not-an-id") is None
    deleted = store.delete_namespace_dependency(str(first["_id"]))
    assert deleted["to_namespace"] == "payments"
    assert store.list_namespace_dependencies() == []


def test_open_alerts_survive_the_history_cap(store, caplog):
    t0 = datetime(2026, 1, 1, tzinfo=timezone.utc)
    later = t0 + timedelta(days=10)
    docs = [{"id": "open", "service_namespace": "a", "service_name": "x", "severity": "fatal", "opened_at": t0}]
    docs += [
        {"id": f"r{i}", "service_namespace": "a", "service_name": "x", "severity": "warning",
         "opened_at": later + timedelta(minutes=i), "resolved_at": later + timedelta(minutes=i + 1)}
        for i in range(3)
    ]
    store._mongo.collections().alerts.insert_many(docs)

    with caplog.at_level("WARNING"):
        out = store.list_alerts(since=t0 + timedelta(days=9), limit=3)
    assert [d["id"] for d in out] == ["r2", "r1", "r0", "open"]
    assert "truncated" in caplog.text

    capped = store.list_alerts(since=None, limit=1)
    assert [d["id"] for d in capped] == ["r2", "open"]
