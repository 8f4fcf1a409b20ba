from __future__ import annotations

import os
from collections.abc import AsyncIterator, Iterator
from datetime import datetime
from typing import List, Optional

import httpx
import pytest
from bson import ObjectId

# Only a URI supplied by the environment points at a real MongoDB; integration tests skip otherwise.
_REAL_MONGO_URI = os.getenv("BACKEND_MONGO_URI")


class InMemoryRecordStore:
    """
    Test double for MongoRecordStore.

    Holds raw documents in lists and answers the same queries the service layer
    issues, so API tests run without a database.
    """

    def __init__(self) -> None:
        self.services: List[dict] = []
        self.namespaces: List[str] = []
        self.namespace_dependencies: List[dict] = []
        self.service_dependencies: List[dict] = []
        self.alerts: List[dict] = []

    def list_services(self) -> List[dict]:
        return sorted(self.services, key=lambda d: (d["service_namespace"], d["service_name"]))

    def list_namespaces(self) -> List[str]:
        return sorted(self.namespaces)

    def list_namespace_dependencies(self) -> List[dict]:
        return sorted(self.namespace_dependencies, key=lambda d: (d["from_namespace"], d["to_namespace"]))

    def list_service_dependencies(self) -> List[dict]:
        return list(self.service_dependencies)

    def list_alerts(self, since: Optional[datetime] = None, limit: int = 5000) -> List[dict]:
        open_docs = [d for d in self.alerts if d.get("resolved_at") is None]
        history = [
            d for d in self.alerts if d.get("resolved_at") is not None and (since is None or d["opened_at"] >= since)
        ]
        history.sort(key=lambda d: d["opened_at"], reverse=True)
        docs = open_docs + history[:limit]
        docs.sort(key=lambda d: d["opened_at"], reverse=True)
        return docs

    def upsert_namespace_dependency(self, doc: dict) -> dict:
        for existing in self.namespace_dependencies:
            if (existing["from_namespace"], existing["to_namespace"]) == (doc["from_namespace"], doc["to_namespace"]):
                existing.update({k: v for k, v in doc.items() if k != "created_at"})
                return dict(existing)
        stored = dict(doc, _id=ObjectId())
        self.namespace_dependencies.append(stored)
        return dict(stored)

    def delete_namespace_dependency(self, dependency_id: str) -> Optional[dict]:
        for i, existing in enumerate(self.namespace_dependencies):
            if str(existing["_id"]) == dependency_id:
                return self.namespace_dependencies.pop(i)
        return None


@pytest.fixture(scope="session")
def app():
    """
    FastAPI app fixture.

    The Mongo client is created lazily, so importing the app needs a syntactically
    valid URI but no running server. API tests swap in an in-memory record store.
    """
    os.environ.setdefault("BACKEND_MONGO_URI", "mongodb://localhost:27017")
    os.environ.setdefault("GRAPH_ANNOTATE_ALERTS", "true")

    from src.api.main import app as fastapi_app

    return fastapi_app


@pytest.fixture
def records(app) -> Iterator[InMemoryRecordStore]:
    """Replace the app's record store with an empty in-memory store for one test."""
    from src.api.state import get_state

    state = get_state(app)
    original = state.records
    store = InMemoryRecordStore()
    state.records = store
    try:
        yield store
    finally:
        state.records = original


@pytest.fixture
async def async_client(app) -> AsyncIterator[httpx.AsyncClient]:
    """
    Async HTTP client bound to the FastAPI ASGI app.

    ASGITransport does not run lifespan events, so no Mongo connection is attempted.
    """
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture(scope="session")
def mongo_uri() -> str:
    """MongoDB URI for integration tests; skips when BACKEND_MONGO_URI is not set."""
    if not _REAL_MONGO_URI:
        pytest.skip("BACKEND_MONGO_URI not set; skipping MongoDB integration tests")
    return _REAL_MONGO_URI
