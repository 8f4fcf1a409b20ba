from __future__ import annotations

import httpx
import pytest
from bson import ObjectId


@pytest.mark.anyio
async def test_upsert_list_and_delete_namespace_dependency(async_client: httpx.AsyncClient, records):
    res = await async_client.post(
        "/api/namespace-dependencies",
        json={"from_namespace": " checkout ", "to_namespace": "payments", "description": "charges cards"},
    )
    assert res.status_code == 200, res.text
    created = res.json()
    assert created["from_namespace"] == "checkout"
    assert created["to_namespace"] == "payments"
    assert created["dependency_type"] == "manual"
    assert created["created_by"] == "api"
    assert created["id"]

    # Same pair again updates in place.
    res = await async_client.post(
        "/api/namespace-dependencies",
        json={"from_namespace": "checkout", "to_namespace": "payments", "dependency_type": "runtime"},
    )
    assert res.status_code == 200, res.text
    assert res.json()["id"] == created["id"]
    assert res.json()["dependency_type"] == "runtime"

    await async_client.post("/api/namespace-dependencies", json={"from_namespace": "api", "to_namespace": "auth"})

    res = await async_client.get("/api/namespace-dependencies")
    assert res.status_code == 200
    body = res.json()
    assert body["total"] == 2
    assert [(i["from_namespace"], i["to_namespace"]) for i in body["items"]] == [
        ("api", "auth"),
        ("checkout", "payments"),
    ]

    res = await async_client.delete(f"/api/namespace-dependencies/{created['id']}")
    assert res.status_code == 200
    assert res.json()["to_namespace"] == "payments"
    assert (await async_client.get("/api/namespace-dependencies")).json()["total"] == 1


@pytest.mark.anyio
async def test_declared_dependency_drives_graph_expansion(async_client: httpx.AsyncClient, records):
    records.services = [
        {"service_namespace": "checkout", "service_name": "api"},
        {"service_namespace": "payments", "service_name": "charge"},
    ]
    params = {"namespaces": "checkout", "includeDependents": "true", "withAlerts": "false"}

    before = (await async_client.get("/api/graph", params=params)).json()
    assert {n["id"] for n in before["nodes"]} == {"checkout", "checkout::api"}

    await async_client.post("/api/namespace-dependencies", json={"from_namespace": "checkout", "to_namespace": "payments"})
    after = (await async_client.get("/api/graph", params=params)).json()
    assert {n["id"] for n in after["nodes"]} == {"checkout", "checkout::api", "payments", "payments::charge"}


@pytest.mark.anyio
@pytest.mark.parametrize(
    "payload",
    [
        {"from_namespace": "  ", "to_namespace": "payments"},
        {"from_namespace": "checkout", "to_namespace": "checkout"},
        {"from_namespace": "check::out", "to_namespace": "payments"},
    ],
)
async def test_upsert_rejects_invalid_pairs(async_client: httpx.AsyncClient, records, payload):
    res = await async_client.post("/api/namespace-dependencies", json=payload)
    assert res.status_code == 400
    assert records.namespace_dependencies == []


@pytest.mark.anyio
async def test_delete_unknown_dependency_is_404(async_client: httpx.AsyncClient, records):
    res = await async_client.delete(f"/api/namespace-dependencies/{ObjectId()}")
    assert res.status_code == 404
    res = await async_client.delete("/api/namespace-dependencies/not-an-object-id")
    assert res.status_code == 404
