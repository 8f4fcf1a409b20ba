from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Callable, Iterable, List, Optional, TypeVar

from fastapi import Request
from pydantic import ValidationError

from src.api.schemas.alerts import Alert
from src.api.schemas.common import utc_now
from src.api.schemas.graph import (
    NamespaceDependency,
    NamespaceDependencyCreate,
    ServiceDependency,
    ServiceRecord,
    Topology,
)
from src.api.state import get_state

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _oid_str(v: Any) -> Optional[str]:
    return str(v) if v is not None else None


def _doc_to_service(doc: dict) -> ServiceRecord:
    return ServiceRecord(
        namespace=doc["service_namespace"],
        name=doc["service_name"],
        tags=list(doc.get("tags") or []),
        team=doc.get("team"),
        environment=doc.get("environment"),
        component_type=doc.get("component_type"),
        tag_sources=doc.get("tag_sources") or {},
        external_calls=doc.get("external_calls"),
        database_calls=doc.get("database_calls"),
        rpc_calls=doc.get("rpc_calls"),
    )


def _doc_to_namespace_dependency(doc: dict) -> NamespaceDependency:
    return NamespaceDependency(
        id=_oid_str(doc.get("_id")),
        from_namespace=doc["from_namespace"],
        to_namespace=doc["to_namespace"],
        dependency_type=doc.get("dependency_type") or "manual",
        description=doc.get("description"),
        created_by=doc.get("created_by"),
        created_at=doc.get("created_at"),
    )


def _doc_to_service_dependency(doc: dict) -> ServiceDependency:
    return ServiceDependency(
        from_namespace=doc["from_service_namespace"],
        from_service=doc["from_service_name"],
        to_namespace=doc["to_service_namespace"],
        to_service=doc["to_service_name"],
        dependency_type=doc.get("dependency_type") or "service",
        created_at=doc.get("created_at") or doc.get("first_seen"),
    )


def _doc_to_alert(doc: dict) -> Alert:
    acknowledged_at = doc.get("acknowledged_at")
    return Alert(
        id=str(doc.get("id") or doc.get("_id")),
        service_namespace=doc["service_namespace"],
        service_name=doc["service_name"],
        severity=str(doc["severity"]).strip().lower(),
        acknowledged=bool(doc.get("acknowledged", acknowledged_at is not None)),
        opened_at=doc["opened_at"],
        acknowledged_at=acknowledged_at,
        resolved_at=doc.get("resolved_at"),
        tags=list(doc.get("tags") or []),
        message=doc.get("message"),
        acknowledged_by=doc.get("acknowledged_by"),
    )


def _convert_all(docs: Iterable[dict], convert: Callable[[dict], T], kind: str) -> List[T]:
    """Convert store documents, skipping (and logging) ones that violate record invariants."""
    out: List[T] = []
    skipped = 0
    for doc in docs:
        try:
            out.append(convert(doc))
        except (KeyError, ValidationError) as e:
            skipped += 1
            logger.warning("Skipping malformed %s document _id=%s: %s", kind, doc.get("_id"), e)
    if skipped:
        logger.warning("Skipped %d malformed %s documents", skipped, kind)
    return out


# PUBLIC_INTERFACE
def load_topology(request: Request) -> Topology:
    """Read services, namespaces and both dependency kinds from the record store."""
    records = get_state(request.app).records
    return Topology(
        namespaces=records.list_namespaces(),
        services=_convert_all(records.list_services(), _doc_to_service, "service"),
        namespace_dependencies=list_namespace_dependencies(request),
        service_dependencies=_convert_all(
            records.list_service_dependencies(), _doc_to_service_dependency, "service_dependency"
        ),
    )


# PUBLIC_INTERFACE
def load_alerts(request: Request, window_hours: Optional[int] = None) -> List[Alert]:
    """Read open alerts plus alerts opened within the history window (config default when None)."""
    state = get_state(request.app)
    hours = window_hours or state.config.alert_stats_window_hours
    since = utc_now() - timedelta(hours=hours)
    docs = state.records.list_alerts(since=since, limit=state.config.alert_stats_max_alerts)
    return _convert_all(docs, _doc_to_alert, "alert")


# PUBLIC_INTERFACE
def list_namespace_dependencies(request: Request) -> List[NamespaceDependency]:
    """List declared namespace dependencies ordered by (from, to)."""
    records = get_state(request.app).records
    return _convert_all(records.list_namespace_dependencies(), _doc_to_namespace_dependency, "namespace_dependency")


# PUBLIC_INTERFACE
def upsert_namespace_dependency(request: Request, payload: NamespaceDependencyCreate) -> NamespaceDependency:
    """Create or update the dependency for the (from, to) namespace pair."""
    records = get_state(request.app).records
    now = utc_now()
    doc = {
        "from_namespace": payload.from_namespace.strip(),
        "to_namespace": payload.to_namespace.strip(),
        "created_by": payload.created_by or "api",
        "dependency_type": payload.dependency_type or "manual",
        "description": payload.description,
        "created_at": now,
        "updated_at": now,
    }
    stored = records.upsert_namespace_dependency(doc)
    return _doc_to_namespace_dependency(stored)


# PUBLIC_INTERFACE
def delete_namespace_dependency(request: Request, dependency_id: str) -> Optional[NamespaceDependency]:
    """Delete a dependency by id. Returns the deleted dependency, or None if not found."""
    records = get_state(request.app).records
    deleted = records.delete_namespace_dependency(dependency_id)
    return _doc_to_namespace_dependency(deleted) if deleted else None
