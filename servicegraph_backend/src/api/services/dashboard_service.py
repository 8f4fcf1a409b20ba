from __future__ import annotations

import logging
from typing import Optional, Tuple

from fastapi import Request
from pydantic import BaseModel

from src.api.schemas.alerts import AlertListOutcome, AlertStatsOutcome, AlertStatsResult, NamespaceAlertStats
from src.api.schemas.common import ErrorResponse, utc_now
from src.api.schemas.filters import RawGraphFilters
from src.api.schemas.graph import GraphOutcome, GraphResult
from src.api.services import records_service
from src.api.services.engine import compute_alert_stats, compute_graph, find_alerts
from src.api.state import get_state

logger = logging.getLogger(__name__)


class DashboardResponse(BaseModel):
    """Graph and alert stats computed from one filter and one snapshot time."""

    graph: GraphResult
    alerts: AlertStatsResult


def annotate_graph(graph: GraphResult, stats: AlertStatsResult) -> GraphResult:
    """Copy per-service open alert counts onto service nodes; nodes and stats share the same key."""
    nodes = []
    for node in graph.nodes:
        if node.node_type != "service":
            nodes.append(node)
            continue
        svc = stats.per_service.get(node.id)
        nodes.append(
            node.model_copy(
                update={
                    "alert_count": svc.total_count if svc else 0,
                    "highest_severity": svc.highest_severity if svc else None,
                }
            )
        )
    return graph.model_copy(update={"nodes": nodes})


# PUBLIC_INTERFACE
def graph_for_request(
    request: Request, raw_filters: RawGraphFilters, with_alerts: Optional[bool] = None
) -> GraphOutcome:
    """Load topology (and alerts when annotating) and compute the filtered graph."""
    state = get_state(request.app)
    annotate = state.config.graph_annotate_alerts if with_alerts is None else with_alerts

    topology = records_service.load_topology(request)
    outcome = compute_graph(topology, raw_filters)
    if not outcome.ok or not annotate:
        return outcome

    stats = compute_alert_stats(records_service.load_alerts(request), raw_filters, topology=topology)
    if not stats.ok:
        return GraphOutcome(ok=False, error=stats.error)
    return GraphOutcome(ok=True, result=annotate_graph(outcome.result, stats.result))


# PUBLIC_INTERFACE
def alert_stats_for_request(
    request: Request, raw_filters: RawGraphFilters, window_hours: Optional[int] = None
) -> AlertStatsOutcome:
    """Load topology and windowed alerts and aggregate them under the given filters."""
    topology = records_service.load_topology(request)
    alerts = records_service.load_alerts(request, window_hours)
    return compute_alert_stats(alerts, raw_filters, topology=topology)


# PUBLIC_INTERFACE
def dashboard_for_request(
    request: Request, raw_filters: RawGraphFilters, window_hours: Optional[int] = None
) -> Tuple[Optional[DashboardResponse], Optional[ErrorResponse]]:
    """
    Compute graph and alert stats together.

    Returns (dashboard, None) on success or (None, error) for invalid filters.
    """
    topology = records_service.load_topology(request)
    graph = compute_graph(topology, raw_filters)
    if not graph.ok:
        return None, graph.error

    now = utc_now()
    alerts = records_service.load_alerts(request, window_hours)
    stats = compute_alert_stats(alerts, raw_filters, topology=topology, now=now)
    if not stats.ok:
        return None, stats.error

    logger.info(
        "Dashboard computed nodes=%d edges=%d services_with_issues=%d",
        len(graph.result.nodes),
        len(graph.result.edges),
        stats.result.totals.services_with_issues,
    )
    return DashboardResponse(graph=annotate_graph(graph.result, stats.result), alerts=stats.result), None


# PUBLIC_INTERFACE
def alert_list_for_request(
    request: Request,
    raw_filters: RawGraphFilters,
    search: Optional[str] = None,
    include_resolved: bool = False,
    window_hours: Optional[int] = None,
) -> AlertListOutcome:
    """Filtered alerts (open only unless include_resolved), newest first."""
    topology = records_service.load_topology(request)
    alerts = records_service.load_alerts(request, window_hours)
    return find_alerts(alerts, raw_filters, topology=topology, search=search, include_resolved=include_resolved)


# PUBLIC_INTERFACE
def namespace_stats_for_request(
    request: Request, namespace: str, raw_filters: RawGraphFilters, window_hours: Optional[int] = None
) -> Tuple[Optional[NamespaceAlertStats], Optional[ErrorResponse]]:
    """
    Rollup for a single namespace under the tag/severity facets.

    A namespace without alerts yields zero-filled stats rather than an error.
    """
    namespace = namespace.strip()
    scoped = raw_filters.model_copy(update={"namespaces": namespace, "include_dependent_namespaces": False})
    outcome = alert_stats_for_request(request, scoped, window_hours=window_hours)
    if not outcome.ok:
        return None, outcome.error
    stats = outcome.result.per_namespace.get(namespace)
    return (stats or NamespaceAlertStats(namespace=namespace)), None
