"""
Public entry points of the graph & alert aggregation engine.

Both functions are pure: no I/O, no hidden state, inputs are never mutated.
Invalid filters are reported in the returned outcome instead of raised, and
are detected before any record is looked at.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple, Union

from src.api.schemas.alerts import Alert, AlertListOutcome, AlertStatsOutcome
from src.api.schemas.common import ErrorResponse
from src.api.schemas.filters import GraphFilters, RawGraphFilters
from src.api.schemas.graph import GraphOutcome, Topology
from src.api.services.alert_aggregator import aggregate_alerts, select_alerts
from src.api.services.filters import InvalidFilterError, normalize_filters
from src.api.services.graph_builder import build_graph
from src.api.services.identity import service_key
from src.api.services.namespace_expansion import effective_namespaces, valid_namespace_edges

logger = logging.getLogger(__name__)

FilterInput = Union[RawGraphFilters, GraphFilters, Mapping[str, Any], None]


def _filter_error(e: InvalidFilterError) -> ErrorResponse:
    meta: Dict[str, Any] = {}
    if e.facet:
        meta["facet"] = e.facet
    if e.value is not None:
        meta["value"] = str(e.value)
    return ErrorResponse(detail=str(e), code="invalid_filter", meta=meta)


def _service_tags(topology: Topology) -> Dict[str, List[str]]:
    tags: Dict[str, List[str]] = {}
    for svc in topology.services:
        tags.setdefault(service_key(svc.namespace, svc.name), list(svc.tags))
    return tags


def _alert_scope(
    filters: GraphFilters, topology: Optional[Topology]
) -> Tuple[Optional[FrozenSet[str]], Optional[Dict[str, List[str]]]]:
    """Effective namespace selection and service tags, derived exactly as the graph derives them."""
    if topology is None:
        return effective_namespaces(filters, ()), None
    return effective_namespaces(filters, valid_namespace_edges(topology)), _service_tags(topology)


# PUBLIC_INTERFACE
def compute_graph(topology: Topology, raw_filters: FilterInput) -> GraphOutcome:
    """Build the filtered namespace/service graph."""
    try:
        filters = normalize_filters(raw_filters)
    except InvalidFilterError as e:
        logger.info("Rejected graph filters: %s", e)
        return GraphOutcome(ok=False, error=_filter_error(e))
    return GraphOutcome(ok=True, result=build_graph(topology, filters))


# PUBLIC_INTERFACE
def compute_alert_stats(
    alerts: Iterable[Alert],
    raw_filters: FilterInput,
    topology: Optional[Topology] = None,
    now: Optional[datetime] = None,
) -> AlertStatsOutcome:
    """
    Aggregate alerts for the same filter semantics as compute_graph().

    When a topology is given, its namespace dependencies drive namespace
    expansion (so both entry points agree on the effective selection) and its
    service tags count towards the tag facet. Without one, the namespace
    selection is used as-is and only alert-level tags are matched.
    """
    try:
        filters = normalize_filters(raw_filters)
    except InvalidFilterError as e:
        logger.info("Rejected alert stats filters: %s", e)
        return AlertStatsOutcome(ok=False, error=_filter_error(e))

    namespaces, service_tags = _alert_scope(filters, topology)
    result = aggregate_alerts(alerts, filters, namespaces=namespaces, service_tags=service_tags, now=now)
    return AlertStatsOutcome(ok=True, result=result)


# PUBLIC_INTERFACE
def find_alerts(
    alerts: Iterable[Alert],
    raw_filters: FilterInput,
    topology: Optional[Topology] = None,
    search: Optional[str] = None,
    include_resolved: bool = False,
) -> AlertListOutcome:
    """List the alerts compute_alert_stats() would count under the same filters, newest first."""
    try:
        filters = normalize_filters(raw_filters)
    except InvalidFilterError as e:
        logger.info("Rejected alert list filters: %s", e)
        return AlertListOutcome(ok=False, error=_filter_error(e))

    namespaces, service_tags = _alert_scope(filters, topology)
    result = select_alerts(
        alerts,
        filters,
        namespaces=namespaces,
        service_tags=service_tags,
        search=search,
        include_resolved=include_resolved,
    )
    return AlertListOutcome(ok=True, result=result)
