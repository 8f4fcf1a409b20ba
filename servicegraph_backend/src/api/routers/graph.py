from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request

from src.api.schemas.common import ErrorResponse
from src.api.schemas.filters import RawGraphFilters
from src.api.schemas.graph import GraphResult
from src.api.services import dashboard_service
from src.api.services.dashboard_service import DashboardResponse

router = APIRouter(prefix="/api", tags=["Graph"])


@router.get(
    "/graph",
    response_model=GraphResult,
    response_model_by_alias=True,
    responses={400: {"model": ErrorResponse}},
    summary="Service dependency graph",
    description=(
        "Namespace/service graph pruned by tags and namespaces (optionally expanded with the namespaces they "
        "depend on). Severities do not prune nodes. Facets are comma-separated lists."
    ),
    operation_id="get_graph",
)
def get_graph(
    request: Request,
    tags: Optional[str] = Query(default=None, description="Comma-separated service tags."),
    namespaces: Optional[str] = Query(default=None, description="Comma-separated namespaces."),
    severities: Optional[str] = Query(default=None, description="Comma-separated severities (fatal|critical|warning)."),
    include_dependents: bool = Query(default=False, alias="includeDependents"),
    with_alerts: Optional[bool] = Query(
        default=None, alias="withAlerts", description="Annotate service nodes with alert counts."
    ),
) -> GraphResult:
    """Return the filtered graph."""
    filters = RawGraphFilters(
        tags=tags, namespaces=namespaces, severities=severities, includeDependentNamespaces=include_dependents
    )
    outcome = dashboard_service.graph_for_request(request, filters, with_alerts=with_alerts)
    if not outcome.ok:
        raise HTTPException(status_code=400, detail=outcome.error.detail)
    return outcome.result


@router.get(
    "/dashboard",
    response_model=DashboardResponse,
    response_model_by_alias=True,
    responses={400: {"model": ErrorResponse}},
    summary="Graph and alert stats",
    description="Filtered graph plus alert statistics computed from the same filters and snapshot time.",
    operation_id="get_dashboard",
)
def get_dashboard(
    request: Request,
    tags: Optional[str] = Query(default=None),
    namespaces: Optional[str] = Query(default=None),
    severities: Optional[str] = Query(default=None),
    include_dependents: bool = Query(default=False, alias="includeDependents"),
    hours: Optional[int] = Query(default=None, ge=1, le=30 * 24, description="Alert history window (hours)."),
) -> DashboardResponse:
    """Return graph and alert stats in one response."""
    filters = RawGraphFilters(
        tags=tags, namespaces=namespaces, severities=severities, includeDependentNamespaces=include_dependents
    )
    dashboard, error = dashboard_service.dashboard_for_request(request, filters, window_hours=hours)
    if error is not None:
        raise HTTPException(status_code=400, detail=error.detail)
    return dashboard
