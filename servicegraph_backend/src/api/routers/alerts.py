from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Path, Query, Request

from src.api.schemas.alerts import AlertListResult, AlertStatsResult, NamespaceAlertStats
from src.api.schemas.common import ErrorResponse
from src.api.schemas.filters import RawGraphFilters
from src.api.services import dashboard_service

router = APIRouter(prefix="/api/alerts", tags=["Alerts"])


@router.get(
    "/stats",
    response_model=AlertStatsResult,
    response_model_by_alias=True,
    responses={400: {"model": ErrorResponse}},
    summary="Alert statistics",
    description=(
        "Per-service and global alert statistics: open/acknowledged counts per severity, MTTA, MTTR "
        "(null average = no data) and total open duration, all durations in milliseconds. "
        "Open alerts are always included; resolved ones only within the history window."
    ),
    operation_id="get_alert_stats",
)
def get_alert_stats(
    request: Request,
    tags: Optional[str] = Query(default=None, description="Comma-separated tags."),
    namespaces: Optional[str] = Query(default=None, description="Comma-separated namespaces."),
    severities: Optional[str] = Query(default=None, description="Comma-separated severities (fatal|critical|warning)."),
    include_dependents: bool = Query(default=False, alias="includeDependents"),
    hours: Optional[int] = Query(default=None, ge=1, le=30 * 24, description="History window (hours)."),
) -> AlertStatsResult:
    """Aggregate alerts under the given filters."""
    filters = RawGraphFilters(
        tags=tags, namespaces=namespaces, severities=severities, includeDependentNamespaces=include_dependents
    )
    outcome = dashboard_service.alert_stats_for_request(request, filters, window_hours=hours)
    if not outcome.ok:
        raise HTTPException(status_code=400, detail=outcome.error.detail)
    return outcome.result


@router.get(
    "",
    response_model=AlertListResult,
    response_model_by_alias=True,
    responses={400: {"model": ErrorResponse}},
    summary="List alerts",
    description=(
        "Alerts matching the tag/namespace/severity facets, newest first. Tags match alert tags or the owning "
        "service's tags. Only unresolved alerts unless includeResolved is set."
    ),
    operation_id="list_alerts",
)
def list_alerts(
    request: Request,
    tags: Optional[str] = Query(default=None, description="Comma-separated tags."),
    namespaces: Optional[str] = Query(default=None, description="Comma-separated namespaces."),
    severities: Optional[str] = Query(default=None, description="Comma-separated severities (fatal|critical|warning)."),
    include_dependents: bool = Query(default=False, alias="includeDependents"),
    search: Optional[str] = Query(default=None, description="Substring of namespace or service name."),
    include_resolved: bool = Query(default=False, alias="includeResolved"),
    hours: Optional[int] = Query(default=None, ge=1, le=30 * 24, description="History window for resolved alerts."),
) -> AlertListResult:
    """List filtered alerts."""
    filters = RawGraphFilters(
        tags=tags, namespaces=namespaces, severities=severities, includeDependentNamespaces=include_dependents
    )
    outcome = dashboard_service.alert_list_for_request(
        request, filters, search=search, include_resolved=include_resolved, window_hours=hours
    )
    if not outcome.ok:
        raise HTTPException(status_code=400, detail=outcome.error.detail)
    return outcome.result


@router.get(
    "/stats/namespaces/{namespace}",
    response_model=NamespaceAlertStats,
    response_model_by_alias=True,
    responses={400: {"model": ErrorResponse}},
    summary="Namespace alert statistics",
    description="Counts, MTTA, MTTR and open duration rolled up over every service of one namespace.",
    operation_id="get_namespace_alert_stats",
)
def get_namespace_alert_stats(
    request: Request,
    namespace: str = Path(..., description="Namespace name."),
    tags: Optional[str] = Query(default=None, description="Comma-separated tags."),
    severities: Optional[str] = Query(default=None, description="Comma-separated severities (fatal|critical|warning)."),
    hours: Optional[int] = Query(default=None, ge=1, le=30 * 24, description="History window (hours)."),
) -> NamespaceAlertStats:
    """Aggregate one namespace's alerts."""
    filters = RawGraphFilters(tags=tags, severities=severities)
    stats, error = dashboard_service.namespace_stats_for_request(request, namespace, filters, window_hours=hours)
    if error is not None:
        raise HTTPException(status_code=400, detail=error.detail)
    return stats
