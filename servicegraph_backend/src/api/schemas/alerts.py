from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from src.api.schemas.common import ErrorResponse, Severity, as_utc
from src.api.schemas.filters import FiltersEcho


class Alert(BaseModel):
    """One reported incident, as read from the alert store."""

    id: str = Field(..., description="Incident identifier.")
    service_namespace: str = Field(..., description="Namespace of the owning service.")
    service_name: str = Field(..., description="Name of the owning service.")
    severity: Severity = Field(..., description="Alert severity.")
    acknowledged: bool = Field(default=False, description="Whether the alert has been acknowledged.")
    opened_at: datetime = Field(..., description="UTC timestamp when the incident opened.")
    acknowledged_at: Optional[datetime] = Field(default=None, description="UTC acknowledgement timestamp.")
    resolved_at: Optional[datetime] = Field(default=None, description="UTC resolution timestamp.")
    tags: List[str] = Field(default_factory=list, description="Alert-level tags.")

    message: Optional[str] = Field(default=None, description="Alert message (passthrough).")
    acknowledged_by: Optional[str] = Field(default=None, description="Who acknowledged (passthrough).")

    @field_validator("opened_at", "acknowledged_at", "resolved_at")
    @classmethod
    def normalize_timestamp(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v) if v is not None else None

    @model_validator(mode="after")
    def check_lifecycle(self) -> "Alert":
        if self.acknowledged and self.acknowledged_at is None:
            raise ValueError("acknowledged alerts must carry acknowledged_at")
        if self.acknowledged_at is not None and self.acknowledged_at < self.opened_at:
            raise ValueError("acknowledged_at must not precede opened_at")
        if self.resolved_at is not None and self.resolved_at < self.opened_at:
            raise ValueError("resolved_at must not precede opened_at")
        return self

    @property
    def is_open(self) -> bool:
        return self.resolved_at is None


class SeverityCounts(BaseModel):
    """Unresolved alerts of one severity, split by acknowledgement."""

    open: int = Field(0, ge=0, description="Unresolved, unacknowledged alerts.")
    acknowledged: int = Field(0, ge=0, description="Unresolved, acknowledged alerts.")


def _empty_severity_map() -> Dict[Severity, SeverityCounts]:
    return {sev: SeverityCounts() for sev in Severity}


class DurationStat(BaseModel):
    """
    Mean/min/max of a set of durations in milliseconds.

    average_ms is None when no alert qualified ("no data"); callers must not
    read that as zero.
    """

    average_ms: Optional[float] = Field(default=None, description="Mean duration, null when no data.")
    fastest_ms: Optional[float] = Field(default=None, description="Shortest duration, null when no data.")
    slowest_ms: Optional[float] = Field(default=None, description="Longest duration, null when no data.")
    count: int = Field(0, ge=0, description="Number of alerts the mean is taken over.")

    @property
    def has_data(self) -> bool:
        return self.count > 0


class AlertStatsBase(BaseModel):
    """Counters and temporal metrics shared by per-service and global stats."""

    severities: Dict[Severity, SeverityCounts] = Field(default_factory=_empty_severity_map)
    open_count: int = Field(0, ge=0, description="Unresolved, unacknowledged alerts.")
    acknowledged_count: int = Field(0, ge=0, description="Unresolved, acknowledged alerts.")
    total_count: int = Field(0, ge=0, description="open_count + acknowledged_count.")
    resolved_count: int = Field(0, ge=0, description="Resolved alerts in the population.")
    mtta: DurationStat = Field(default_factory=DurationStat, description="Mean time to acknowledge.")
    mttr: DurationStat = Field(default_factory=DurationStat, description="Mean time to resolve.")
    total_open_duration_ms: float = Field(0.0, ge=0, description="Sum of (now - opened_at) over unresolved alerts.")
    highest_severity: Optional[Severity] = Field(default=None, description="Most severe unresolved alert.")


class ServiceAlertStats(AlertStatsBase):
    """Stats for a single service."""

    service_key: str = Field(..., description="'namespace::service', identical to the graph node id.")
    service_namespace: str
    service_name: str


class NamespaceAlertStats(AlertStatsBase):
    """Rollup of every service alert in one namespace."""

    namespace: str
    service_count: int = Field(0, ge=0, description="Services of this namespace present in the scoped population.")
    services_with_issues: int = Field(0, ge=0, description="Services with at least one unresolved alert.")


class GlobalAlertStats(AlertStatsBase):
    """Stats over the whole filtered population."""

    service_count: int = Field(0, ge=0, description="Services present in the scoped population.")
    services_with_issues: int = Field(0, ge=0, description="Services with at least one unresolved alert.")


class AlertStatsResult(BaseModel):
    """Alert aggregation output."""

    model_config = ConfigDict(populate_by_name=True)

    per_service: Dict[str, ServiceAlertStats] = Field(default_factory=dict, alias="perService")
    per_namespace: Dict[str, NamespaceAlertStats] = Field(default_factory=dict, alias="perNamespace")
    totals: GlobalAlertStats = Field(default_factory=GlobalAlertStats)
    computed_at: datetime = Field(..., description="The 'now' used for open durations.", alias="computedAt")
    filters: FiltersEcho = Field(default_factory=FiltersEcho)


class AlertStatsOutcome(BaseModel):
    """compute_alert_stats() result: either stats or an error, never both."""

    ok: bool
    result: Optional[AlertStatsResult] = None
    error: Optional[ErrorResponse] = None


class AlertListResult(BaseModel):
    """Filtered alerts, newest first."""

    items: List[Alert] = Field(default_factory=list, description="Matching alerts.")
    total: int = Field(0, ge=0, description="Number of matching alerts.")
    filters: FiltersEcho = Field(default_factory=FiltersEcho)


class AlertListOutcome(BaseModel):
    """select_alerts() result: either the list or an error, never both."""

    ok: bool
    result: Optional[AlertListResult] = None
    error: Optional[ErrorResponse] = None
