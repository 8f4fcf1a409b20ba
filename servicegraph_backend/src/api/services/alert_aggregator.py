from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional

from src.api.schemas.alerts import (
    Alert,
    AlertStatsBase,
    AlertListResult,
    AlertStatsResult,
    DurationStat,
    GlobalAlertStats,
    NamespaceAlertStats,
    ServiceAlertStats,
)
from src.api.schemas.common import SEVERITY_RANK, as_utc, utc_now
from src.api.schemas.filters import GraphFilters
from src.api.services.filters import alert_matches
from src.api.services.graph_builder import echo_filters
from src.api.services.identity import service_key

logger = logging.getLogger(__name__)


def _ms(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() * 1000.0


def _duration_stat(durations: List[float]) -> DurationStat:
    if not durations:
        return DurationStat()
    return DurationStat(
        average_ms=sum(durations) / len(durations),
        fastest_ms=min(durations),
        slowest_ms=max(durations),
        count=len(durations),
    )


class _Accumulator:
    """Running totals for one service, or for the whole population."""

    def __init__(self) -> None:
        self.alerts: List[Alert] = []

    def add(self, alert: Alert) -> None:
        self.alerts.append(alert)

    def fill(self, stats: AlertStatsBase, now: datetime) -> None:
        ack_durations: List[float] = []
        resolve_durations: List[float] = []

        for a in self.alerts:
            if a.acknowledged_at is not None:
                ack_durations.append(_ms(a.opened_at, a.acknowledged_at))
            if not a.is_open:
                resolve_durations.append(_ms(a.opened_at, a.resolved_at))
                stats.resolved_count += 1
                continue

            counts = stats.severities[a.severity]
            if a.acknowledged:
                counts.acknowledged += 1
                stats.acknowledged_count += 1
            else:
                counts.open += 1
                stats.open_count += 1
            # Alerts opened after `now` contribute nothing rather than a negative duration.
            stats.total_open_duration_ms += max(0.0, _ms(a.opened_at, now))
            if stats.highest_severity is None or SEVERITY_RANK[a.severity] < SEVERITY_RANK[stats.highest_severity]:
                stats.highest_severity = a.severity

        stats.total_count = stats.open_count + stats.acknowledged_count
        stats.mtta = _duration_stat(ack_durations)
        stats.mttr = _duration_stat(resolve_durations)


def _effective_tags(alert: Alert, key: str, service_tags: Optional[Mapping[str, Iterable[str]]]) -> List[str]:
    tags = list(alert.tags)
    if service_tags:
        tags.extend(service_tags.get(key, ()))
    return tags


def _in_scope(alert: Alert, namespaces: Optional[FrozenSet[str]]) -> bool:
    return namespaces is None or alert.service_namespace in namespaces


def _namespace_rollup(
    per_service: Dict[str, ServiceAlertStats], accumulators: Dict[str, _Accumulator], now: datetime
) -> Dict[str, NamespaceAlertStats]:
    """Per-namespace stats built from the same matched alerts as the per-service entries."""
    grouped: Dict[str, _Accumulator] = {}
    members: Dict[str, List[ServiceAlertStats]] = {}
    for key, stats in per_service.items():
        ns = stats.service_namespace
        acc = grouped.setdefault(ns, _Accumulator())
        for alert in accumulators[key].alerts:
            acc.add(alert)
        members.setdefault(ns, []).append(stats)

    out: Dict[str, NamespaceAlertStats] = {}
    for ns, acc in grouped.items():
        services = members[ns]
        stats = NamespaceAlertStats(
            namespace=ns,
            service_count=len(services),
            services_with_issues=sum(1 for s in services if s.total_count > 0),
        )
        acc.fill(stats, now)
        out[ns] = stats
    return out


# PUBLIC_INTERFACE
def aggregate_alerts(
    alerts: Iterable[Alert],
    filters: GraphFilters,
    *,
    namespaces: Optional[FrozenSet[str]] = None,
    service_tags: Optional[Mapping[str, Iterable[str]]] = None,
    now: Optional[datetime] = None,
) -> AlertStatsResult:
    """
    Group alerts by service and compute counts, MTTA, MTTR and open duration.

    `namespaces` is the effective namespace selection (None = all in scope).
    Every service with an alert in that scope gets an entry, zero-filled when
    the severity/tag facets remove all of its alerts. Only unresolved alerts are
    counted as open/acknowledged; MTTA and MTTR cover the whole filtered
    population. Durations are milliseconds; `now` is captured once.

    per_namespace rolls the per-service populations up by namespace, and
    totals cover everything, so all three levels agree on the same alerts.
    """
    now = as_utc(now) if now is not None else utc_now()

    per_service: Dict[str, _Accumulator] = {}
    identity: Dict[str, Alert] = {}
    everything = _Accumulator()

    for alert in alerts:
        if not _in_scope(alert, namespaces):
            continue
        key = service_key(alert.service_namespace, alert.service_name)
        acc = per_service.get(key)
        if acc is None:
            acc = per_service[key] = _Accumulator()
            identity[key] = alert

        if not alert_matches(filters, alert.severity, _effective_tags(alert, key, service_tags)):
            continue
        acc.add(alert)
        everything.add(alert)

    out: Dict[str, ServiceAlertStats] = {}
    for key, acc in per_service.items():
        first = identity[key]
        stats = ServiceAlertStats(
            service_key=key,
            service_namespace=first.service_namespace,
            service_name=first.service_name,
        )
        acc.fill(stats, now)
        out[key] = stats

    totals = GlobalAlertStats(
        service_count=len(out),
        services_with_issues=sum(1 for s in out.values() if s.total_count > 0),
    )
    everything.fill(totals, now)

    logger.debug(
        "Aggregated %d alerts over %d services (open=%d ack=%d resolved=%d)",
        len(everything.alerts),
        len(out),
        totals.open_count,
        totals.acknowledged_count,
        totals.resolved_count,
    )
    return AlertStatsResult(
        per_service=out,
        per_namespace=_namespace_rollup(out, per_service, now),
        totals=totals,
        computed_at=now,
        filters=echo_filters(filters, namespaces),
    )


# PUBLIC_INTERFACE
def select_alerts(
    alerts: Iterable[Alert],
    filters: GraphFilters,
    *,
    namespaces: Optional[FrozenSet[str]] = None,
    service_tags: Optional[Mapping[str, Iterable[str]]] = None,
    search: Optional[str] = None,
    include_resolved: bool = False,
) -> AlertListResult:
    """
    Alerts matching the same scope and facets as aggregate_alerts(), newest first.

    Only unresolved alerts are returned unless include_resolved is set. `search`
    is a case-insensitive substring of the namespace or service name.
    """
    needle = (search or "").strip().lower()
    items: List[Alert] = []
    for alert in alerts:
        if not include_resolved and not alert.is_open:
            continue
        if not _in_scope(alert, namespaces):
            continue
        key = service_key(alert.service_namespace, alert.service_name)
        if not alert_matches(filters, alert.severity, _effective_tags(alert, key, service_tags)):
            continue
        if needle and needle not in alert.service_namespace.lower() and needle not in alert.service_name.lower():
            continue
        items.append(alert)

    items.sort(key=lambda a: a.opened_at, reverse=True)
    return AlertListResult(items=items, total=len(items), filters=echo_filters(filters, namespaces))
