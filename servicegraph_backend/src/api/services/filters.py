from __future__ import annotations

from typing import Any, FrozenSet, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from src.api.schemas.common import Severity
from src.api.schemas.filters import FacetInput, GraphFilters, RawGraphFilters


class InvalidFilterError(ValueError):
    """Malformed filter input: unknown severity token or a blank facet value."""

    def __init__(self, message: str, facet: Optional[str] = None, value: Any = None):
        super().__init__(message)
        self.facet = facet
        self.value = value


def _split_facet(facet: str, raw: FacetInput) -> List[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        # Query-string form: "a,b,c". An empty string means the facet was not supplied.
        if raw == "":
            return []
        parts = raw.split(",")
    else:
        parts = list(raw)

    values: List[str] = []
    for p in parts:
        if not isinstance(p, str):
            raise InvalidFilterError(f"{facet} values must be strings", facet=facet, value=p)
        v = p.strip()
        if not v:
            raise InvalidFilterError(f"{facet} must not contain empty values", facet=facet, value=p)
        values.append(v)
    return values


def _parse_severities(values: List[str]) -> FrozenSet[Severity]:
    out = set()
    for v in values:
        try:
            out.add(Severity(v.lower()))
        except ValueError:
            allowed = ", ".join(s.value for s in Severity)
            raise InvalidFilterError(
                f"Invalid severity '{v}'. Allowed: {allowed}", facet="severities", value=v
            ) from None
    return frozenset(out)


# PUBLIC_INTERFACE
def normalize_filters(raw: Union[RawGraphFilters, Mapping[str, Any], GraphFilters, None]) -> GraphFilters:
    """
    Validate and normalize a caller-supplied filter object.

    Absent facets become empty sets ("match all"); values are stripped and
    deduplicated. Raises InvalidFilterError on blank values or unknown severities.
    """
    if isinstance(raw, GraphFilters):
        return raw
    if raw is None:
        raw = RawGraphFilters()
    elif not isinstance(raw, RawGraphFilters):
        try:
            raw = RawGraphFilters.model_validate(dict(raw))
        except ValidationError as e:
            raise InvalidFilterError(f"Malformed filters: {e.errors()[0].get('msg')}") from e

    return GraphFilters(
        tags=frozenset(_split_facet("tags", raw.tags)),
        namespaces=frozenset(_split_facet("namespaces", raw.namespaces)),
        severities=_parse_severities(_split_facet("severities", raw.severities)),
        include_dependent_namespaces=bool(raw.include_dependent_namespaces),
    )


# PUBLIC_INTERFACE
def facet_matches(facet: FrozenSet[Any], values: Iterable[Any]) -> bool:
    """Empty facet matches everything; otherwise any possessed value must be in the facet."""
    if not facet:
        return True
    return any(v in facet for v in values)


def service_matches(filters: GraphFilters, tags: Iterable[str]) -> bool:
    """Tag facet check for a service node (namespace scoping is handled by the caller)."""
    return facet_matches(filters.tags, tags)


def alert_matches(filters: GraphFilters, severity: Severity, tags: Iterable[str]) -> bool:
    """Severity AND tag facets for an alert."""
    return facet_matches(filters.severities, (severity,)) and facet_matches(filters.tags, tags)
