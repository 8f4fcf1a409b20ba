from __future__ import annotations

from typing import FrozenSet, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from src.api.schemas.common import Severity

# A facet arrives either as a list of values or as a comma-separated query string.
FacetInput = Union[str, List[str], None]


class RawGraphFilters(BaseModel):
    """Caller-supplied, possibly partial filter object (not yet validated)."""

    model_config = ConfigDict(populate_by_name=True)

    tags: FacetInput = Field(default=None, description="Service/alert tags (OR within facet).")
    namespaces: FacetInput = Field(default=None, description="Namespaces to scope to (OR within facet).")
    severities: FacetInput = Field(default=None, description="Alert severities fatal|critical|warning.")
    include_dependent_namespaces: bool = Field(
        default=False,
        description="Expand the namespace selection with the namespaces it transitively depends on.",
        alias="includeDependentNamespaces",
    )


class GraphFilters(BaseModel):
    """
    Normalized, validated filters.

    Every facet is a set; an empty set means "no restriction". Built once per
    query by normalize_filters() and immutable afterwards.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    tags: FrozenSet[str] = Field(default_factory=frozenset)
    namespaces: FrozenSet[str] = Field(default_factory=frozenset)
    severities: FrozenSet[Severity] = Field(default_factory=frozenset)
    include_dependent_namespaces: bool = Field(default=False, alias="includeDependentNamespaces")

    @property
    def is_empty(self) -> bool:
        return not (self.tags or self.namespaces or self.severities)


class FiltersEcho(BaseModel):
    """Sorted, JSON-friendly view of the filters that produced a result."""

    tags: List[str] = Field(default_factory=list)
    namespaces: List[str] = Field(default_factory=list)
    severities: List[Severity] = Field(default_factory=list)
    include_dependent_namespaces: bool = Field(default=False, alias="includeDependentNamespaces")
    expanded_namespaces: Optional[List[str]] = Field(
        default=None,
        description="Effective namespace selection after dependency expansion (only when expansion was requested).",
        alias="expandedNamespaces",
    )

    model_config = ConfigDict(populate_by_name=True)
