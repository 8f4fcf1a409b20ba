from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.api.schemas.common import ErrorResponse, Severity
from src.api.schemas.filters import FiltersEcho
from src.api.services.identity import SERVICE_KEY_SEPARATOR

NodeType = Literal["namespace", "service"]
EdgeType = Literal["contains", "namespace", "service"]

# Source-record fields attached to service nodes untouched.
ENRICHMENT_FIELDS = ("external_calls", "database_calls", "rpc_calls")


def _check_namespace(v: str) -> str:
    v = (v or "").strip()
    if not v:
        raise ValueError("namespace must not be empty")
    if SERVICE_KEY_SEPARATOR in v:
        raise ValueError(f"namespace must not contain {SERVICE_KEY_SEPARATOR!r}")
    return v


class ServiceRecord(BaseModel):
    """A service row as supplied by the topology source."""

    namespace: str = Field(..., description="Owning namespace.")
    name: str = Field(..., min_length=1, description="Service name, unique within its namespace.")
    tags: List[str] = Field(default_factory=list, description="Service tags.")
    team: Optional[str] = Field(default=None, description="Owning team.")
    environment: Optional[str] = Field(default=None, description="Deployment environment.")
    component_type: Optional[str] = Field(default=None, description="Component type (service, worker, ...).")
    tag_sources: Dict[str, str] = Field(default_factory=dict, description="Where each tag came from.")

    external_calls: Any = Field(default=None, description="Opaque enrichment payload.")
    database_calls: Any = Field(default=None, description="Opaque enrichment payload.")
    rpc_calls: Any = Field(default=None, description="Opaque enrichment payload.")

    @field_validator("namespace")
    @classmethod
    def validate_namespace(cls, v: str) -> str:
        return _check_namespace(v)

    def enrichment(self) -> Dict[str, Any]:
        """Enrichment fields present on this record, unmodified."""
        return {f: getattr(self, f) for f in ENRICHMENT_FIELDS if getattr(self, f) is not None}


class NamespaceDependency(BaseModel):
    """Directed 'from depends on to' relationship between namespaces."""

    id: Optional[str] = Field(default=None, description="Store id, when persisted.")
    from_namespace: str = Field(..., description="Dependent namespace.")
    to_namespace: str = Field(..., description="Namespace depended upon.")
    dependency_type: str = Field("manual", description="Dependency classification.")
    description: Optional[str] = Field(default=None, description="Free-form description.")
    created_by: Optional[str] = Field(default=None, description="Who declared the dependency.")
    created_at: Optional[datetime] = Field(default=None, description="UTC creation timestamp.")

    @field_validator("from_namespace", "to_namespace")
    @classmethod
    def validate_namespace(cls, v: str) -> str:
        return _check_namespace(v)


class NamespaceDependencyCreate(BaseModel):
    """Request body for declaring a namespace dependency."""

    from_namespace: str = Field(..., description="Dependent namespace.")
    to_namespace: str = Field(..., description="Namespace depended upon.")
    dependency_type: str = Field("manual", description="Dependency classification.")
    description: Optional[str] = Field(default=None, description="Free-form description.")
    created_by: str = Field("api", description="Who declared the dependency.")


class NamespaceDependencyListResponse(BaseModel):
    """Envelope for listing namespace dependencies."""

    items: List[NamespaceDependency] = Field(..., description="Declared namespace dependencies.")
    total: int = Field(..., ge=0, description="Total count returned.")


class ServiceDependency(BaseModel):
    """Directed dependency between two services, observed from traces or declared."""

    from_namespace: str
    from_service: str
    to_namespace: str
    to_service: str
    dependency_type: str = "service"
    created_at: Optional[datetime] = None


class Topology(BaseModel):
    """Everything the graph builder needs, already fetched from the record store."""

    namespaces: List[str] = Field(default_factory=list, description="Namespaces known independently of services.")
    services: List[ServiceRecord] = Field(default_factory=list)
    namespace_dependencies: List[NamespaceDependency] = Field(default_factory=list)
    service_dependencies: List[ServiceDependency] = Field(default_factory=list)


class Node(BaseModel):
    """Graph node: a namespace or a service."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Namespace name or 'namespace::service'.")
    node_type: NodeType = Field(..., alias="nodeType")
    label: str
    namespace: str
    tags: List[str] = Field(default_factory=list)
    team: Optional[str] = None
    environment: Optional[str] = None
    component_type: Optional[str] = None
    tag_sources: Dict[str, str] = Field(default_factory=dict, alias="tagSources")
    enrichment: Dict[str, Any] = Field(default_factory=dict, description="Opaque enrichment blob.")

    alert_count: Optional[int] = Field(default=None, alias="alertCount")
    highest_severity: Optional[Severity] = Field(default=None, alias="highestSeverity")


class Edge(BaseModel):
    """Directed graph edge."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    from_id: str = Field(..., alias="from")
    to: str
    edge_type: EdgeType = Field(..., alias="edgeType")
    dependency_type: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None


class DroppedEdges(BaseModel):
    """Edges discarded while assembling the full graph."""

    dangling: int = Field(0, ge=0, description="Edges referencing a node absent from the topology.")
    self_loop: int = Field(0, ge=0, description="Edges whose endpoints are the same node.")


class GraphResult(BaseModel):
    """Filtered graph."""

    model_config = ConfigDict(populate_by_name=True)

    nodes: List[Node] = Field(default_factory=list)
    edges: List[Edge] = Field(default_factory=list)
    dropped_edges: DroppedEdges = Field(default_factory=DroppedEdges, alias="droppedEdges")
    filters: FiltersEcho = Field(default_factory=FiltersEcho)


class GraphOutcome(BaseModel):
    """compute_graph() result: either a graph or an error, never both."""

    ok: bool
    result: Optional[GraphResult] = None
    error: Optional[ErrorResponse] = None
