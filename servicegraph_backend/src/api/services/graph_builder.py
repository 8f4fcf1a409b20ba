from __future__ import annotations

import logging
from typing import Dict, FrozenSet, List, Optional, Tuple

from src.api.schemas.filters import FiltersEcho, GraphFilters
from src.api.schemas.graph import DroppedEdges, Edge, GraphResult, Node, Topology
from src.api.services.filters import service_matches
from src.api.services.identity import service_key
from src.api.services.namespace_expansion import effective_namespaces, valid_namespace_edges

logger = logging.getLogger(__name__)


def _build_nodes(topology: Topology) -> Dict[str, Node]:
    """One node per distinct namespace and per distinct (namespace, service); first record wins."""
    nodes: Dict[str, Node] = {}

    def add_namespace(ns: str) -> None:
        if ns not in nodes:
            nodes[ns] = Node(id=ns, node_type="namespace", label=ns, namespace=ns)

    for ns in topology.namespaces:
        add_namespace(ns)

    for svc in topology.services:
        add_namespace(svc.namespace)
        key = service_key(svc.namespace, svc.name)
        if key in nodes:
            continue
        nodes[key] = Node(
            id=key,
            node_type="service",
            label=svc.name,
            namespace=svc.namespace,
            tags=list(svc.tags),
            team=svc.team,
            environment=svc.environment,
            component_type=svc.component_type,
            tag_sources=dict(svc.tag_sources),
            enrichment=svc.enrichment(),
        )
    return nodes


def _candidate_edges(topology: Topology) -> List[Edge]:
    edges: List[Edge] = []

    for svc in topology.services:
        key = service_key(svc.namespace, svc.name)
        edges.append(Edge(id=f"{svc.namespace}->{key}", from_id=svc.namespace, to=key, edge_type="contains"))

    for dep in topology.namespace_dependencies:
        edges.append(
            Edge(
                id=f"{dep.from_namespace}==>{dep.to_namespace}",
                from_id=dep.from_namespace,
                to=dep.to_namespace,
                edge_type="namespace",
                dependency_type=dep.dependency_type,
                description=dep.description,
                created_at=dep.created_at,
            )
        )

    for dep in topology.service_dependencies:
        src = service_key(dep.from_namespace, dep.from_service)
        dst = service_key(dep.to_namespace, dep.to_service)
        edges.append(
            Edge(
                id=f"{src}-->{dst}",
                from_id=src,
                to=dst,
                edge_type="service",
                dependency_type=dep.dependency_type,
                created_at=dep.created_at,
            )
        )
    return edges


def _build_edges(topology: Topology, nodes: Dict[str, Node]) -> Tuple[List[Edge], DroppedEdges]:
    """Full edge set; self-loops and edges with an unknown endpoint are counted and skipped."""
    edges: List[Edge] = []
    seen = set()
    dangling = 0
    self_loop = 0

    for edge in _candidate_edges(topology):
        if edge.from_id == edge.to:
            self_loop += 1
            continue
        if edge.from_id not in nodes or edge.to not in nodes:
            dangling += 1
            continue
        if edge.id in seen:
            continue
        seen.add(edge.id)
        edges.append(edge)

    if dangling or self_loop:
        logger.warning("Dropped graph edges: dangling=%d self_loop=%d", dangling, self_loop)
    return edges, DroppedEdges(dangling=dangling, self_loop=self_loop)


def _node_survives(node: Node, filters: GraphFilters, namespaces: Optional[FrozenSet[str]]) -> bool:
    if namespaces is not None and node.namespace not in namespaces:
        return False
    if node.node_type == "service":
        return service_matches(filters, node.tags)
    return True


def echo_filters(filters: GraphFilters, namespaces: Optional[FrozenSet[str]]) -> FiltersEcho:
    """Sorted view of the filters, with the expanded selection when expansion was requested."""
    expanded = None
    if filters.include_dependent_namespaces and namespaces is not None:
        expanded = sorted(namespaces)
    return FiltersEcho(
        tags=sorted(filters.tags),
        namespaces=sorted(filters.namespaces),
        severities=sorted(filters.severities, key=lambda s: s.value),
        include_dependent_namespaces=filters.include_dependent_namespaces,
        expanded_namespaces=expanded,
    )


# PUBLIC_INTERFACE
def build_graph(topology: Topology, filters: GraphFilters) -> GraphResult:
    """
    Build the namespace/service graph and prune it to the active filters.

    A node survives when its namespace is in the effective namespace selection
    (if one is active) and, for service nodes, it carries a matching tag (if a
    tag facet is active). An edge survives when both endpoints survive.
    Severities never prune the graph. Ordering follows the source records.
    """
    nodes = _build_nodes(topology)
    edges, dropped = _build_edges(topology, nodes)

    namespaces = effective_namespaces(filters, valid_namespace_edges(topology))

    kept_nodes = [n for n in nodes.values() if _node_survives(n, filters, namespaces)]
    kept_ids = {n.id for n in kept_nodes}
    kept_edges = [e for e in edges if e.from_id in kept_ids and e.to in kept_ids]

    logger.debug(
        "Graph built: nodes=%d/%d edges=%d/%d", len(kept_nodes), len(nodes), len(kept_edges), len(edges)
    )
    return GraphResult(
        nodes=kept_nodes,
        edges=kept_edges,
        dropped_edges=dropped,
        filters=echo_filters(filters, namespaces),
    )
