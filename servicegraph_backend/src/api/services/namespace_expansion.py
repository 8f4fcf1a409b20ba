from __future__ import annotations

import logging
from collections import deque
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple, Union

from src.api.schemas.filters import GraphFilters
from src.api.schemas.graph import NamespaceDependency, Topology

logger = logging.getLogger(__name__)

NamespaceEdge = Union[NamespaceDependency, Tuple[str, str]]


def _endpoints(edge: NamespaceEdge) -> Tuple[str, str]:
    if isinstance(edge, NamespaceDependency):
        return edge.from_namespace, edge.to_namespace
    return edge[0], edge[1]


def build_adjacency(edges: Iterable[NamespaceEdge]) -> Dict[str, List[str]]:
    """from_namespace -> namespaces it depends on, in first-seen order."""
    adjacency: Dict[str, List[str]] = {}
    for edge in edges:
        src, dst = _endpoints(edge)
        targets = adjacency.setdefault(src, [])
        if dst not in targets:
            targets.append(dst)
    return adjacency


# PUBLIC_INTERFACE
def expand_namespaces(
    selected: Iterable[str],
    edges: Iterable[NamespaceEdge],
    include_dependents: bool,
) -> FrozenSet[str]:
    """
    Enlarge a namespace selection with everything it transitively depends on.

    Breadth-first over an adjacency map built once per call. The visited set
    guarantees each namespace is expanded at most once, so cyclic dependency
    graphs terminate. The result always contains the original selection.
    """
    selection = frozenset(selected)
    if not include_dependents or not selection:
        return selection

    adjacency = build_adjacency(edges)
    visited: Set[str] = set(selection)
    queue = deque(selection)
    while queue:
        ns = queue.popleft()
        for dep in adjacency.get(ns, ()):
            if dep not in visited:
                visited.add(dep)
                queue.append(dep)

    logger.debug("Expanded namespaces %s -> %s", sorted(selection), sorted(visited))
    return frozenset(visited)


# PUBLIC_INTERFACE
def effective_namespaces(filters: GraphFilters, edges: Iterable[NamespaceEdge]) -> Optional[FrozenSet[str]]:
    """
    Namespace selection shared by graph pruning and alert scoping.

    None means no namespace facet is active and every namespace is in scope.
    """
    if not filters.namespaces:
        return None
    return expand_namespaces(filters.namespaces, edges, filters.include_dependent_namespaces)


def topology_namespaces(topology: Topology) -> FrozenSet[str]:
    """Namespaces that exist as graph nodes: the declared list plus every service's namespace."""
    return frozenset(topology.namespaces) | frozenset(svc.namespace for svc in topology.services)


# PUBLIC_INTERFACE
def valid_namespace_edges(topology: Topology) -> List[NamespaceDependency]:
    """
    Namespace dependencies usable for expansion.

    Self-loops and edges with an endpoint that is not a known namespace are the
    ones the graph drops and counts; expansion must not walk through them.
    """
    known = topology_namespaces(topology)
    return [
        dep
        for dep in topology.namespace_dependencies
        if dep.from_namespace != dep.to_namespace and dep.from_namespace in known and dep.to_namespace in known
    ]
