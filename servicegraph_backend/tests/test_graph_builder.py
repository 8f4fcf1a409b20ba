from __future__ import annotations

from src.api.schemas.common import Severity
from src.api.schemas.filters import GraphFilters
from src.api.schemas.graph import NamespaceDependency, ServiceDependency, ServiceRecord, Topology
from src.api.services.graph_builder import build_graph


def _topology() -> Topology:
    return Topology(
        namespaces=["checkout", "payments", "search"],
        services=[
            ServiceRecord(namespace="checkout", name="api", tags=["frontend", "tier1"],
                          external_calls=[{"host": "maps.example.com", "count": 3}]),
            ServiceRecord(namespace="checkout", name="worker", tags=["batch"]),
            ServiceRecord(namespace="payments", name="charge", tags=["tier1"],
                          database_calls=[{"system": "postgres", "count": 9}], rpc_calls=[]),
            ServiceRecord(namespace="search", name="indexer", tags=["batch"]),
        ],
        namespace_dependencies=[
            NamespaceDependency(from_namespace="checkout", to_namespace="payments", dependency_type="runtime"),
            NamespaceDependency(from_namespace="search", to_namespace="checkout"),
        ],
        service_dependencies=[
            ServiceDependency(from_namespace="checkout", from_service="api", to_namespace="payments", to_service="charge"),
            ServiceDependency(from_namespace="checkout", from_service="worker", to_namespace="checkout", to_service="api"),
        ],
    )


def _ids(items):
    return [i.id for i in items]


def test_full_graph_without_filters():
    g = build_graph(_topology(), GraphFilters())
    assert _ids(g.nodes) == [
        "checkout",
        "payments",
        "search",
        "checkout::api",
        "checkout::worker",
        "payments::charge",
        "search::indexer",
    ]
    assert _ids(g.edges) == [
        "checkout->checkout::api",
        "checkout->checkout::worker",
        "payments->payments::charge",
        "search->search::indexer",
        "checkout==>payments",
        "search==>checkout",
        "checkout::api-->payments::charge",
        "checkout::worker-->checkout::api",
    ]
    assert g.dropped_edges.dangling == 0
    assert g.dropped_edges.self_loop == 0
    assert g.filters.expanded_namespaces is None


def test_enrichment_is_passed_through_as_opaque_blob():
    g = build_graph(_topology(), GraphFilters())
    by_id = {n.id: n for n in g.nodes}
    assert by_id["checkout::api"].enrichment == {"external_calls": [{"host": "maps.example.com", "count": 3}]}
    assert by_id["payments::charge"].enrichment == {"database_calls": [{"system": "postgres", "count": 9}], "rpc_calls": []}
    assert by_id["checkout::worker"].enrichment == {}
    assert by_id["checkout"].node_type == "namespace"
    assert by_id["checkout::api"].label == "api"


def test_namespace_filter_without_expansion():
    g = build_graph(_topology(), GraphFilters(namespaces=frozenset({"checkout"})))
    assert _ids(g.nodes) == ["checkout", "checkout::api", "checkout::worker"]
    assert _ids(g.edges) == [
        "checkout->checkout::api",
        "checkout->checkout::worker",
        "checkout::worker-->checkout::api",
    ]


def test_namespace_filter_with_expansion_includes_dependencies():
    g = build_graph(
        _topology(), GraphFilters(namespaces=frozenset({"checkout"}), include_dependent_namespaces=True)
    )
    assert set(_ids(g.nodes)) == {"checkout", "payments", "checkout::api", "checkout::worker", "payments::charge"}
    assert "checkout==>payments" in _ids(g.edges)
    assert "checkout::api-->payments::charge" in _ids(g.edges)
    assert "search==>checkout" not in _ids(g.edges)
    assert g.filters.expanded_namespaces == ["checkout", "payments"]


def test_tag_filter_prunes_service_nodes_only():
    g = build_graph(_topology(), GraphFilters(tags=frozenset({"tier1"})))
    assert _ids(g.nodes) == ["checkout", "payments", "search", "checkout::api", "payments::charge"]
    assert "checkout::api-->payments::charge" in _ids(g.edges)
    assert "checkout::worker-->checkout::api" not in _ids(g.edges)


def test_severities_never_change_graph_membership():
    topo = _topology()
    plain = build_graph(topo, GraphFilters())
    for sev in ({Severity.fatal}, {Severity.critical, Severity.warning}):
        filtered = build_graph(topo, GraphFilters(severities=frozenset(sev)))
        assert _ids(filtered.nodes) == _ids(plain.nodes)
        assert _ids(filtered.edges) == _ids(plain.edges)


def test_dangling_and_self_loop_edges_are_dropped_and_counted():
    topo = _topology()
    topo.namespace_dependencies.append(NamespaceDependency(from_namespace="checkout", to_namespace="ghost"))
    topo.namespace_dependencies.append(NamespaceDependency(from_namespace="payments", to_namespace="payments"))
    topo.service_dependencies.append(
        ServiceDependency(from_namespace="payments", from_service="charge", to_namespace="payments", to_service="missing")
    )
    g = build_graph(topo, GraphFilters())
    assert g.dropped_edges.dangling == 2
    assert g.dropped_edges.self_loop == 1
    assert len(g.nodes) == 7
    assert "checkout==>ghost" not in _ids(g.edges)


def test_no_surviving_edge_has_a_missing_endpoint():
    topo = _topology()
    topo.service_dependencies.append(
        ServiceDependency(from_namespace="nowhere", from_service="x", to_namespace="checkout", to_service="api")
    )
    for filters in (
        GraphFilters(),
        GraphFilters(tags=frozenset({"batch"})),
        GraphFilters(namespaces=frozenset({"search"}), include_dependent_namespaces=True),
    ):
        g = build_graph(topo, filters)
        ids = set(_ids(g.nodes))
        for e in g.edges:
            assert e.from_id in ids and e.to in ids


def test_duplicate_records_keep_first_occurrence():
    topo = Topology(
        services=[
            ServiceRecord(namespace="a", name="svc", tags=["first"]),
            ServiceRecord(namespace="a", name="svc", tags=["second"]),
        ],
        namespace_dependencies=[],
    )
    g = build_graph(topo, GraphFilters())
    assert _ids(g.nodes) == ["a", "a::svc"]
    assert g.nodes[1].tags == ["first"]
    assert _ids(g.edges) == ["a->a::svc"]


def test_every_service_node_has_its_namespace_node():
    g = build_graph(_topology(), GraphFilters(namespaces=frozenset({"search"}), include_dependent_namespaces=True))
    ids = set(_ids(g.nodes))
    for n in g.nodes:
        if n.node_type == "service":
            assert n.namespace in ids
            assert n.id.split("::", 1)[0] == n.namespace
