"""Business-logic layer.

The graph & alert aggregation engine is pure and lives in:
- filters.py (filter normalization and facet predicates)
- namespace_expansion.py (transitive namespace dependency expansion)
- graph_builder.py (node/edge assembly and pruning)
- alert_aggregator.py (per-service and global alert stats)
- engine.py (the two public entry points)

records_service.py and dashboard_service.py adapt the Mongo record store to it.
"""

# Import side-effects are intentionally avoided here; modules are imported by routers/services as needed.
