"""
Node identity for the service graph.

A namespace node id is the namespace name itself; a service node id is
"{namespace}::{service}". Graph nodes and per-service alert stats are joined on
this id, so every caller must derive it through service_key().
"""

from __future__ import annotations

SERVICE_KEY_SEPARATOR = "::"


# PUBLIC_INTERFACE
def service_key(namespace: str, service: str) -> str:
    """Return the stable node id / stats key for a service."""
    return f"{namespace}{SERVICE_KEY_SEPARATOR}{service}"
