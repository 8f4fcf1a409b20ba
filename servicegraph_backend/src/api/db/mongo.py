from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import RLock
from typing import Optional

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)


DEFAULT_DB_NAME = "servicegraph"


@dataclass(frozen=True)
class MongoCollections:
    """Convenience wrapper for app collections."""

    # Topology
    services: Collection
    namespaces: Collection
    namespace_dependencies: Collection
    service_dependencies: Collection

    # Incidents
    alerts: Collection


class MongoManager:
    """MongoDB connection manager holding one MongoClient for the app's record store."""

    def __init__(self, app_mongo_uri: str, db_name: str = DEFAULT_DB_NAME):
        self._app_mongo_uri = app_mongo_uri
        self._db_name = db_name
        self._app_client: Optional[MongoClient] = None
        self._lock = RLock()

    def connect_app(self) -> None:
        """Initialize app Mongo client if needed."""
        with self._lock:
            if self._app_client is not None:
                return
            # MongoClient is thread-safe and manages internal pooling.
            self._app_client = MongoClient(self._app_mongo_uri, connect=True)

    # PUBLIC_INTERFACE
    def ping(self, timeout_ms: int = 1500) -> bool:
        """
        Ping the configured MongoDB to validate connectivity.

        This is used by startup validation and the connectivity-check endpoint.
        """
        try:
            if self._app_client is None:
                # Ensure client exists before pinging
                self.connect_app()
            assert self._app_client is not None
            self._app_client.admin.command("ping", maxTimeMS=int(max(250, timeout_ms)))
            return True
        except PyMongoError:
            logger.exception("Mongo ping failed (PyMongoError)")
            return False

    def close(self) -> None:
        """Close the app Mongo client."""
        with self._lock:
            if self._app_client is not None:
                try:
                    self._app_client.close()
                except PyMongoError:
                    logger.exception("Error closing app MongoClient")
                self._app_client = None

    def app_db(self) -> Database:
        """Return the record store database handle."""
        if self._app_client is None:
            self.connect_app()
        assert self._app_client is not None
        return self._app_client[self._db_name]

    def collections(self) -> MongoCollections:
        """Return app collections."""
        db = self.app_db()
        return MongoCollections(
            services=db["services"],
            namespaces=db["namespaces"],
            namespace_dependencies=db["namespace_dependencies"],
            service_dependencies=db["service_dependencies"],
            alerts=db["alerts"],
        )

    def init_indexes(self) -> None:
        """Create required indexes (idempotent)."""
        cols = self.collections()

        # ---- Topology ----
        cols.services.create_index(
            [("service_namespace", ASCENDING), ("service_name", ASCENDING)], unique=True, name="idx_services_key"
        )
        cols.services.create_index([("tags", ASCENDING)], name="idx_services_tags")
        cols.namespaces.create_index([("name", ASCENDING)], unique=True, name="idx_namespaces_name")

        # One declared dependency per ordered namespace pair (upserts rely on this).
        cols.namespace_dependencies.create_index(
            [("from_namespace", ASCENDING), ("to_namespace", ASCENDING)], unique=True, name="idx_ns_deps_pair"
        )
        cols.service_dependencies.create_index(
            [
                ("from_service_namespace", ASCENDING),
                ("from_service_name", ASCENDING),
                ("to_service_namespace", ASCENDING),
                ("to_service_name", ASCENDING),
            ],
            unique=True,
            name="idx_svc_deps_pair",
        )

        # ---- Alerts ----
        # Common query: history window, newest first.
        cols.alerts.create_index([("opened_at", DESCENDING)], name="idx_alerts_opened_at_desc")
        cols.alerts.create_index(
            [("service_namespace", ASCENDING), ("service_name", ASCENDING), ("opened_at", DESCENDING)],
            name="idx_alerts_service_opened_at",
        )
        cols.alerts.create_index([("resolved_at", ASCENDING)], name="idx_alerts_resolved_at")
