from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from src.api.db.mongo import MongoManager

logger = logging.getLogger(__name__)


class MongoRecordStore:
    """
    Read side of the record store: returns raw documents for topology and alerts.

    Documents use the store's column names (service_namespace, from_namespace,
    opened_at, ...); conversion into engine records happens in records_service.
    """

    def __init__(self, mongo: MongoManager):
        self._mongo = mongo

    def list_services(self) -> List[dict]:
        cols = self._mongo.collections()
        return list(cols.services.find({}, projection={"_id": 0}).sort([("service_namespace", ASCENDING), ("service_name", ASCENDING)]))

    def list_namespaces(self) -> List[str]:
        cols = self._mongo.collections()
        docs = cols.namespaces.find({}, projection={"_id": 0, "name": 1}).sort("name", ASCENDING)
        return [str(d["name"]) for d in docs if d.get("name")]

    def list_namespace_dependencies(self) -> List[dict]:
        cols = self._mongo.collections()
        return list(cols.namespace_dependencies.find({}).sort([("from_namespace", ASCENDING), ("to_namespace", ASCENDING)]))

    def list_service_dependencies(self) -> List[dict]:
        cols = self._mongo.collections()
        return list(cols.service_dependencies.find({}, projection={"_id": 0}))

    def list_alerts(self, since: Optional[datetime] = None, limit: int = 5000) -> List[dict]:
        """
        All unresolved alerts plus resolved ones opened at/after `since`, newest first.

        `limit` caps only the resolved history, so open counts never depend on the
        window or the cap.
        """
        cols = self._mongo.collections()
        open_docs = list(cols.alerts.find({"resolved_at": None}))

        history_query: dict = {"resolved_at": {"$ne": None}}
        if since is not None:
            history_query["opened_at"] = {"$gte": since}
        history = list(cols.alerts.find(history_query).sort("opened_at", DESCENDING).limit(int(limit)))
        if len(history) >= limit:
            logger.warning("Resolved alert history truncated at limit=%d (since=%s)", limit, since)

        docs = open_docs + history
        docs.sort(key=lambda d: d["opened_at"], reverse=True)
        return docs

    def upsert_namespace_dependency(self, doc: dict) -> dict:
        """Insert or update the dependency for (from_namespace, to_namespace); returns the stored document."""
        cols = self._mongo.collections()
        key = {"from_namespace": doc["from_namespace"], "to_namespace": doc["to_namespace"]}
        update = {k: v for k, v in doc.items() if k not in ("from_namespace", "to_namespace", "created_at")}
        return cols.namespace_dependencies.find_one_and_update(
            key,
            {"$set": update, "$setOnInsert": {"created_at": doc.get("created_at")}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )

    def delete_namespace_dependency(self, dependency_id: str) -> Optional[dict]:
        """Delete a dependency by id; returns the deleted document or None if not found/invalid id."""
        cols = self._mongo.collections()
        try:
            oid = ObjectId(dependency_id)
        except (InvalidId, TypeError):
            return None
        return cols.namespace_dependencies.find_one_and_delete({"_id": oid})
