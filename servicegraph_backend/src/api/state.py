from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fastapi import FastAPI

from src.api.config import BackendConfig
from src.api.db.mongo import MongoManager
from src.api.db.records import MongoRecordStore


@dataclass
class AppState:
    """Typed app.state container for shared singletons."""

    config: BackendConfig
    mongo: MongoManager
    records: Any  # MongoRecordStore, or any object with the same read/write methods


# PUBLIC_INTERFACE
def init_state(app: FastAPI, config: BackendConfig) -> None:
    """Initialize app.state with Mongo manager, record store and config."""
    mongo = MongoManager(config.mongo_uri, config.mongo_db_name)
    app.state.state = AppState(config=config, mongo=mongo, records=MongoRecordStore(mongo))


# PUBLIC_INTERFACE
def get_state(app: FastAPI) -> AppState:
    """Fetch typed AppState from a FastAPI app."""
    return app.state.state  # type: ignore[attr-defined]
