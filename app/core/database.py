"""Process-wide MongoDB connection with explicit startup/shutdown."""

from __future__ import annotations

import logging
from typing import Any

from pymongo import MongoClient

from app.core.config import DatabaseConfig

LOGGER = logging.getLogger(__name__)


class MongoDatabase:
    """Owns the single MongoClient for the process.

    When no URI is configured the database stays disconnected and
    repositories fall back to their file stores.
    """

    def __init__(self, config: DatabaseConfig) -> None:
        """Store connection settings; nothing is opened until ``connect``."""
        self._config = config
        self._client: MongoClient | None = None
        self._db: Any = None

    @property
    def enabled(self) -> bool:
        """Return whether a MongoDB URI is configured."""
        return bool(self._config.mongo_uri)

    @property
    def backend_name(self) -> str:
        return "mongodb" if self._db is not None else "file"

    @property
    def db(self) -> Any:
        """Return the connected database handle or ``None``."""
        return self._db

    def connect(self) -> Any:
        """Open the client and verify connectivity, raising on failure."""
        if not self.enabled or self._db is not None:
            return self._db

        client: MongoClient = MongoClient(
            self._config.mongo_uri,
            serverSelectionTimeoutMS=self._config.server_selection_timeout_ms,
            tz_aware=True,
        )
        try:
            client.admin.command("ping")
        except Exception:
            client.close()
            LOGGER.exception("mongodb_connect_failed")
            raise
        self._client = client
        self._db = client[self._config.mongo_db]
        LOGGER.info("mongodb_connected")
        return self._db

    def collection(self, name: str) -> Any:
        """Return named collection or ``None`` when running on the file store."""
        if self._db is None:
            return None
        return self._db[name]

    def close(self) -> None:
        """Close the client; safe to call more than once."""
        if self._client is not None:
            self._client.close()
            LOGGER.info("mongodb_closed")
        self._client = None
        self._db = None
