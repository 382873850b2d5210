"""Versioned MongoDB schema migrations for auth collections."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from app.core.logging import CORRELATION_ID_CTX

LOGGER = logging.getLogger(__name__)

MigrationFn = Callable[[Any], None]

USERS_COLLECTION = "users"


def _migration_20260301_01_user_indexes(db: Any) -> None:
    db[USERS_COLLECTION].create_index("email", unique=True)
    db[USERS_COLLECTION].create_index("user_id", unique=True)


def _migration_20260301_02_token_hash_indexes(db: Any) -> None:
    for field in [
        "refresh_token_hash",
        "password_reset_token_hash",
        "email_verification_token_hash",
    ]:
        db[USERS_COLLECTION].create_index(field, sparse=True)


MIGRATIONS: list[tuple[str, MigrationFn]] = [
    ("20260301_01_user_indexes", _migration_20260301_01_user_indexes),
    ("20260301_02_token_hash_indexes", _migration_20260301_02_token_hash_indexes),
]


def apply_mongo_migrations(db: Any) -> list[str]:
    """Apply pending migrations and return the ids applied in this run."""
    if db is None:
        return []

    migration_collection = db["schema_migrations"]
    migration_collection.create_index("migration_id", unique=True)

    applied: list[str] = []
    for migration_id, migration_fn in MIGRATIONS:
        if migration_collection.find_one({"migration_id": migration_id}):
            continue
        migration_fn(db)
        migration_collection.insert_one(
            {
                "migration_id": migration_id,
                "applied_at": datetime.now(timezone.utc),
                "correlation_id": CORRELATION_ID_CTX.get(),
            }
        )
        applied.append(migration_id)
        LOGGER.info("mongo_migration_applied %s", migration_id)
    return applied
