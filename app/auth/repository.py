"""Repository for user credential records."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from threading import RLock
from typing import Any, Callable

from pymongo.errors import DuplicateKeyError

from app.auth.models import User
from app.core.database import MongoDatabase
from app.core.mongo_migrations import USERS_COLLECTION

LOGGER = logging.getLogger(__name__)

REFRESH_FIELDS = ("refresh_token_hash", "refresh_token_expires_at")


class DuplicateEmailError(ValueError):
    """Raised when a write would give two users the same email."""


class UserRepository:
    """User repository with MongoDB primary and file-store fallback."""

    def __init__(self, database: MongoDatabase, fallback_dir: Path) -> None:
        """Initialize repository storage backends."""
        self._database = database
        self._fallback_dir = fallback_dir
        self._users_file = fallback_dir / "users.json"
        self._lock = RLock()

    @property
    def _collection(self) -> Any:
        return self._database.collection(USERS_COLLECTION)

    def _read_rows(self) -> list[dict[str, Any]]:
        """Read list payload from JSON file with empty fallback."""
        if not self._users_file.exists():
            return []
        try:
            payload = json.loads(self._users_file.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            LOGGER.warning("auth_store_unreadable")
            return []
        return payload if isinstance(payload, list) else []

    def _write_rows(self, rows: list[dict[str, Any]]) -> None:
        """Persist list payload to JSON file atomically."""
        self._fallback_dir.mkdir(parents=True, exist_ok=True)
        tmp_file = self._users_file.with_suffix(".json.tmp")
        tmp_file.write_text(json.dumps(rows, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp_file.replace(self._users_file)

    def _find_row(self, predicate: Callable[[dict[str, Any]], bool]) -> User | None:
        with self._lock:
            for row in self._read_rows():
                if predicate(row):
                    return User.model_validate(row)
        return None

    def get_by_id(self, user_id: str) -> User | None:
        """Get user by id from storage."""
        if not user_id:
            return None
        collection = self._collection
        if collection is not None:
            doc = collection.find_one({"user_id": user_id}, {"_id": 0})
            return User.model_validate(doc) if doc else None
        return self._find_row(lambda row: row.get("user_id") == user_id)

    def get_by_email(self, email: str) -> User | None:
        """Get user by email from storage, case-insensitively."""
        key = email.strip().lower()
        collection = self._collection
        if collection is not None:
            doc = collection.find_one({"email": key}, {"_id": 0})
            return User.model_validate(doc) if doc else None
        return self._find_row(
            lambda row: str(row.get("email", "")).strip().lower() == key
        )

    def _find_by_token_hash(
        self, hash_field: str, expiry_field: str, token_hash: str, now: int
    ) -> User | None:
        if not token_hash:
            return None
        collection = self._collection
        if collection is not None:
            doc = collection.find_one(
                {hash_field: token_hash, expiry_field: {"$gt": now}}, {"_id": 0}
            )
            return User.model_validate(doc) if doc else None
        return self._find_row(
            lambda row: row.get(hash_field) == token_hash
            and int(row.get(expiry_field) or 0) > now
        )

    def find_by_refresh_token_hash(self, token_hash: str, now: int) -> User | None:
        """Find the user holding an unexpired refresh token with this hash."""
        return self._find_by_token_hash(
            "refresh_token_hash", "refresh_token_expires_at", token_hash, now
        )

    def find_by_password_reset_token_hash(
        self, token_hash: str, now: int
    ) -> User | None:
        return self._find_by_token_hash(
            "password_reset_token_hash", "password_reset_expires_at", token_hash, now
        )

    def find_by_email_verification_token_hash(
        self, token_hash: str, now: int
    ) -> User | None:
        return self._find_by_token_hash(
            "email_verification_token_hash",
            "email_verification_expires_at",
            token_hash,
            now,
        )

    def insert(self, user: User) -> None:
        """Create a new user, rejecting duplicate emails."""
        doc = user.model_dump()
        collection = self._collection
        if collection is not None:
            try:
                collection.insert_one(dict(doc))
            except DuplicateKeyError as exc:
                raise DuplicateEmailError(user.email) from exc
            return

        with self._lock:
            rows = self._read_rows()
            key = user.email.lower()
            if any(str(row.get("email", "")).strip().lower() == key for row in rows):
                raise DuplicateEmailError(user.email)
            rows.append(doc)
            self._write_rows(rows)

    def save(self, user: User) -> None:
        """Write every field of ``user`` except the refresh-token pair.

        The refresh pair only changes through ``set_refresh_token`` and
        ``replace_refresh_token``.
        """
        changes = user.model_dump(exclude=set(REFRESH_FIELDS))
        collection = self._collection
        if collection is not None:
            try:
                collection.update_one(
                    {"user_id": user.user_id}, {"$set": changes}, upsert=True
                )
            except DuplicateKeyError as exc:
                raise DuplicateEmailError(user.email) from exc
            return

        with self._lock:
            rows = self._read_rows()
            key = user.email.lower()
            if any(
                str(row.get("email", "")).strip().lower() == key
                and row.get("user_id") != user.user_id
                for row in rows
            ):
                raise DuplicateEmailError(user.email)
            for row in rows:
                if row.get("user_id") == user.user_id:
                    row.update(changes)
                    break
            else:
                rows.append(user.model_dump())
            self._write_rows(rows)

    def set_refresh_token(
        self,
        user_id: str,
        *,
        token_hash: str | None,
        expires_at: int | None,
        updated_at: int,
    ) -> None:
        """Overwrite the refresh-token pair; ``None`` clears it."""
        changes = {
            "refresh_token_hash": token_hash,
            "refresh_token_expires_at": expires_at,
            "updated_at": updated_at,
        }
        collection = self._collection
        if collection is not None:
            collection.update_one({"user_id": user_id}, {"$set": changes})
            return

        with self._lock:
            rows = self._read_rows()
            for row in rows:
                if row.get("user_id") == user_id:
                    row.update(changes)
                    self._write_rows(rows)
                    return

    def replace_refresh_token(
        self,
        user_id: str,
        *,
        expected_hash: str,
        new_hash: str,
        expires_at: int,
        updated_at: int,
    ) -> bool:
        """Swap refresh token hash only if the stored one is still ``expected_hash``.

        Returns ``False`` when another rotation already replaced it.
        """
        changes = {
            "refresh_token_hash": new_hash,
            "refresh_token_expires_at": expires_at,
            "updated_at": updated_at,
        }
        collection = self._collection
        if collection is not None:
            result = collection.update_one(
                {"user_id": user_id, "refresh_token_hash": expected_hash},
                {"$set": changes},
            )
            return result.modified_count == 1

        with self._lock:
            rows = self._read_rows()
            for row in rows:
                if row.get("user_id") != user_id:
                    continue
                if row.get("refresh_token_hash") != expected_hash:
                    return False
                row.update(changes)
                self._write_rows(rows)
                return True
        return False
