#!/usr/bin/env python3
"""Copy blog users from the JSON file store into the MongoDB ``users`` collection.

Run ``--check`` first to compare both sides, ``--dry-run`` to validate the
plan, and no flag to write. Users are upserted by ``user_id`` so the script
can be re-run safely.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pymongo
from dotenv import load_dotenv
from pydantic import ValidationError
from pymongo.errors import PyMongoError

from app.auth.models import User
from app.core.mongo_migrations import USERS_COLLECTION, apply_mongo_migrations

DEFAULT_USERS_FILE = Path("runtime") / "auth_store" / "users.json"
DEFAULT_DB_NAME = "blog"
MAX_PREVIEW_ITEMS = 10


@dataclass
class SourceSnapshot:
    """Validated view of the file store; later rows win on duplicate emails."""

    total_rows: int = 0
    invalid_rows: int = 0
    users_by_email: dict[str, User] = field(default_factory=dict)
    duplicate_emails: list[str] = field(default_factory=list)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Check and migrate blog users from JSON to MongoDB."
    )
    parser.add_argument(
        "--users-file",
        type=Path,
        default=DEFAULT_USERS_FILE,
        help="Path to the file-store users.json.",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--check", action="store_true", help="Report differences only.")
    mode.add_argument("--dry-run", action="store_true", help="Plan without writing.")
    return parser.parse_args(argv)


def read_snapshot(users_file: Path) -> SourceSnapshot:
    """Load and validate ``users_file``; a missing file is an empty store."""
    snapshot = SourceSnapshot()
    if not users_file.exists():
        return snapshot
    payload = json.loads(users_file.read_text(encoding="utf-8"))
    if not isinstance(payload, list):
        raise ValueError(f"Expected list in {users_file}, got {type(payload).__name__}")

    duplicates: set[str] = set()
    for row in payload:
        if not isinstance(row, dict):
            continue
        snapshot.total_rows += 1
        try:
            user = User.model_validate(row)
        except ValidationError:
            snapshot.invalid_rows += 1
            continue
        email = user.email.strip().lower()
        if email in snapshot.users_by_email:
            duplicates.add(email)
        snapshot.users_by_email[email] = user.model_copy(update={"email": email})
    snapshot.duplicate_emails = sorted(duplicates)
    return snapshot


def target_emails(collection: Any) -> set[str]:
    return {
        str(row.get("email", "")).strip().lower()
        for row in collection.find({}, {"_id": 0, "email": 1})
    }


def _preview(label: str, values: list[str]) -> list[str]:
    lines = [f"{label}: {len(values)}"]
    if values:
        lines.append(f"  {', '.join(values[:MAX_PREVIEW_ITEMS])}")
    return lines


def build_check_report(
    users_file: Path, snapshot: SourceSnapshot, existing: set[str]
) -> list[str]:
    """Describe how the file store and the collection differ."""
    source = set(snapshot.users_by_email)
    return [
        f"Source file: {users_file}",
        f"Source rows: {snapshot.total_rows} "
        f"(valid users {len(source)}, invalid {snapshot.invalid_rows})",
        *_preview("Duplicate emails in source", snapshot.duplicate_emails),
        f"Target users: {len(existing)}",
        *_preview("Missing in target", sorted(source - existing)),
        *_preview("Only in target", sorted(existing - source)),
    ]


def migrate_users(
    snapshot: SourceSnapshot, collection: Any, *, dry_run: bool
) -> tuple[int, int]:
    """Upsert every source user by ``user_id``; return (processed, new emails)."""
    users = list(snapshot.users_by_email.values())
    new_emails = set(snapshot.users_by_email) - target_emails(collection)
    if not dry_run:
        for user in users:
            collection.replace_one({"user_id": user.user_id}, user.model_dump(), upsert=True)
    return len(users), len(new_emails)


def _connect() -> tuple[pymongo.MongoClient, Any]:
    mongo_uri = os.getenv("MONGODB_URI", "").strip()
    if not mongo_uri:
        raise RuntimeError("MONGODB_URI is empty. Set env var before running script.")
    db_name = os.getenv("MONGODB_DB", DEFAULT_DB_NAME).strip() or DEFAULT_DB_NAME
    client: pymongo.MongoClient = pymongo.MongoClient(
        mongo_uri, serverSelectionTimeoutMS=5000
    )
    client.admin.command("ping")
    return client, client[db_name]


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = _parse_args(argv)

    client = None
    try:
        snapshot = read_snapshot(args.users_file)
        client, db = _connect()
        collection = db[USERS_COLLECTION]

        if args.check:
            print("\n".join(build_check_report(args.users_file, snapshot, target_emails(collection))))
            return 0

        if not args.dry_run:
            apply_mongo_migrations(db)
        processed, new_emails = migrate_users(snapshot, collection, dry_run=args.dry_run)
        print(f"Mode: {'dry-run' if args.dry_run else 'write'}")
        print(f"Processed users: {processed} (new emails: {new_emails})")
        print(f"Skipped invalid rows: {snapshot.invalid_rows}")
        print(f"Target users now: {collection.count_documents({})}")
        return 0
    except (RuntimeError, ValueError, PyMongoError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    finally:
        if client is not None:
            client.close()


if __name__ == "__main__":
    raise SystemExit(main())
