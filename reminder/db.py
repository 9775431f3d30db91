"""SQLite persistence layer."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from pydantic import ValidationError

from reminder.models import PermissionStatus, ScheduleDescriptor

SCHEMA_VERSION = 1

SCHEDULE_KEY = "notificationSchedule"
PERMISSION_KEY = "notificationPermission"

LOGGER = logging.getLogger(__name__)


class Database:
    """Small SQLite key/value store with explicit schema management."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create or migrate schema."""

        with self._connect() as conn:
            conn.execute("CREATE TABLE IF NOT EXISTS schema_version (version INTEGER NOT NULL)")
            row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
            if row is None:
                self._create_schema(conn)
                conn.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
            elif row["version"] != SCHEMA_VERSION:
                raise RuntimeError(
                    f"Unsupported schema version {row['version']} (expected {SCHEMA_VERSION})"
                )

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            """
        )

    def get_value(self, key: str) -> str | None:
        with self._connect() as conn:
            row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def set_value(self, key: str, value: str) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO kv_store(key, value, updated_at)
                VALUES(?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value=excluded.value,
                    updated_at=excluded.updated_at
                """,
                (key, value, _utc_now_iso()),
            )

    def delete_value(self, key: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))

    def load_schedule(self) -> ScheduleDescriptor | None:
        """Return the persisted schedule, or None when absent or unreadable."""

        raw = self.get_value(SCHEDULE_KEY)
        if raw is None:
            return None
        try:
            return ScheduleDescriptor.model_validate_json(raw)
        except ValidationError as exc:
            LOGGER.warning("Ignoring unreadable notification schedule: %s", exc)
            return None

    def save_schedule(self, descriptor: ScheduleDescriptor) -> None:
        self.set_value(SCHEDULE_KEY, descriptor.model_dump_json(by_alias=True))

    def delete_schedule(self) -> None:
        self.delete_value(SCHEDULE_KEY)

    def load_permission(self) -> PermissionStatus:
        raw = self.get_value(PERMISSION_KEY)
        if raw is None:
            return PermissionStatus.UNSET
        try:
            return PermissionStatus(raw)
        except ValueError:
            LOGGER.warning("Ignoring unknown permission value %r", raw)
            return PermissionStatus.UNSET

    def save_permission(self, status: PermissionStatus) -> None:
        self.set_value(PERMISSION_KEY, status.value)

    def clear_permission(self) -> None:
        self.delete_value(PERMISSION_KEY)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
