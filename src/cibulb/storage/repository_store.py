from __future__ import annotations

from pathlib import Path
import sqlite3
from typing import List, Optional

from sanic.log import logger

from cibulb.config import SETTINGS, Settings
from cibulb.db_migrations import migrate_repository_db
from cibulb.errors import StoreConnectionError, StoreOperationError
from cibulb.metric import repository_upsert_counter
from cibulb.model import RepositoryRecord, utcnow_iso


class StoreConnection:
    """
    One open handle on the repository table. Close it on every exit path,
    preferably by using it as a context manager.
    """

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn
        self.closed = False

    def __enter__(self) -> StoreConnection:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def upsert(self, name: str, status: str) -> None:
        now = utcnow_iso()
        try:
            self._conn.execute(
                """
                INSERT INTO repositories (
                    name,
                    status,
                    first_seen_at,
                    last_seen_at
                ) VALUES (?, ?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    status = excluded.status,
                    last_seen_at = excluded.last_seen_at
                """,
                (name, status, now, now),
            )
            self._conn.commit()
        except sqlite3.Error as exc:
            raise StoreOperationError(f"Upsert of {name!r} failed: {exc}") from exc
        repository_upsert_counter.labels(status=status).inc()
        logger.debug("Upserted repository %s with status %s", name, status)

    def fetch_all(self) -> List[RepositoryRecord]:
        try:
            rows = self._conn.execute(
                """
                SELECT name, status, first_seen_at, last_seen_at
                FROM repositories
                """
            ).fetchall()
        except sqlite3.Error as exc:
            raise StoreOperationError(f"Reading repositories failed: {exc}") from exc
        return [
            RepositoryRecord(
                name=row["name"],
                status=row["status"],
                first_seen_at=row["first_seen_at"],
                last_seen_at=row["last_seen_at"],
            )
            for row in rows
        ]

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._conn.close()


class RepositoryStore:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        db_path: Optional[str | Path] = None,
    ):
        self.settings = settings if settings is not None else SETTINGS
        self.db_path = Path(
            db_path if db_path is not None else self.settings.REPOSITORY_DB_PATH
        )

    def initialize(self) -> None:
        logger.debug("Migrating repository store at %s", self.db_path)
        migrate_repository_db(self.db_path)

    def connect(self) -> StoreConnection:
        conn = None
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=10.0)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.execute("PRAGMA busy_timeout=10000")
        except sqlite3.Error as exc:
            if conn is not None:
                conn.close()
            raise StoreConnectionError(
                f"Cannot open repository store {self.db_path}: {exc}"
            ) from exc
        return StoreConnection(conn)
