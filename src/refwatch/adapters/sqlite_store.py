"""SQLite dedup store adapter.

Implements the core DedupStorePort using a simple SQLite database. The
check-and-record of ``claim`` runs inside one ``BEGIN IMMEDIATE``
transaction, which serializes concurrent hooks on the database lock.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from datetime import datetime, timezone
from typing import Iterable, Sequence

from refwatch.core.errors import InvalidCommitIdError, StoreError
from refwatch.core.models import validate_commit_id

LOGGER = logging.getLogger(__name__)


class SQLiteDedupStore:
    """Thin SQLite wrapper that satisfies the DedupStorePort contract."""

    def __init__(self, db_path: str, mode: int = 0o664, timeout: float = 60.0) -> None:
        self._db_path = db_path
        self._mode = mode
        self._timeout = timeout

    def _connect(self) -> sqlite3.Connection:
        created = not os.path.exists(self._db_path)
        try:
            # Autocommit mode: transactions are opened explicitly below.
            conn = sqlite3.connect(self._db_path, timeout=self._timeout, isolation_level=None)
            if created:
                os.chmod(self._db_path, self._mode)
        except (sqlite3.Error, OSError) as exc:
            raise StoreError(f"Cannot open dedup store {self._db_path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self, conn: sqlite3.Connection) -> None:
        """Create the table if it does not exist.

        reported is append-only. Fields:
        - commit_id: 40-char hex id (PRIMARY KEY)
        - first_seen: when the id was first recorded, for auditing
        """

        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS reported (
                commit_id TEXT PRIMARY KEY,
                first_seen TIMESTAMP NOT NULL
            )
            """
        )

    def exists(self) -> bool:
        if not os.path.exists(self._db_path):
            return False
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = 'reported'"
            ).fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot read dedup store {self._db_path}: {exc}") from exc
        finally:
            conn.close()
        return row is not None

    def seed(self, commit_ids: Iterable[str]) -> None:
        self._record(list(commit_ids))

    def seen(self) -> set[str]:
        if not self.exists():
            return set()
        conn = self._connect()
        try:
            rows = conn.execute("SELECT commit_id FROM reported").fetchall()
            return {validate_commit_id(row["commit_id"]) for row in rows}
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot read dedup store {self._db_path}: {exc}") from exc
        except InvalidCommitIdError as exc:
            raise StoreError(f"Corrupt dedup store {self._db_path}: {exc}") from exc
        finally:
            conn.close()

    def claim(self, commit_ids: Sequence[str]) -> set[str]:
        """Record commit_ids; return those that were already recorded."""

        return self._record(commit_ids)

    def _record(self, commit_ids: Sequence[str]) -> set[str]:
        now = datetime.now(timezone.utc).isoformat()
        conn = self._connect()
        try:
            self._init_db(conn)
            conn.execute("BEGIN IMMEDIATE")
            existing = {
                commit_id
                for commit_id in commit_ids
                if conn.execute(
                    "SELECT 1 FROM reported WHERE commit_id = ?",
                    (commit_id,),
                ).fetchone()
            }
            conn.executemany(
                "INSERT OR IGNORE INTO reported (commit_id, first_seen) VALUES (?, ?)",
                [(commit_id, now) for commit_id in commit_ids],
            )
            conn.execute("COMMIT")
        except sqlite3.Error as exc:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise StoreError(f"Cannot write dedup store {self._db_path}: {exc}") from exc
        finally:
            conn.close()
        LOGGER.debug("Recorded %s commit ids in %s", len(commit_ids), self._db_path)
        return existing
