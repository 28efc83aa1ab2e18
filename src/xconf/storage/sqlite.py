"""SQLite-backed collection and resource store."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager, suppress
from pathlib import Path
from typing import Iterator, List, Sequence

from xconf.storage.base import StoreError

LOGGER = logging.getLogger(__name__)


class SQLiteCollection:
    """Collection handle bound to a :class:`SQLiteResourceStore`."""

    def __init__(self, store: SQLiteResourceStore, collection_id: int, path: str) -> None:
        self.store = store
        self.collection_id = collection_id
        self.path = path

    def get_resource(self, name: str) -> str | None:
        row = self.store.fetchone(
            "SELECT content FROM resources WHERE collection_id = ? AND name = ?",
            (self.collection_id, name),
        )
        return row["content"] if row else None

    def store_resource(self, name: str, content: str) -> None:
        with self.store.transaction() as conn:
            conn.execute(
                """
                INSERT INTO resources(collection_id, name, content)
                VALUES (?, ?, ?)
                ON CONFLICT(collection_id, name) DO UPDATE SET content = excluded.content
                """,
                (self.collection_id, name, content),
            )
        LOGGER.debug("Stored %s/%s (%d chars)", self.path, name, len(content))

    def list_resources(self) -> List[str]:
        rows = self.store.fetchall(
            "SELECT name FROM resources WHERE collection_id = ? ORDER BY name",
            (self.collection_id,),
        )
        return [row["name"] for row in rows]


class SQLiteResourceStore:
    """Persistence layer for collections and their resources."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self._conn = sqlite3.connect(self.db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._conn.execute("PRAGMA foreign_keys=ON;")
        self._ensure_schema()

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            yield self._conn
            self._conn.commit()
        except sqlite3.Error as exc:
            with suppress(sqlite3.Error):
                self._conn.rollback()
            raise StoreError(str(exc)) from exc
        except Exception:
            self._conn.rollback()
            raise

    def fetchone(self, sql: str, params: Sequence[object] = ()) -> sqlite3.Row | None:
        try:
            return self._conn.execute(sql, params).fetchone()
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc

    def fetchall(self, sql: str, params: Sequence[object] = ()) -> List[sqlite3.Row]:
        try:
            return self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(str(exc)) from exc

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS collections (
                    id INTEGER PRIMARY KEY,
                    path TEXT NOT NULL UNIQUE,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS resources (
                    id INTEGER PRIMARY KEY,
                    collection_id INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    content TEXT NOT NULL,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    UNIQUE(collection_id, name),
                    FOREIGN KEY(collection_id) REFERENCES collections(id) ON DELETE CASCADE
                )
                """
            )
            conn.execute(
                """
                CREATE TRIGGER IF NOT EXISTS resources_updated
                AFTER UPDATE OF content ON resources
                BEGIN
                    UPDATE resources SET updated_at = CURRENT_TIMESTAMP WHERE id = NEW.id;
                END;
                """
            )

    @staticmethod
    def _normalize(path: str) -> str:
        return "/" + path.strip("/")

    def get_collection(self, path: str) -> SQLiteCollection | None:
        path = self._normalize(path)
        row = self.fetchone("SELECT id FROM collections WHERE path = ?", (path,))
        if row is None:
            return None
        return SQLiteCollection(self, row["id"], path)

    def create_collection(self, path: str) -> SQLiteCollection:
        """Create ``path`` if needed and return its handle."""
        path = self._normalize(path)
        with self.transaction() as conn:
            conn.execute("INSERT OR IGNORE INTO collections(path) VALUES (?)", (path,))
        collection = self.get_collection(path)
        if collection is None:
            raise StoreError(f"Collection {path} missing after insert")
        LOGGER.info("Created collection %s", path)
        return collection

    def list_collections(self) -> List[str]:
        rows = self.fetchall("SELECT path FROM collections ORDER BY path")
        return [row["path"] for row in rows]
