"""Persistence for parent posts and the idea records derived from them."""

from __future__ import annotations

import json
import logging
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Protocol

from ideafinder.core.models import CandidatePost, ExtractedRecord, StoredPost

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Unexpected persistence failure."""


class ConstraintError(StorageError):
    """A unique or check constraint rejected a row. Callers skip the row and continue."""

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind


class RecordStore(Protocol):
    def query_by_external_id(self, external_id: str) -> Optional[StoredPost]: ...

    def query_by_title(self, title: str) -> Optional[StoredPost]: ...

    def query_by_author(self, author: str, limit: int) -> List[StoredPost]: ...

    def count_derived(self, parent_id: int) -> int: ...

    def insert_parent(self, post: CandidatePost) -> int: ...

    def insert_derived(self, record: ExtractedRecord) -> int: ...


def classify_integrity_error(exc: sqlite3.IntegrityError) -> StorageError:
    message = str(exc)
    if "UNIQUE constraint failed" in message:
        return ConstraintError("unique", message)
    if "CHECK constraint failed" in message:
        return ConstraintError("check", message)
    return StorageError(message)


class SqliteRecordStore:
    """SQLite-backed :class:`RecordStore`. One connection per operation."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self.db_path)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            yield conn
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._connection() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS posts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    external_id TEXT NOT NULL UNIQUE,
                    community TEXT NOT NULL,
                    title TEXT NOT NULL,
                    body TEXT NOT NULL,
                    author TEXT NOT NULL,
                    url TEXT NOT NULL DEFAULT '',
                    permalink TEXT NOT NULL DEFAULT '',
                    score INTEGER NOT NULL DEFAULT 0,
                    num_comments INTEGER NOT NULL DEFAULT 0,
                    created_utc REAL NOT NULL DEFAULT 0,
                    stored_utc INTEGER NOT NULL
                );

                CREATE TABLE IF NOT EXISTS ideas (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    post_id INTEGER NOT NULL,
                    kind TEXT NOT NULL CHECK (kind IN ('business', 'marketing')),
                    name TEXT NOT NULL,
                    status TEXT NOT NULL CHECK (status = 'completed'),
                    payload TEXT NOT NULL,
                    full_analysis TEXT NOT NULL,
                    stored_utc INTEGER NOT NULL,
                    UNIQUE (post_id, kind, name),
                    FOREIGN KEY (post_id) REFERENCES posts(id)
                );

                CREATE INDEX IF NOT EXISTS idx_posts_title ON posts(title);
                CREATE INDEX IF NOT EXISTS idx_posts_author_created ON posts(author, created_utc DESC);
                """
            )
            conn.commit()

    @staticmethod
    def _row_to_post(row: sqlite3.Row) -> StoredPost:
        return StoredPost(
            id=int(row["id"]),
            external_id=row["external_id"],
            title=row["title"],
            body=row["body"],
            community=row["community"],
            author=row["author"],
            created_utc=float(row["created_utc"]),
        )

    def query_by_external_id(self, external_id: str) -> Optional[StoredPost]:
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM posts WHERE external_id = ?;", (external_id,)).fetchone()
        return self._row_to_post(row) if row else None

    def query_by_title(self, title: str) -> Optional[StoredPost]:
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM posts WHERE title = ? ORDER BY id LIMIT 1;", (title,)).fetchone()
        return self._row_to_post(row) if row else None

    def query_by_author(self, author: str, limit: int) -> List[StoredPost]:
        """Most recent parents by ``author``, newest first."""

        with self._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM posts WHERE author = ? ORDER BY created_utc DESC, id DESC LIMIT ?;",
                (author, int(limit)),
            ).fetchall()
        return [self._row_to_post(row) for row in rows]

    def count_derived(self, parent_id: int) -> int:
        with self._connection() as conn:
            row = conn.execute("SELECT COUNT(*) AS total FROM ideas WHERE post_id = ?;", (parent_id,)).fetchone()
        return int(row["total"]) if row else 0

    def insert_parent(self, post: CandidatePost) -> int:
        try:
            with self._connection() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO posts (
                        external_id, community, title, body, author, url, permalink,
                        score, num_comments, created_utc, stored_utc
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
                    """,
                    (
                        post.external_id,
                        post.community,
                        post.title,
                        post.body,
                        post.author,
                        post.url,
                        post.permalink,
                        int(post.score),
                        int(post.num_comments),
                        float(post.created_utc),
                        int(time.time()),
                    ),
                )
                conn.commit()
                return int(cursor.lastrowid)
        except sqlite3.IntegrityError as exc:
            raise classify_integrity_error(exc) from exc
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc

    def insert_derived(self, record: ExtractedRecord) -> int:
        if record.parent_id is None:
            raise StorageError(f"{record.kind} record '{record.name}' has no parent post")
        try:
            with self._connection() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO ideas (post_id, kind, name, status, payload, full_analysis, stored_utc)
                    VALUES (?, ?, ?, ?, ?, ?, ?);
                    """,
                    (
                        record.parent_id,
                        record.kind,
                        record.name,
                        record.status.value,
                        json.dumps(record.payload(), ensure_ascii=False),
                        record.full_analysis,
                        int(time.time()),
                    ),
                )
                conn.commit()
                return int(cursor.lastrowid)
        except sqlite3.IntegrityError as exc:
            raise classify_integrity_error(exc) from exc
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc

    def fetch_ideas(self, kind: Optional[str] = None) -> List[dict]:
        """Return stored ideas with their payload decoded, oldest first."""

        query = "SELECT * FROM ideas"
        params: tuple = ()
        if kind:
            query += " WHERE kind = ?"
            params = (kind,)
        with self._connection() as conn:
            rows = conn.execute(query + " ORDER BY id;", params).fetchall()
        ideas = []
        for row in rows:
            entry = dict(row)
            entry["payload"] = json.loads(entry["payload"])
            ideas.append(entry)
        return ideas


__all__ = [
    "ConstraintError",
    "RecordStore",
    "SqliteRecordStore",
    "StorageError",
    "classify_integrity_error",
]
