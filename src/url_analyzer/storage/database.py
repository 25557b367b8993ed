"""SQLite storage for analysis records and their tags."""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Iterable

from ..errors import StoreConflictError
from .models import AnalysisRecord, AnalysisStatus, ContentTag, ContentType

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
-- One row per analyzed URL
CREATE TABLE IF NOT EXISTS analyzed_urls (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    url TEXT UNIQUE NOT NULL,
    title TEXT,
    content TEXT,
    summary TEXT,
    word_count INTEGER,
    analysis_date TEXT,
    status TEXT NOT NULL DEFAULT 'pending'
        CHECK (status IN ('pending', 'completed', 'failed')),
    error_message TEXT,
    content_type TEXT,
    language TEXT,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

-- Tags produced by the summarizer, owned by an analysis
CREATE TABLE IF NOT EXISTS content_tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    url_id INTEGER NOT NULL REFERENCES analyzed_urls(id) ON DELETE CASCADE,
    tag TEXT NOT NULL,
    confidence REAL,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

-- Indexes
CREATE INDEX IF NOT EXISTS idx_analyzed_urls_status ON analyzed_urls(status);
CREATE INDEX IF NOT EXISTS idx_analyzed_urls_content_type ON analyzed_urls(content_type);
CREATE INDEX IF NOT EXISTS idx_analyzed_urls_created_at ON analyzed_urls(created_at);
CREATE INDEX IF NOT EXISTS idx_content_tags_url_id ON content_tags(url_id);
CREATE INDEX IF NOT EXISTS idx_content_tags_tag ON content_tags(tag);
CREATE INDEX IF NOT EXISTS idx_content_tags_confidence ON content_tags(confidence);
"""

RECORD_COLUMNS = (
    "url",
    "title",
    "content",
    "summary",
    "word_count",
    "analysis_date",
    "status",
    "error_message",
    "content_type",
    "language",
    "created_at",
    "updated_at",
)


def _like_pattern(text: str) -> str:
    """Build a LIKE pattern matching text as a literal substring."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class Database:
    """SQLite database operations for analysis storage."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._init_schema()

    @contextmanager
    def _connection(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def _init_schema(self) -> None:
        """Initialize database schema."""
        with self._connection() as conn:
            conn.executescript(SCHEMA_SQL)

    # ---- Records ----

    def get_by_url(self, url: str) -> AnalysisRecord | None:
        """Get the record for a URL."""
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM analyzed_urls WHERE url = ?", (url,)
            ).fetchone()
            return self._row_to_record(row) if row else None

    def get_by_id(self, record_id: int) -> AnalysisRecord | None:
        """Get a record by ID."""
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM analyzed_urls WHERE id = ?", (record_id,)
            ).fetchone()
            return self._row_to_record(row) if row else None

    def insert_record(self, record: AnalysisRecord) -> AnalysisRecord:
        """Insert a new record and return it with its assigned ID.

        Raises StoreConflictError if a record for the same URL exists.
        """
        values = self._record_values(record)
        columns = [c for c in RECORD_COLUMNS if values[c] is not None]
        placeholders = ", ".join("?" * len(columns))

        try:
            with self._connection() as conn:
                cursor = conn.execute(
                    f"INSERT INTO analyzed_urls ({', '.join(columns)}) "
                    f"VALUES ({placeholders})",
                    [values[c] for c in columns],
                )
                row = conn.execute(
                    "SELECT * FROM analyzed_urls WHERE id = ?", (cursor.lastrowid,)
                ).fetchone()
        except sqlite3.IntegrityError as e:
            raise StoreConflictError(
                f"An analysis for {record.url} already exists"
            ) from e

        return self._row_to_record(row)

    def update_record(self, record: AnalysisRecord) -> AnalysisRecord:
        """Overwrite every mutable column of an existing record."""
        if record.id is None:
            raise ValueError("Cannot update a record without an id")

        values = self._record_values(record)
        columns = [c for c in RECORD_COLUMNS if c not in ("url", "created_at")]
        assignments = ", ".join(f"{c} = ?" for c in columns)

        with self._connection() as conn:
            conn.execute(
                f"UPDATE analyzed_urls SET {assignments} WHERE id = ?",
                [values[c] for c in columns] + [record.id],
            )
        return record

    def delete_record(self, record_id: int) -> bool:
        """Delete a record and, through the foreign key, its tags."""
        with self._connection() as conn:
            cursor = conn.execute(
                "DELETE FROM analyzed_urls WHERE id = ?", (record_id,)
            )
            return cursor.rowcount > 0

    def list_records(
        self,
        page: int = 1,
        per_page: int = 20,
        status: AnalysisStatus | None = None,
        content_type: ContentType | None = None,
        search: str | None = None,
        language: str | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
    ) -> tuple[list[AnalysisRecord], int]:
        """Get paginated records with filters, newest first. Returns (records, total_count)."""
        conditions = []
        params: list = []

        if status:
            conditions.append("status = ?")
            params.append(status.value)

        if content_type:
            conditions.append("content_type = ?")
            params.append(content_type.value)

        if search:
            conditions.append("content LIKE ? ESCAPE '\\'")
            params.append(_like_pattern(search))

        if language:
            conditions.append("language = ?")
            params.append(language)

        # Timestamps are ISO-8601 strings, so lexical order is chronological
        if date_from:
            conditions.append("created_at >= ?")
            params.append(date_from)

        if date_to:
            conditions.append("created_at <= ?")
            params.append(date_to)

        where_clause = " AND ".join(conditions) if conditions else "1=1"
        offset = (max(page, 1) - 1) * per_page

        with self._connection() as conn:
            total = conn.execute(
                f"SELECT COUNT(*) FROM analyzed_urls WHERE {where_clause}", params
            ).fetchone()[0]

            rows = conn.execute(
                f"""
                SELECT * FROM analyzed_urls
                WHERE {where_clause}
                ORDER BY created_at DESC, id DESC
                LIMIT ? OFFSET ?
                """,
                params + [per_page, offset],
            ).fetchall()

            return [self._row_to_record(row) for row in rows], total

    # ---- Tags ----

    def add_tags(
        self,
        record_id: int,
        tags: Iterable[str],
        confidence: float,
        created_at: str,
    ) -> None:
        """Attach tags to a record. Repeated tags are kept."""
        with self._connection() as conn:
            conn.executemany(
                """
                INSERT INTO content_tags (url_id, tag, confidence, created_at)
                VALUES (?, ?, ?, ?)
                """,
                [(record_id, tag, confidence, created_at) for tag in tags],
            )

    def get_tags(self, record_id: int) -> list[ContentTag]:
        """Get all tags for a record in insertion order."""
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM content_tags WHERE url_id = ? ORDER BY id",
                (record_id,),
            ).fetchall()
            return [
                ContentTag(
                    id=r["id"],
                    url_id=r["url_id"],
                    tag=r["tag"],
                    confidence=r["confidence"],
                    created_at=r["created_at"],
                )
                for r in rows
            ]

    def get_tag_counts(
        self, min_confidence: float = 0.0, limit: int = 50
    ) -> list[tuple[str, int]]:
        """Get tag names with their occurrence counts, most frequent first."""
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT tag, COUNT(*) AS count
                FROM content_tags
                WHERE confidence >= ?
                GROUP BY tag
                ORDER BY count DESC, tag ASC
                LIMIT ?
                """,
                (min_confidence, limit),
            ).fetchall()
            return [(r["tag"], r["count"]) for r in rows]

    def get_stats(self) -> dict:
        """Get database statistics."""
        with self._connection() as conn:
            total = conn.execute("SELECT COUNT(*) FROM analyzed_urls").fetchone()[0]
            by_status = dict(
                conn.execute(
                    "SELECT status, COUNT(*) FROM analyzed_urls GROUP BY status"
                ).fetchall()
            )
            tagged = conn.execute(
                "SELECT COUNT(DISTINCT url_id) FROM content_tags"
            ).fetchone()[0]

            return {
                "total": total,
                "completed": by_status.get(AnalysisStatus.COMPLETED.value, 0),
                "pending": by_status.get(AnalysisStatus.PENDING.value, 0),
                "failed": by_status.get(AnalysisStatus.FAILED.value, 0),
                "tagged": tagged,
            }

    # ---- Row mapping ----

    def _record_values(self, record: AnalysisRecord) -> dict:
        return {
            "url": record.url,
            "title": record.title,
            "content": record.content,
            "summary": record.summary,
            "word_count": record.word_count,
            "analysis_date": record.analysis_date,
            "status": record.status.value,
            "error_message": record.error_message,
            "content_type": record.content_type.value if record.content_type else None,
            "language": record.language,
            "created_at": record.created_at,
            "updated_at": record.updated_at,
        }

    def _row_to_record(self, row: sqlite3.Row) -> AnalysisRecord:
        """Convert database row to AnalysisRecord."""
        return AnalysisRecord(
            id=row["id"],
            url=row["url"],
            title=row["title"],
            content=row["content"],
            summary=row["summary"],
            word_count=row["word_count"],
            analysis_date=row["analysis_date"],
            status=AnalysisStatus(row["status"]),
            error_message=row["error_message"],
            content_type=ContentType(row["content_type"]) if row["content_type"] else None,
            language=row["language"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
