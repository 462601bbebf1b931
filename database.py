import logging
import sqlite3
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Sequence

logger = logging.getLogger(__name__)

SCHEMA = """
    CREATE TABLE IF NOT EXISTS books (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        author TEXT NOT NULL,
        isbn TEXT,
        rating INTEGER CHECK (rating >= 1 AND rating <= 5),
        notes TEXT,
        date_read DATE,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );

    -- unique ISBN but allow multiple NULLs
    CREATE UNIQUE INDEX IF NOT EXISTS books_isbn_unique
    ON books (isbn)
    WHERE isbn IS NOT NULL;

    CREATE INDEX IF NOT EXISTS idx_books_date_read ON books(date_read);
    CREATE INDEX IF NOT EXISTS idx_books_created_at ON books(created_at);
"""


class ConstraintKind(str, Enum):
    UNIQUE = "unique"
    CHECK = "check"
    NOT_NULL = "not_null"
    FOREIGN_KEY = "foreign_key"
    OTHER = "other"


@dataclass(frozen=True)
class WriteSuccess:
    rowcount: int
    lastrowid: int | None = None


@dataclass(frozen=True)
class ConstraintViolation:
    kind: ConstraintKind
    column: str | None = None


@dataclass(frozen=True)
class WriteFailure:
    error: Exception


WriteResult = WriteSuccess | ConstraintViolation | WriteFailure


# SQLite reports constraint failures as e.g. "UNIQUE constraint failed: books.isbn"
_CONSTRAINT_PREFIXES = {
    "UNIQUE constraint failed": ConstraintKind.UNIQUE,
    "CHECK constraint failed": ConstraintKind.CHECK,
    "NOT NULL constraint failed": ConstraintKind.NOT_NULL,
    "FOREIGN KEY constraint failed": ConstraintKind.FOREIGN_KEY,
}


def classify_integrity_error(exc: sqlite3.IntegrityError) -> ConstraintViolation:
    """Map a sqlite IntegrityError to a ConstraintViolation.

    The column is the bare column name (``isbn``) when SQLite names one.
    """
    message = str(exc)
    for prefix, kind in _CONSTRAINT_PREFIXES.items():
        if message.startswith(prefix):
            detail = message[len(prefix):].lstrip(": ").strip()
            column = None
            if kind in (ConstraintKind.UNIQUE, ConstraintKind.NOT_NULL) and detail:
                # Composite keys are reported comma separated; keep the first.
                column = detail.split(",")[0].strip().rsplit(".", 1)[-1]
            return ConstraintViolation(kind=kind, column=column)
    return ConstraintViolation(kind=ConstraintKind.OTHER)


def _casefold(value: Any) -> Any:
    if value is None:
        return None
    return str(value).casefold()


class Database:
    """Thin accessor over a SQLite file.

    A new connection is opened for every operation so concurrent requests
    running in the threadpool never share one connection.
    """

    def __init__(self, db_file: str, timeout: float = 5.0) -> None:
        self.db_file = db_file
        self.timeout = timeout

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_file, timeout=self.timeout, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        # SQLite lower() only folds ASCII; search needs Unicode case folding
        conn.create_function("casefold", 1, _casefold, deterministic=True)
        # WAL lets readers proceed while a writer holds the lock
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        return conn

    def initialize(self) -> None:
        """Create the tables and indexes if they do not exist yet."""
        conn = self.connect()
        try:
            conn.executescript(SCHEMA)
            conn.commit()
        finally:
            conn.close()
        logger.info(f"Database schema ready: {self.db_file}")

    def query(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        """Run a parameterized SELECT and return the rows as dicts."""
        conn = self.connect()
        try:
            cursor = conn.execute(sql, tuple(params))
            return [dict(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def execute(self, sql: str, params: Sequence[Any] = ()) -> WriteResult:
        """Run a parameterized write and report the outcome as a WriteResult."""
        conn = self.connect()
        try:
            cursor = conn.execute(sql, tuple(params))
            conn.commit()
            return WriteSuccess(rowcount=cursor.rowcount, lastrowid=cursor.lastrowid)
        except sqlite3.IntegrityError as e:
            conn.rollback()
            violation = classify_integrity_error(e)
            logger.warning(f"Constraint violation ({violation.kind.value}, column={violation.column}): {e}")
            return violation
        except sqlite3.Error as e:
            conn.rollback()
            logger.exception("Database write failed")
            return WriteFailure(error=e)
        finally:
            conn.close()

    def ping(self) -> bool:
        """Lightweight connectivity check used by the health endpoint."""
        try:
            conn = self.connect()
            try:
                conn.execute("SELECT 1")
            finally:
                conn.close()
        except sqlite3.Error:
            return False
        return True
