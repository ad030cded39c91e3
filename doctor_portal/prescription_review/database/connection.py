"""Database connection manager for SQLite."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .schema import SCHEMA

DEFAULT_DB_PATH = Path(__file__).parent.parent / "portal.db"


class Datastore:
    """Handle to the portal database, passed explicitly into every operation."""

    def __init__(self, path: str | Path = DEFAULT_DB_PATH):
        self.path = Path(path)

    def connect(self) -> sqlite3.Connection:
        """Get a database connection with row factory enabled."""
        conn = sqlite3.connect(self.path, timeout=10)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection whose writes commit together or not at all."""
        conn = self.connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def reader(self) -> Iterator[sqlite3.Connection]:
        """Yield a short-lived connection for reads."""
        conn = self.connect()
        try:
            yield conn
        finally:
            conn.close()

    def init_schema(self) -> None:
        """Initialize the database with schema."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = self.connect()
        conn.executescript(SCHEMA)
        conn.commit()
        conn.close()

    def __repr__(self) -> str:
        return f"Datastore({str(self.path)!r})"
