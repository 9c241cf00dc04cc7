"""Database utilities shared by the marketplace ledgers."""

from __future__ import annotations

import os
import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, NamedTuple, Optional, Sequence

try:  # Optional dependency for production Postgres deployments.
    import psycopg  # type: ignore[import-not-found]
except ImportError:  # pragma: no cover - psycopg is optional for tests
    psycopg = None  # type: ignore

DEFAULT_DATABASE_URL = "sqlite:///storage/marketplace.db"
MIGRATION_TABLE = "marketplace_schema_migrations"
_MEMORY_PATHS = {"", ":memory:", "memory"}


class DatabaseError(RuntimeError):
    """Raised when the database backend cannot be initialised or misused."""


class StoreLocation(NamedTuple):
    driver: str
    dsn: str

    @property
    def in_memory(self) -> bool:
        return self.driver == "sqlite" and self.dsn == ":memory:"


def parse_database_url(url: str) -> StoreLocation:
    """Map a ``sqlite://`` or ``postgresql://`` URL onto a driver and DSN.

    ``sqlite:///rel.db`` is relative to the working directory,
    ``sqlite:////abs.db`` is absolute and ``sqlite://`` is an in-memory store.
    """

    url = url.strip()
    if not url:
        raise DatabaseError("Empty database URL")
    if url.startswith("sqlite://"):
        path = url[len("sqlite://"):]
        if path.startswith("/"):
            path = path[1:]
        return StoreLocation("sqlite", ":memory:" if path in _MEMORY_PATHS else path)
    if url.startswith(("postgresql://", "postgres://")):
        if psycopg is None:
            raise DatabaseError("psycopg is required for PostgreSQL connections")
        return StoreLocation("postgres", url)
    raise DatabaseError(f"Unsupported database URL: {url}")


class Database:
    """One connection over which ledger operations run strictly one at a time.

    :meth:`transaction` is the only way to obtain a cursor. Transactions do
    not nest: opening one while the same thread already holds one raises
    :class:`DatabaseError` instead of letting an inner commit publish the
    outer operation's partial writes.
    """

    def __init__(self, url: str | None = None) -> None:
        self._url = url or os.environ.get("MARKETPLACE_DATABASE_URL", DEFAULT_DATABASE_URL)
        self._location = parse_database_url(self._url)
        self._lock = threading.Lock()
        self._local = threading.local()
        self._conn = self._open()
        self._closed = False

    def _open(self):
        if self._location.driver == "postgres":
            if psycopg is None:
                raise DatabaseError("psycopg is required for PostgreSQL connections")
            return psycopg.connect(self._location.dsn)  # type: ignore[no-any-return]
        if self._location.in_memory:
            target = ":memory:"
        else:
            db_path = Path(self._location.dsn)
            if not db_path.is_absolute():
                db_path = Path.cwd() / db_path
            db_path.parent.mkdir(parents=True, exist_ok=True)
            target = str(db_path)
        # Transactions are opened explicitly by ``transaction()``.
        conn = sqlite3.connect(target, check_same_thread=False, isolation_level=None)
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @property
    def driver(self) -> str:
        return self._location.driver

    @property
    def url(self) -> str:
        return self._url

    @property
    def in_transaction(self) -> bool:
        """Whether the calling thread currently holds an open transaction."""

        return getattr(self._local, "active", False)

    def placeholder(self) -> str:
        return "%s" if self.driver == "postgres" else "?"

    def close(self) -> None:
        with self._lock:
            if not self._closed:
                self._conn.close()
                self._closed = True

    @contextmanager
    def transaction(self) -> Iterator[object]:
        """Yield a cursor for one atomic unit of work.

        Everything executed through the cursor commits when the block exits
        cleanly and is rolled back when it raises.
        """

        if self.in_transaction:
            raise DatabaseError("transaction() does not nest; pass the open cursor instead")
        with self._lock:
            if self._closed:
                raise DatabaseError("Database connection already closed")
            self._local.active = True
            cursor = self._conn.cursor()
            try:
                if self.driver == "sqlite":
                    cursor.execute("BEGIN IMMEDIATE")
                yield cursor
            except BaseException:
                self._finish(cursor, "ROLLBACK")
                raise
            else:
                self._finish(cursor, "COMMIT")
            finally:
                cursor.close()
                self._local.active = False

    def _finish(self, cursor, statement: str) -> None:
        if self.driver == "sqlite":
            if self._conn.in_transaction:
                cursor.execute(statement)
        elif statement == "COMMIT":
            self._conn.commit()
        else:
            self._conn.rollback()

    # ------------------------------------------------------------------
    # Schema migrations
    def applied_versions(self, *, table: str = MIGRATION_TABLE) -> list[str]:
        with self.transaction() as cur:
            self._ensure_migration_table(cur, table)
            cur.execute(f"SELECT version FROM {table} ORDER BY version")
            return [row[0] for row in cur.fetchall()]

    def run_migrations(self, migrations: Sequence["Migration"], *, table: str = MIGRATION_TABLE) -> list[str]:
        """Apply pending migrations in version order; return the versions applied."""

        versions = [migration.version for migration in migrations]
        if len(set(versions)) != len(versions):
            raise DatabaseError(f"Duplicate migration versions: {versions}")
        applied = set(self.applied_versions(table=table))
        placeholder = self.placeholder()
        newly_applied: list[str] = []
        for migration in sorted(migrations, key=lambda item: item.version):
            if migration.version in applied:
                continue
            with self.transaction() as cur:
                migration.upgrade(cur, self.driver)
                cur.execute(
                    f"INSERT INTO {table} (version, applied_at) VALUES ({placeholder}, {placeholder})",
                    (migration.version, time.time()),
                )
            newly_applied.append(migration.version)
        return newly_applied

    def _ensure_migration_table(self, cur, table: str) -> None:
        column_type = "DOUBLE PRECISION" if self.driver == "postgres" else "REAL"
        cur.execute(
            f"CREATE TABLE IF NOT EXISTS {table} (version TEXT PRIMARY KEY, applied_at {column_type} NOT NULL)"
        )


class Migration:
    """Schema step identified by a sortable ``version`` string."""

    version: str

    def upgrade(self, cursor, driver: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError


_DATABASE_SINGLETON: Optional[Database] = None
_DATABASE_LOCK = threading.Lock()


def get_database(url: str | None = None) -> Database:
    """Return the process-wide marketplace store, migrating it on first use."""

    global _DATABASE_SINGLETON
    with _DATABASE_LOCK:
        if _DATABASE_SINGLETON is None:
            from backend.migrations import MIGRATIONS

            database = Database(url)
            database.run_migrations(MIGRATIONS)
            _DATABASE_SINGLETON = database
        return _DATABASE_SINGLETON


def set_database(database: Database | None) -> None:
    """Replace the process-wide store, closing the previous one."""

    global _DATABASE_SINGLETON
    with _DATABASE_LOCK:
        previous, _DATABASE_SINGLETON = _DATABASE_SINGLETON, database
    if previous is not None and previous is not database:
        previous.close()


__all__ = [
    "DEFAULT_DATABASE_URL",
    "Database",
    "DatabaseError",
    "MIGRATION_TABLE",
    "Migration",
    "StoreLocation",
    "get_database",
    "set_database",
    "parse_database_url",
]
