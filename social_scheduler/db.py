from __future__ import annotations

import math
import sqlite3
import threading
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Any, Iterator, List, Optional, Sequence
from urllib.parse import urlparse

from social_scheduler.errors import ConfigurationError, Internal
from social_scheduler.schema import get_schema_sql


def _debug(msg: str) -> None:
    print(f"[db] {msg}")


def detect_dialect(dsn: str) -> str:
    """Return 'postgres' or 'sqlite'."""
    s = (dsn or "").strip()
    if not s:
        return "sqlite"
    try:
        scheme = urlparse(s).scheme.lower()
    except ValueError:
        scheme = ""
    if scheme in ("postgres", "postgresql"):
        return "postgres"
    # Allow sqlite:///path style, but default is file path.
    return "sqlite"


def redact_dsn(dsn: str) -> str:
    """Hide the password part of a connection URL before it is logged."""
    try:
        u = urlparse(dsn)
    except ValueError:
        return "<unparseable dsn>"
    if not u.password:
        return dsn
    netloc = u.netloc.replace(f":{u.password}@", ":***@")
    return u._replace(netloc=netloc).geturl()


def _qmark_to_pct(sql: str) -> str:
    """Convert SQLite qmark placeholders (?) to psycopg2 placeholders (%s).

    This is a lightweight conversion that avoids replacing '?' inside single/double-quoted
    string literals. It's not a full SQL parser, but it is sufficient for this codebase.
    """
    out: List[str] = []
    in_single = False
    in_double = False
    i = 0
    while i < len(sql):
        ch = sql[i]

        if ch == "'" and not in_double:
            out.append(ch)
            if in_single:
                # Escaped single quote: ''
                if i + 1 < len(sql) and sql[i + 1] == "'":
                    out.append("'")
                    i += 2
                    continue
                in_single = False
            else:
                in_single = True
            i += 1
            continue

        if ch == '"' and not in_single:
            out.append(ch)
            in_double = not in_double
            i += 1
            continue

        if ch == "?" and not in_single and not in_double:
            out.append("%s")
            i += 1
            continue

        out.append(ch)
        i += 1

    return "".join(out)


class PGCursor:
    def __init__(self, cur: Any):
        self._cur = cur

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> "PGCursor":
        self._cur.execute(_qmark_to_pct(sql), tuple(params or ()))
        return self

    def fetchone(self) -> Any:
        return self._cur.fetchone()

    def fetchall(self) -> Any:
        return self._cur.fetchall()

    @property
    def rowcount(self) -> int:
        return int(self._cur.rowcount or 0)

    def close(self) -> None:
        self._cur.close()


class PGConnection:
    """A tiny adapter that makes psycopg2 connections look like sqlite3 connections."""

    dialect = "postgres"

    def __init__(self, conn: Any):
        self._conn = conn

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> PGCursor:
        wrapper = PGCursor(self._conn.cursor())
        wrapper.execute(sql, params)
        return wrapper

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()


class PoolState(str, Enum):
    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    READY = "ready"


def _sqlite_path(dsn: str) -> str:
    path = (dsn or "").strip()
    # Support sqlite:///path style
    if path.lower().startswith("sqlite:///"):
        path = path[len("sqlite:///") :]
    return path


def _sqlite_usable(conn: Optional[sqlite3.Connection]) -> bool:
    if conn is None:
        return False
    try:
        conn.execute("SELECT 1").fetchone()
        return True
    except sqlite3.Error:
        return False


def _pg_usable(raw: Any) -> bool:
    if raw is None or raw.closed:
        return False
    try:
        cur = raw.cursor()
        cur.execute("SELECT 1")
        cur.fetchone()
        cur.close()
        raw.rollback()
        return True
    except Exception:  # psycopg2.Error, but psycopg2 is imported lazily
        return False


class Database:
    """Process-wide handle to the store.

    Lifecycle: uninitialized -> connecting -> ready, and back to uninitialized
    when a connection attempt fails or the cached connection turns out to be
    unusable. The first `connection()` call connects; later calls reuse the
    cached connection (SQLite) or pool (Postgres).

    - SQLite: one shared connection (WAL + NORMAL sync); callers are serialized
      by a lock, which matches SQLite's single-writer model anyway.
    - Postgres: psycopg2 ThreadedConnectionPool with RealDictCursor so rows
      behave like dicts.

    Connection attempts are bounded by `connect_timeout` seconds and surface as
    `Internal` errors instead of hanging.
    """

    def __init__(self, dsn: str, *, connect_timeout: float = 10.0, max_connections: int = 10):
        self.dsn = (dsn or "").strip()
        self.dialect = detect_dialect(self.dsn)
        self.connect_timeout = float(connect_timeout)
        self.max_connections = max(1, int(max_connections))
        self._state = PoolState.UNINITIALIZED
        self._lock = threading.RLock()
        self._sqlite: Optional[sqlite3.Connection] = None
        self._pg_pool: Any = None

    @property
    def state(self) -> PoolState:
        return self._state

    # -----------------------------
    # Lifecycle
    # -----------------------------

    def _ensure_ready(self) -> None:
        with self._lock:
            if self._state is PoolState.READY:
                return
            self._state = PoolState.CONNECTING
            _debug(f"Connecting ({self.dialect}) to {redact_dsn(self.dsn)}")
            try:
                if self.dialect == "postgres":
                    self._pg_pool = self._open_postgres()
                else:
                    self._sqlite = self._open_sqlite()
            except ConfigurationError:
                self._state = PoolState.UNINITIALIZED
                raise
            except Exception as e:
                self._state = PoolState.UNINITIALIZED
                _debug(f"Connection failed: {e}")
                raise Internal("Database unavailable", code="database_unavailable") from e
            self._state = PoolState.READY
            _debug("Connection ready")

    def _open_sqlite(self) -> sqlite3.Connection:
        path = _sqlite_path(self.dsn)
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(path, timeout=self.connect_timeout, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        conn.execute(f"PRAGMA busy_timeout={int(self.connect_timeout * 1000)};")
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def _open_postgres(self) -> Any:
        try:
            import psycopg2.extras
            import psycopg2.pool
        except ImportError as e:
            raise ConfigurationError(
                "Postgres selected but psycopg2 is not installed. "
                "Install psycopg2-binary and try again."
            ) from e

        return psycopg2.pool.ThreadedConnectionPool(
            1,
            self.max_connections,
            self.dsn,
            connect_timeout=max(1, int(math.ceil(self.connect_timeout))),
            cursor_factory=psycopg2.extras.RealDictCursor,
        )

    def reset(self) -> None:
        """Drop the cached connection/pool. The next use reconnects."""
        with self._lock:
            if self._sqlite is not None:
                try:
                    self._sqlite.close()
                except sqlite3.Error as e:
                    _debug(f"Ignoring error while closing sqlite connection: {e}")
                self._sqlite = None
            if self._pg_pool is not None:
                try:
                    self._pg_pool.closeall()
                except Exception as e:  # psycopg2.pool.PoolError when already closed
                    _debug(f"Ignoring error while closing pool: {e}")
                self._pg_pool = None
            if self._state is not PoolState.UNINITIALIZED:
                _debug("Connection reset")
            self._state = PoolState.UNINITIALIZED

    close = reset

    # -----------------------------
    # Checkout
    # -----------------------------

    @contextmanager
    def connection(self) -> Iterator[Any]:
        """Yield a connection; commit on success, roll back on error."""
        if self.dialect == "postgres":
            with self._postgres_connection() as conn:
                yield conn
        else:
            with self._sqlite_connection() as conn:
                yield conn

    @contextmanager
    def _sqlite_connection(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            self._ensure_ready()
            if not _sqlite_usable(self._sqlite):
                _debug("Cached connection unusable; reconnecting")
                self.reset()
                self._ensure_ready()
            conn = self._sqlite
            assert conn is not None
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def _getconn(self) -> Any:
        self._ensure_ready()
        try:
            return self._pg_pool.getconn()
        except Exception as e:
            _debug(f"Could not check out a connection: {e}")
            self.reset()
            raise Internal("Database unavailable", code="database_unavailable") from e

    @contextmanager
    def _postgres_connection(self) -> Iterator[PGConnection]:
        raw = self._getconn()
        pool = self._pg_pool
        if not _pg_usable(raw):
            _debug("Pooled connection unusable; replacing")
            pool.putconn(raw, close=True)
            raw = self._getconn()
            pool = self._pg_pool

        conn = PGConnection(raw)
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            pool.putconn(raw, close=bool(raw.closed))


def init_db(db: Database) -> None:
    """Create all tables and run lightweight migrations."""
    _debug(f"Initializing DB ({db.dialect}) at {redact_dsn(db.dsn)}")
    with db.connection() as conn:
        schema_sql = get_schema_sql(db.dialect)
        # Ensure only one process runs schema DDL at a time.
        # - Postgres: use an advisory lock.
        # - SQLite: DDL already takes an exclusive database lock; don't call pg_* functions.
        if db.dialect == "postgres":
            conn.execute("SELECT pg_advisory_lock(2147483646);")
            try:
                _exec_schema(conn, schema_sql, dialect=db.dialect)
            finally:
                conn.execute("SELECT pg_advisory_unlock(2147483646);")
        else:
            _exec_schema(conn, schema_sql, dialect=db.dialect)

        _migrate(conn, dialect=db.dialect)


def _exec_schema(conn: Any, ddl: str, *, dialect: str) -> None:
    if dialect == "postgres":
        # Execute multi-statement DDL (naive split is OK for our schema)
        statements = [s.strip() for s in ddl.split(";") if s.strip()]
        for stmt in statements:
            conn.execute(stmt)
        return

    # SQLite can run it in one go
    conn.executescript(ddl)


def _has_column(conn: Any, table: str, col: str, *, dialect: str) -> bool:
    if dialect == "postgres":
        r = conn.execute(
            """
            SELECT 1
            FROM information_schema.columns
            WHERE table_schema='public'
              AND table_name=?
              AND column_name=?
            LIMIT 1
            """,
            (table, col),
        ).fetchone()
        return r is not None

    rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
    return any(r["name"] == col for r in rows)


def _migrate(conn: Any, *, dialect: str) -> None:
    """Lightweight forward-only migrations for existing DBs."""
    # users.last_login_at arrived after the first schema.
    if not _has_column(conn, "users", "last_login_at", dialect=dialect):
        conn.execute("ALTER TABLE users ADD COLUMN last_login_at TEXT")

    # posts.media: optional externally hosted media URL (empty string when absent).
    if not _has_column(conn, "posts", "media", dialect=dialect):
        conn.execute("ALTER TABLE posts ADD COLUMN media TEXT NOT NULL DEFAULT ''")
