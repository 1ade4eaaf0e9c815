"""
auth/store.py -- SQLAlchemy Core persistence layer for credential records.

Pattern: Repository + Data Mapper. CredentialStore is the repository;
_row_to_user is the mapper. AuthService and the routes never touch SQL.

Security:
  All queries use bound parameters. No f-strings in SQL.

  The UNIQUE constraint on Users.Username is the authoritative arbiter between
  racing registrations. There is no check-then-insert: two concurrent inserts
  of the same username both reach the database, one commits, the other gets
  IntegrityError, which is translated to DuplicateUsername.

Schema (stable on-disk contract):
  Users(Id INTEGER PRIMARY KEY AUTOINCREMENT, Username TEXT NOT NULL UNIQUE,
        Email TEXT NOT NULL, PasswordHash TEXT NOT NULL, Role TEXT NOT NULL)

Connections:
  Every method opens its connection in a `with` block, so it goes back to the
  pool on return and on every exception path. In-memory SQLite is the one
  exception to per-call connections: a plain :memory: database exists only
  inside the connection that created it, so those URLs get a single shared
  connection (StaticPool) and a lock that serializes every call on it.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import contextlib
import logging
import threading

from sqlalchemy import Column, Integer, MetaData, Table, Text, create_engine, event, func, select, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from auth.errors import DuplicateUsername, StorageUnavailable
from auth.models import UserRecord
from core.config import get_settings

logger = logging.getLogger("safevault.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "Users",
    _metadata,
    Column("Id", Integer, primary_key=True, autoincrement=True),
    Column("Username", Text, nullable=False, unique=True),
    Column("Email", Text, nullable=False),
    Column("PasswordHash", Text, nullable=False),
    Column("Role", Text, nullable=False),
    sqlite_autoincrement=True,  # emit AUTOINCREMENT so ids are never reused
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    WAL (Write-Ahead Logging) allows readers to proceed without blocking
    during writes. Set per-connection because SQLite PRAGMAs are not
    inherited by new connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _is_private_memory_db(db_url: str) -> bool:
    """True for sqlite:// and sqlite:///:memory: (but not named shared-cache URIs)."""
    url = make_url(db_url)
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CredentialStore:
    """Repository for UserRecord entities.

    Usage:
        store = CredentialStore("sqlite:///safevault.db")
        store.initialize()
        user_id = store.insert_user("alice", "alice@example.com", hasher.hash("pw"), "user")
        record = store.get_user_by_username("alice")
        store.close()
    """

    def __init__(self, db_url: str | None = None, timeout: float | None = None) -> None:
        settings = get_settings()
        db_url = db_url or settings.database_url
        timeout = timeout if timeout is not None else settings.database_timeout

        # hide_parameters keeps bound values (password hashes) out of error
        # messages and SQL echo logs.
        engine_kwargs: dict = {"hide_parameters": True}
        connect_args: dict = {}
        self._lock: threading.RLock | None = None
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            connect_args["timeout"] = timeout
            if _is_private_memory_db(db_url):
                engine_kwargs["poolclass"] = StaticPool
                self._lock = threading.RLock()
        self.engine: Engine = create_engine(db_url, connect_args=connect_args, **engine_kwargs)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        self.initialize()

    def _serialized(self):
        return self._lock if self._lock is not None else contextlib.nullcontext()

    def initialize(self) -> None:
        """Create the Users table if it does not exist. Safe to call on every startup.

        create_all() checks for the table first, which gives the same result as
        CREATE TABLE IF NOT EXISTS on every backend SQLAlchemy supports.
        """
        try:
            with self._serialized():
                _metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            logger.error("Schema initialization failed: %s", exc)
            raise StorageUnavailable("credential database unavailable") from exc

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert_user(self, username: str, email: str, password_hash: str, role: str) -> int:
        """Insert a new user and return its assigned database ID.

        The insert and commit run in one transaction; a failure rolls back and
        leaves no partial row. Raises DuplicateUsername if the username is
        taken and StorageUnavailable on any other database error.
        """
        if not password_hash:
            raise ValueError("password_hash must not be empty")
        if not role:
            raise ValueError("role must not be empty")
        try:
            with self._serialized(), self.engine.begin() as conn:
                result = conn.execute(
                    _users.insert().values(
                        Username=username,
                        Email=email,
                        PasswordHash=password_hash,
                        Role=role,
                    )
                )
                return result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise DuplicateUsername(username) from exc
        except SQLAlchemyError as exc:
            logger.error("Insert into Users failed: %s", exc)
            raise StorageUnavailable("credential database unavailable") from exc

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_user_by_username(self, username: str) -> UserRecord | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        query = select(_users).where(_users.c.Username == username).limit(1)
        return self._fetch_one(query)

    def get_user_by_id(self, user_id: int) -> UserRecord | None:
        """Look up a user by primary key. Returns None if not found."""
        return self._fetch_one(select(_users).where(_users.c.Id == user_id).limit(1))

    def count_users(self) -> int:
        try:
            with self._serialized(), self.engine.connect() as conn:
                result = conn.execute(select(func.count()).select_from(_users)).scalar()
        except SQLAlchemyError as exc:
            logger.error("Counting Users failed: %s", exc)
            raise StorageUnavailable("credential database unavailable") from exc
        return result or 0

    def check_connection(self) -> bool:
        """Run a trivial query to verify the database is reachable."""
        try:
            with self._serialized(), self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            logger.warning("Credential database health check failed", exc_info=True)
            return False

    def _fetch_one(self, query) -> UserRecord | None:
        try:
            with self._serialized(), self.engine.connect() as conn:
                row = conn.execute(query).fetchone()
        except SQLAlchemyError as exc:
            logger.error("Users lookup failed: %s", exc)
            raise StorageUnavailable("credential database unavailable") from exc
        return _row_to_user(row) if row is not None else None

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> UserRecord:
    return UserRecord(
        id=row.Id,
        username=row.Username,
        email=row.Email,
        password_hash=row.PasswordHash,
        role=row.Role,
    )
