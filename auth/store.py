"""
auth/store.py -- SQLAlchemy Core persistence layer for users and notification preferences.

Pattern: Repository + Data Mapper.
CredentialStore is the repository; _row_to_user / _row_to_preference are the
mappers. Route and service code never touches SQL directly.

Transactions:
  upsert() writes the user row and the preference row inside a single
  engine.begin() block. If either statement fails the whole transaction is
  rolled back before the method returns, so a half-written user (new name,
  old preferences, or a user with no preference row) is never observable.

Concurrency:
  Every read and write holds self._lock. SQLite allows one writer at a time
  anyway; the lock makes the queueing explicit and keeps the one-writer rule
  if the engine is swapped for a pooled server database.

Security:
  All queries use bound parameters. No f-strings in SQL.

Foreign key:
  notification_preference.user_uuid declares a FOREIGN KEY to users.uuid but
  SQLite does not enforce it (PRAGMA foreign_keys is left off). upsert() is
  the only writer and always writes both rows together, so orphans only
  appear if rows are edited outside this module.

Layer rule: no imports from api/ or notify/.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from sqlalchemy import Boolean, Column, ForeignKey, MetaData, String, Table, create_engine, event, make_url
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import SingletonThreadPool

from auth.models import NotificationPreference, User
from core.errors import FailureKind, Outcome

logger = logging.getLogger("appserver.store")

_DEFAULT_DB_URL = "sqlite:///./data/db/appserver.sqlite"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("uuid", String(64), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("email", String(320), nullable=False, unique=True),
)

_preferences = Table(
    "notification_preference",
    _metadata,
    Column("user_uuid", String(64), ForeignKey("users.uuid"), primary_key=True),
    Column("email_enabled", Boolean, nullable=False, server_default="1"),
    Column("html_email", Boolean, nullable=False, server_default="1"),
    Column("push_enabled", Boolean, nullable=False, server_default="0"),
    Column("language", String(16), nullable=False, server_default="en"),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block behind the writer."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _is_sqlite_memory(db_url: str) -> bool:
    """True for ":memory:" and shared-cache "file:name?mode=memory" databases."""
    url = make_url(db_url)
    if url.get_backend_name() != "sqlite":
        return False
    database = url.database or ""
    return database in ("", ":memory:") or url.query.get("mode") == "memory"


def _ensure_sqlite_dir(db_url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    url = make_url(db_url)
    database = url.database or ""
    if url.get_backend_name() != "sqlite" or not database:
        return
    if database == ":memory:" or database.startswith("file:"):
        return
    Path(database).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CredentialStore:
    """Repository for User and NotificationPreference entities.

    Usage:
        store = CredentialStore("sqlite:///./data/db/appserver.sqlite")
        store.upsert(User("u1", "Ada", "ada@example.com"), NotificationPreference("u1"))
        user = store.get_user("u1")
        prefs = store.get_preference("u1")
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        engine_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            _ensure_sqlite_dir(db_url)
        if _is_sqlite_memory(db_url):
            # One connection per thread keeps an in-memory database alive.
            engine_args["poolclass"] = SingletonThreadPool
        self.engine: Engine = create_engine(db_url, connect_args=connect_args, **engine_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        self._lock = threading.Lock()
        _metadata.create_all(self.engine)
        logger.info("Credential store initialized at %s", make_url(db_url).render_as_string(hide_password=True))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_user(self, uuid: str) -> User | None:
        """Look up a user by uuid. Returns None if not found or unreadable."""
        try:
            with self._lock, self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.uuid == uuid)).fetchone()
        except SQLAlchemyError as exc:
            logger.error("Reading user %s failed: %s", uuid, exc)
            return None
        return _row_to_user(row) if row is not None else None

    def get_preference(self, uuid: str) -> NotificationPreference:
        """Return the user's notification preference.

        A missing row is not an error: the default preference
        (email on, HTML on, push off, "en") is returned instead. A read error
        is logged and also softened to the default.
        """
        try:
            with self._lock, self.engine.connect() as conn:
                row = conn.execute(_preferences.select().where(_preferences.c.user_uuid == uuid)).fetchone()
        except SQLAlchemyError as exc:
            logger.error("Reading notification preference for %s failed: %s", uuid, exc)
            row = None
        if row is None:
            return NotificationPreference.default(uuid)
        return _row_to_preference(row)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert(self, user: User, preference: NotificationPreference) -> Outcome:
        """Insert or update a user and their preference in one transaction.

        The preference row is keyed by user.uuid regardless of
        preference.user_uuid. The user's uuid never changes; name and email
        are overwritten. An email already owned by another user violates the
        UNIQUE constraint and fails the whole upsert.

        Returns Outcome.success(), or a PERSISTENCE failure after rollback.
        """
        try:
            with self._lock, self.engine.begin() as conn:
                _write_user(conn, user)
                _write_preference(conn, user.uuid, preference)
        except SQLAlchemyError as exc:
            logger.error("Upsert of user %s rolled back: %s", user.uuid, exc)
            return Outcome.failure(FailureKind.PERSISTENCE, f"Failed to upsert user {user.uuid}: {exc}")
        logger.debug("Upserted user %s", user.uuid)
        return Outcome.success()

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Statement helpers -- run inside the caller's transaction
# ---------------------------------------------------------------------------


def _write_user(conn: Connection, user: User) -> None:
    result = conn.execute(
        _users.update().where(_users.c.uuid == user.uuid).values(name=user.name, email=user.email)
    )
    if result.rowcount == 0:
        conn.execute(_users.insert().values(uuid=user.uuid, name=user.name, email=user.email))


def _write_preference(conn: Connection, user_uuid: str, preference: NotificationPreference) -> None:
    values = {
        "email_enabled": preference.email_enabled,
        "html_email": preference.html_email,
        "push_enabled": preference.push_enabled,
        "language": preference.language,
    }
    result = conn.execute(_preferences.update().where(_preferences.c.user_uuid == user_uuid).values(**values))
    if result.rowcount == 0:
        conn.execute(_preferences.insert().values(user_uuid=user_uuid, **values))


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(uuid=row.uuid, name=row.name, email=row.email)


def _row_to_preference(row) -> NotificationPreference:
    return NotificationPreference(
        user_uuid=row.user_uuid,
        email_enabled=bool(row.email_enabled),
        html_email=bool(row.html_email),
        push_enabled=bool(row.push_enabled),
        language=row.language or "en",
    )
