"""
auth/store.py -- SQLAlchemy Core persistence layer for user records.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Service and route code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Email uniqueness is a UNIQUE constraint on the column, not a lookup before
  the insert. Two concurrent registrations for one address both reach
  INSERT; the database lets exactly one through and the other surfaces as
  IntegrityError, which create_user() turns into AuthError(DUPLICATE). Any
  other IntegrityError (a NOT NULL column, say) propagates unchanged.

Callers pass emails already normalized (auth.validation.normalize_email).
The store compares them byte-for-byte.

DB path: auth/authgate.db by default (Settings.database_url overrides).

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.errors import AuthError, ErrorKind
from auth.models import User

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
)

_UPDATABLE_FIELDS = frozenset({"email", "password_hash"})


def _is_email_conflict(exc: IntegrityError) -> bool:
    """True when exc is the UNIQUE(email) violation and not some other constraint."""
    message = str(exc.orig).lower()
    return ("unique" in message or "duplicate" in message) and "email" in message


# ---------------------------------------------------------------------------
# SQLite connection setup
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL and a busy timeout on every new SQLite connection.

    WAL lets readers proceed while a registration is writing. The busy
    timeout makes a second concurrent writer wait for the lock instead of
    failing immediately with "database is locked".
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore("sqlite:///auth.db")
        user = store.create_user("a@test.com", hasher.hash("secret1"))
        same = store.get_by_email("a@test.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_sqlite_pragmas)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Core lookups
    # ------------------------------------------------------------------

    def create_user(self, email: str, password_hash: str) -> User:
        """Insert a user and return it with id and created_at filled in.

        Raises AuthError(DUPLICATE) if the email is already registered.
        """
        created_at = _now_iso()
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    _users.insert().values(email=email, password_hash=password_hash, created_at=created_at)
                )
                user_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            if not _is_email_conflict(exc):
                raise
            raise AuthError(ErrorKind.DUPLICATE, "User already exists", code="email_exists") from exc
        return User(id=user_id, email=email, password_hash=password_hash, created_at=created_at)

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact (normalized) email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    # ------------------------------------------------------------------
    # Administrative conveniences (outside the login/verify path)
    # ------------------------------------------------------------------

    def list_users(self, limit: int = 50, offset: int = 0) -> list[User]:
        """Return users newest first, paged."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _users.select().order_by(_users.c.created_at.desc(), _users.c.id.desc()).limit(limit).offset(offset)
            ).fetchall()
        return [_row_to_user(r) for r in rows]

    def count_users(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return result or 0

    def update_user(self, user_id: int, **fields) -> bool:
        """Update email and/or password_hash.

        Unknown field names raise ValueError. Returns True if a row changed,
        False if user_id does not exist. Raises AuthError(DUPLICATE) when the
        new email belongs to someone else.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {sorted(unknown)!r}")
        if not fields:
            return False
        try:
            with self.engine.begin() as conn:
                result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
        except IntegrityError as exc:
            if not _is_email_conflict(exc):
                raise
            raise AuthError(ErrorKind.DUPLICATE, "User already exists", code="email_exists") from exc
        return result.rowcount > 0

    def delete_user(self, user_id: int) -> bool:
        """Permanently delete a user. Outstanding tokens stop verifying on next use."""
        with self.engine.begin() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
        return result.rowcount > 0

    def ping(self) -> bool:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        created_at=row.created_at,
    )
