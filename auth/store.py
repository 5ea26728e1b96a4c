"""
auth/store.py -- User directory contract and its two implementations.

Pattern: Repository + Data Mapper. UserDirectory is the async contract the
AuthenticationService depends on; _row_to_user is the mapper. Service code
never touches SQL directly.

  InMemoryUserDirectory -- dict-backed, for tests and ephemeral tooling.
  SqlUserDirectory      -- SQLAlchemy Core over any SQLAlchemy URL. Blocking
                           calls run in a worker thread via asyncio.to_thread
                           so the event loop never stalls on the database.

Uniqueness:
  The directory is the final arbiter of email uniqueness. The service's
  find_by_email() pre-check is best effort -- two concurrent registrations
  can both pass it. SqlUserDirectory relies on UNIQUE(email) and maps the
  resulting IntegrityError to ConflictError; InMemoryUserDirectory checks and
  inserts with no await in between, so the pair is atomic on one event loop.

Email matching is exact and case-sensitive in both implementations.

Security:
  All queries use bound parameters. No f-strings in SQL.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from typing import Protocol

from sqlalchemy import Boolean, Column, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.errors import ConflictError, NotFoundError
from auth.models import User

logger = logging.getLogger("accountauth.store")

# ---------------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------------


class UserDirectory(Protocol):
    """Async storage contract for User records.

    find/find_by_email return None for absence. insert/update raise
    ConflictError on a uniqueness violation; update raises NotFoundError when
    the record's user_id does not exist.
    """

    async def find_all(self) -> list[User]: ...

    async def find(self, user_id: int) -> User | None: ...

    async def find_by_email(self, email: str) -> User | None: ...

    async def insert(self, user: User) -> User: ...

    async def update(self, user: User) -> User: ...


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------


class InMemoryUserDirectory:
    """Dict-backed UserDirectory. Records are copied in and out so callers
    cannot mutate stored state behind the directory's back."""

    def __init__(self) -> None:
        self._users: dict[int, User] = {}
        self._next_id = 1

    async def find_all(self) -> list[User]:
        return [copy.copy(u) for u in sorted(self._users.values(), key=lambda u: u.email)]

    async def find(self, user_id: int) -> User | None:
        user = self._users.get(user_id)
        return copy.copy(user) if user is not None else None

    async def find_by_email(self, email: str) -> User | None:
        for user in self._users.values():
            if user.email == email:
                return copy.copy(user)
        return None

    async def insert(self, user: User) -> User:
        if any(u.email == user.email for u in self._users.values()):
            raise ConflictError("Email not valid.")
        user.user_id = self._next_id
        self._next_id += 1
        self._users[user.user_id] = copy.copy(user)
        return user

    async def update(self, user: User) -> User:
        if user.user_id not in self._users:
            raise NotFoundError(f"The user with the ID {user.user_id} was not found.")
        if any(u.email == user.email and uid != user.user_id for uid, u in self._users.items()):
            raise ConflictError("Email not valid.")
        self._users[user.user_id] = copy.copy(user)
        return user


# ---------------------------------------------------------------------------
# SQL schema
# ---------------------------------------------------------------------------

_DEFAULT_DB_URL = "sqlite:///accountauth.db"

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("user_id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(320), nullable=False, unique=True),
    Column("password", Text, nullable=False),  # bcrypt hash, never plaintext
    Column("is_admin", Boolean, nullable=False, default=False),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# SQL repository
# ---------------------------------------------------------------------------


class SqlUserDirectory:
    """UserDirectory backed by SQLAlchemy Core.

    Usage:
        directory = SqlUserDirectory("sqlite:///accountauth.db")
        user = await directory.insert(User(email="a@x.com", password=hashed))
        directory.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Async contract
    # ------------------------------------------------------------------

    async def find_all(self) -> list[User]:
        return await asyncio.to_thread(self._find_all)

    async def find(self, user_id: int) -> User | None:
        return await asyncio.to_thread(self._find, user_id)

    async def find_by_email(self, email: str) -> User | None:
        return await asyncio.to_thread(self._find_by_email, email)

    async def insert(self, user: User) -> User:
        user.user_id = await asyncio.to_thread(self._insert, user)
        return user

    async def update(self, user: User) -> User:
        await asyncio.to_thread(self._update, user)
        return user

    # ------------------------------------------------------------------
    # Blocking implementations
    # ------------------------------------------------------------------

    def _find_all(self) -> list[User]:
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.email)).fetchall()
        return [_row_to_user(r) for r in rows]

    def _find(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.user_id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def _find_by_email(self, email: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def _insert(self, user: User) -> int:
        """Insert and return the assigned user_id.

        UNIQUE(email) violations surface as ConflictError -- this is what
        settles a race between two registrations that both passed the
        service's pre-check.
        """
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(email=user.email, password=user.password, is_admin=user.is_admin)
                )
                conn.commit()
        except IntegrityError as exc:
            logger.info("Insert rejected by unique constraint")
            raise ConflictError("Email not valid.") from exc
        return result.inserted_primary_key[0]

    def _update(self, user: User) -> None:
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.update()
                    .where(_users.c.user_id == user.user_id)
                    .values(email=user.email, password=user.password, is_admin=user.is_admin)
                )
                conn.commit()
        except IntegrityError as exc:
            raise ConflictError("Email not valid.") from exc
        if result.rowcount == 0:
            raise NotFoundError(f"The user with the ID {user.user_id} was not found.")

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        user_id=row.user_id,
        email=row.email,
        password=row.password,
        is_admin=bool(row.is_admin),
    )
