"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper. AuthStore is the repository and implements
both auth.ports.CredentialStore and auth.ports.RefreshTokenStore;
_row_to_credential / _row_to_refresh_token are the mappers. Service code never
touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.
  refresh_tokens holds HMAC digests only -- never the raw token.

Atomicity:
  rotate() runs delete-then-insert inside engine.begin(). The insert only
  happens when the delete removed exactly one row, so two concurrent rotations
  of the same token cannot both succeed. SQLite serializes writers; PostgreSQL
  takes a row lock on DELETE and the loser sees rowcount 0 once it is released.

Error mapping:
  IntegrityError on users.handle -> DuplicateCredential.
  Any other SQLAlchemyError is logged with the operation name and re-raised as
  StoreUnavailable, so driver error text never reaches the API layer.

Timestamps are stored as naive UTC DateTime and re-tagged with timezone.utc on
read.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, MetaData, String, Table, Text, create_engine, event, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import DuplicateCredential, StoreUnavailable
from auth.models import CredentialRecord, Principal, RefreshTokenRecord

logger = logging.getLogger("tokengate.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("handle", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("created_at", DateTime, nullable=False),
)

_refresh_tokens = Table(
    "refresh_tokens",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("principal_id", String(64), nullable=False, index=True),
    Column("token_hash", String(64), nullable=False, unique=True),  # HMAC-SHA256 hex
    Column("expires_at", DateTime, nullable=False, index=True),
    Column("created_at", DateTime, nullable=False),
)


# ---------------------------------------------------------------------------
# Engine helpers
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block on writers.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def create_store_engine(db_url: str) -> Engine:
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


def _to_db(value: datetime) -> datetime:
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _from_db(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception("Store failure during %s", operation)
        raise StoreUnavailable() from exc


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AuthStore:
    """Repository for credential and refresh token records.

    Usage:
        store = AuthStore("sqlite:///tokengate.db")
        principal_id = store.insert_credential("alice", hasher.hash("secret123"))
        record = store.find_credential("alice")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = create_store_engine(db_url)
        with _store_errors("create_schema"):
            metadata.create_all(self.engine)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.exception("Database health check failed")
            return False
        return True

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def find_credential(self, handle: str) -> CredentialRecord | None:
        """Look up an account by exact handle (case-sensitive)."""
        with _store_errors("find_credential"), self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.handle == handle)).fetchone()
        return _row_to_credential(row) if row is not None else None

    def exists(self, handle: str) -> bool:
        with _store_errors("exists"), self.engine.connect() as conn:
            row = conn.execute(select(users.c.id).where(users.c.handle == handle)).fetchone()
        return row is not None

    def insert_credential(self, handle: str, password_hash: str) -> str:
        """Insert a new account and return its id as a string.

        The UNIQUE constraint on handle is the final arbiter: a concurrent
        registration that slipped past exists() surfaces here as
        DuplicateCredential.
        """
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    users.insert().values(
                        handle=handle,
                        password_hash=password_hash,
                        created_at=_to_db(_now()),
                    )
                )
        except IntegrityError as exc:
            raise DuplicateCredential() from exc
        except SQLAlchemyError as exc:
            logger.exception("Store failure during insert_credential")
            raise StoreUnavailable() from exc
        return str(result.inserted_primary_key[0])

    def get_principal(self, principal_id: str) -> Principal | None:
        if not principal_id.isdigit():
            return None
        with _store_errors("get_principal"), self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.id == int(principal_id))).fetchone()
        return _row_to_credential(row).as_principal() if row is not None else None

    # ------------------------------------------------------------------
    # Refresh tokens
    # ------------------------------------------------------------------

    def insert(self, record: RefreshTokenRecord) -> None:
        with _store_errors("insert_refresh_token"), self.engine.begin() as conn:
            conn.execute(_refresh_tokens.insert().values(**_refresh_token_values(record)))

    def get_by_hash(self, token_hash: str) -> RefreshTokenRecord | None:
        """O(1) lookup via the UNIQUE index on token_hash."""
        with _store_errors("get_refresh_token"), self.engine.connect() as conn:
            row = conn.execute(_refresh_tokens.select().where(_refresh_tokens.c.token_hash == token_hash)).fetchone()
        return _row_to_refresh_token(row) if row is not None else None

    def rotate(self, old_hash: str, replacement: RefreshTokenRecord) -> bool:
        with _store_errors("rotate_refresh_token"), self.engine.begin() as conn:
            result = conn.execute(_refresh_tokens.delete().where(_refresh_tokens.c.token_hash == old_hash))
            if result.rowcount != 1:
                return False
            conn.execute(_refresh_tokens.insert().values(**_refresh_token_values(replacement)))
        return True

    def delete_by_hash(self, token_hash: str) -> bool:
        with _store_errors("delete_refresh_token"), self.engine.begin() as conn:
            result = conn.execute(_refresh_tokens.delete().where(_refresh_tokens.c.token_hash == token_hash))
        return result.rowcount > 0

    def purge_expired(self, now: datetime) -> int:
        with _store_errors("purge_refresh_tokens"), self.engine.begin() as conn:
            result = conn.execute(_refresh_tokens.delete().where(_refresh_tokens.c.expires_at < _to_db(now)))
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _refresh_token_values(record: RefreshTokenRecord) -> dict:
    return {
        "principal_id": record.principal_id,
        "token_hash": record.token_hash,
        "expires_at": _to_db(record.expires_at),
        "created_at": _to_db(record.created_at),
    }


def _row_to_credential(row) -> CredentialRecord:
    return CredentialRecord(
        id=str(row.id),
        handle=row.handle,
        password_hash=row.password_hash,
        created_at=_from_db(row.created_at),
    )


def _row_to_refresh_token(row) -> RefreshTokenRecord:
    return RefreshTokenRecord(
        principal_id=row.principal_id,
        token_hash=row.token_hash,
        expires_at=_from_db(row.expires_at),
        created_at=_from_db(row.created_at),
    )
