"""
auth/ports.py -- Narrow persistence capabilities the auth core depends on.

Two backends implement these: auth/store.py (SQLAlchemy Core, SQLite or
PostgreSQL) and auth/memory.py (process-local dicts). The registry and the
service only ever see these Protocols.

Atomicity contract for RefreshTokenStore.rotate(): the delete of the old hash
and the insert of the replacement happen in one unit of work, and only when
the delete actually removed a row. Two concurrent rotations of the same hash
therefore produce at most one replacement. Implementations get this from the
backing store (a transaction, a lock), never from the caller.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from auth.models import CredentialRecord, Principal, RefreshTokenRecord


class CredentialStore(Protocol):
    def find_credential(self, handle: str) -> CredentialRecord | None: ...

    def insert_credential(self, handle: str, password_hash: str) -> str:
        """Persist a new account and return its principal id.

        Raises DuplicateCredential if the handle is already taken, including
        when a concurrent insert won the race after exists() returned False.
        """
        ...

    def exists(self, handle: str) -> bool: ...

    def get_principal(self, principal_id: str) -> Principal | None: ...


class RefreshTokenStore(Protocol):
    def insert(self, record: RefreshTokenRecord) -> None: ...

    def get_by_hash(self, token_hash: str) -> RefreshTokenRecord | None: ...

    def rotate(self, old_hash: str, replacement: RefreshTokenRecord) -> bool:
        """Delete old_hash and insert replacement atomically.

        Returns False (and inserts nothing) if old_hash had no record.
        """
        ...

    def delete_by_hash(self, token_hash: str) -> bool:
        """Delete a record. Returns True if one was removed."""
        ...

    def purge_expired(self, now: datetime) -> int:
        """Delete every record with expires_at < now. Returns the count."""
        ...
