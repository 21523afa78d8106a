"""
auth/memory.py -- Process-local implementations of the auth persistence ports.

Useful for unit tests and single-process demos. Each store guards its dicts
with its own lock; that lock plays the role the database transaction plays in
auth/store.py. State is lost on restart and is not shared between processes.
"""

from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone

from auth.errors import DuplicateCredential
from auth.models import CredentialRecord, Principal, RefreshTokenRecord


class MemoryCredentialStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_handle: dict[str, CredentialRecord] = {}
        self._by_id: dict[str, CredentialRecord] = {}

    def find_credential(self, handle: str) -> CredentialRecord | None:
        with self._lock:
            return self._by_handle.get(handle)

    def exists(self, handle: str) -> bool:
        with self._lock:
            return handle in self._by_handle

    def insert_credential(self, handle: str, password_hash: str) -> str:
        record = CredentialRecord(
            id=uuid.uuid4().hex,
            handle=handle,
            password_hash=password_hash,
            created_at=datetime.now(timezone.utc),
        )
        with self._lock:
            if handle in self._by_handle:
                raise DuplicateCredential()
            self._by_handle[handle] = record
            self._by_id[record.id] = record
        return record.id

    def get_principal(self, principal_id: str) -> Principal | None:
        with self._lock:
            record = self._by_id.get(principal_id)
        return record.as_principal() if record is not None else None


class MemoryRefreshTokenStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, RefreshTokenRecord] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def insert(self, record: RefreshTokenRecord) -> None:
        with self._lock:
            self._records[record.token_hash] = record

    def get_by_hash(self, token_hash: str) -> RefreshTokenRecord | None:
        with self._lock:
            return self._records.get(token_hash)

    def rotate(self, old_hash: str, replacement: RefreshTokenRecord) -> bool:
        with self._lock:
            if self._records.pop(old_hash, None) is None:
                return False
            self._records[replacement.token_hash] = replacement
        return True

    def delete_by_hash(self, token_hash: str) -> bool:
        with self._lock:
            return self._records.pop(token_hash, None) is not None

    def purge_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [h for h, r in self._records.items() if r.expires_at < now]
            for token_hash in expired:
                del self._records[token_hash]
        return len(expired)
