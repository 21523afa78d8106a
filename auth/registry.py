"""
auth/registry.py -- Revocable, hashed record of issued refresh tokens.

Every successful refresh rotates: the presented token's record is removed and
a new one is stored in the same unit of work. A replayed (already rotated)
token therefore fails with TokenNotFound, which is the signal a client can use
to detect that its token leaked.

Concurrency: the registry holds no lock. Two requests racing on the same raw
token both pass get_by_hash(), but only one store.rotate() removes a row; the
loser gets False back and raises TokenNotFound. The store's transaction is the
only synchronization point, so this holds across multiple service instances.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from auth.errors import TokenExpired, TokenNotFound
from auth.models import RefreshTokenRecord
from auth.ports import RefreshTokenStore
from auth.tokens import Clock, TokenIssuer, utcnow

logger = logging.getLogger("tokengate.auth")


class RefreshTokenRegistry:
    def __init__(
        self,
        store: RefreshTokenStore,
        issuer: TokenIssuer,
        ttl: timedelta,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._issuer = issuer
        self.ttl = ttl
        self._clock = clock

    def _record_for(self, principal_id: str, raw_token: str, ttl: timedelta) -> RefreshTokenRecord:
        now = self._clock()
        return RefreshTokenRecord(
            principal_id=principal_id,
            token_hash=self._issuer.digest(raw_token),
            expires_at=now + ttl,
            created_at=now,
        )

    def store(self, principal_id: str, raw_token: str, ttl: timedelta | None = None) -> None:
        """Persist the digest of raw_token for principal_id. raw_token itself is discarded."""
        self._store.insert(self._record_for(principal_id, raw_token, ttl or self.ttl))

    def issue(self, principal_id: str) -> str:
        """Generate, store and return a fresh refresh token."""
        raw_token = self._issuer.issue_refresh()
        self.store(principal_id, raw_token)
        return raw_token

    def validate_and_rotate(self, raw_token: str) -> tuple[str, str]:
        """Consume raw_token and return (principal_id, new_raw_token).

        Raises TokenNotFound if there is no record (never issued, revoked, or
        already rotated), TokenExpired if the record is past its expiry. An
        expired record is deleted on the way out.
        """
        token_hash = self._issuer.digest(raw_token)
        record = self._store.get_by_hash(token_hash)
        if record is None:
            raise TokenNotFound()

        if self._clock() > record.expires_at:
            self._store.delete_by_hash(token_hash)
            logger.info("Purged expired refresh token for principal %s", record.principal_id)
            raise TokenExpired()

        new_raw = self._issuer.issue_refresh()
        replacement = self._record_for(record.principal_id, new_raw, self.ttl)
        if not self._store.rotate(token_hash, replacement):
            # Lost the race: another request rotated this token first.
            logger.warning("Concurrent rotation of refresh token for principal %s", record.principal_id)
            raise TokenNotFound()
        return record.principal_id, new_raw

    def revoke(self, raw_token: str) -> None:
        """Delete the record for raw_token. Absence is not an error."""
        self._store.delete_by_hash(self._issuer.digest(raw_token))

    def purge_expired(self) -> int:
        return self._store.purge_expired(self._clock())
