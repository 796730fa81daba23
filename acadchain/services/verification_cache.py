# services/verification_cache.py
import logging
import time
from dataclasses import replace
from datetime import timedelta
from typing import Callable, Dict, Optional

from ..models import VerificationCacheEntry, VerificationResult

DEFAULT_TTL = timedelta(hours=24)


class VerificationCache:
    """
    Time-bounded memo of verification results keyed by fingerprint.

    Results are optimistic: a fresher ledger read always wins over a cached
    answer, and entries are evicted lazily when read after expiry.
    """

    def __init__(self, ttl: timedelta = DEFAULT_TTL, clock: Callable[[], float] = time.time):
        self.logger = logging.getLogger("VerificationCache")
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, VerificationCacheEntry] = {}

    def lookup(self, fingerprint: str) -> Optional[VerificationResult]:
        """Returns the cached result flagged as from_cache, or None on a miss"""
        entry = self._entries.get(fingerprint)
        if entry is None:
            return None

        if entry.is_expired(self._clock()):
            self._entries = {k: v for k, v in self._entries.items() if k != fingerprint}
            self.logger.debug(f"Expired cache entry purged: {fingerprint}")
            return None

        return replace(entry.result, from_cache=True)

    def store(self, fingerprint: str, result: VerificationResult) -> VerificationCacheEntry:
        now = self._clock()
        entry = VerificationCacheEntry(
            fingerprint=fingerprint,
            result=result,
            cached_at=now,
            expires_at=now + self.ttl.total_seconds(),
        )
        self._entries = {**self._entries, fingerprint: entry}
        return entry

    def invalidate(self, fingerprint: str) -> bool:
        if fingerprint not in self._entries:
            return False
        self._entries = {k: v for k, v in self._entries.items() if k != fingerprint}
        return True

    def clear(self) -> None:
        self._entries = {}

    def stats(self) -> Dict[str, float]:
        now = self._clock()
        expired = sum(1 for entry in self._entries.values() if entry.is_expired(now))
        return {
            "total": len(self._entries),
            "valid": len(self._entries) - expired,
            "expired": expired,
            "ttl_hours": self.ttl.total_seconds() / 3600,
        }
