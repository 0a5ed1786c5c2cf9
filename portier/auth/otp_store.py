"""One-time code storage for pending email challenges."""

from __future__ import annotations

import secrets
import threading
import time
from collections.abc import Callable
from typing import Protocol

import structlog

logger = structlog.get_logger(__name__)


def generate_code() -> str:
    """Return a 4-digit numeric code in 1000..9999."""
    return str(secrets.randbelow(9000) + 1000)


class OTPStore(Protocol):
    def issue(self, email: str) -> str: ...

    def verify(self, email: str, code: str) -> bool: ...


class InMemoryOTPStore:
    """Stores one outstanding code per email address.

    Codes are one-time-use: ``verify`` pops the entry under a lock, so of
    any number of concurrent verifications for one email at most one can
    succeed. Issuing again for the same email replaces the pending code.
    Expired entries are lazily cleaned on ``issue`` and ``verify``.
    """

    def __init__(
        self,
        ttl_seconds: int = 600,
        code_factory: Callable[[], str] = generate_code,
    ) -> None:
        self._ttl = ttl_seconds
        self._code_factory = code_factory
        self._store: dict[str, tuple[str, float]] = {}  # email -> (code, expires_at)
        self._lock = threading.Lock()

    def issue(self, email: str) -> str:
        """Generate, store and return a fresh code for ``email``."""
        code = self._code_factory()
        expires_at = time.time() + self._ttl if self._ttl > 0 else float("inf")
        with self._lock:
            self._cleanup()
            replaced = email in self._store
            self._store[email] = (code, expires_at)
        logger.debug("code_stored", mail=email, replaced=replaced)
        return code

    def verify(self, email: str, code: str) -> bool:
        """Consume the pending code for ``email``; True iff it matched."""
        with self._lock:
            self._cleanup()
            entry = self._store.pop(email, None)
        if entry is None:
            return False
        expected, expires_at = entry
        if time.time() > expires_at:
            return False
        return bool(code) and code == expected

    verify_and_consume = verify

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def _cleanup(self) -> None:
        """Remove expired entries. Caller holds the lock."""
        now = time.time()
        expired = [k for k, (_, exp) in self._store.items() if now > exp]
        for k in expired:
            del self._store[k]
