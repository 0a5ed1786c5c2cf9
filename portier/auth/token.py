"""Stateless session tokens: ``<expiry-hex>.<signature-hex>``.

The signature is an HMAC over the hex-encoded expiry only, so a token is a
time-bounded capability: whoever holds an unexpired token is authenticated.
Nothing is stored server side and there is no revocation.
"""

from __future__ import annotations

import hashlib
import hmac
import re
import time
from typing import Any

_HEX = re.compile(r"[0-9a-fA-F]+")


class TokenCodec:
    """Issues and verifies signed session tokens for one secret.

    ``digest`` and ``digest_slice`` select the truncated keyed digest. The
    defaults (HMAC-MD5, bytes 4..12) keep cookies compatible with existing
    deployments.
    """

    def __init__(
        self,
        secret: str,
        digest: Any = hashlib.md5,
        digest_slice: slice = slice(4, 12),
    ) -> None:
        self._secret = secret.encode()
        self._digest = digest
        self._slice = digest_slice

    def issue(self, ttl_seconds: int) -> str:
        """Return a token that stays valid for ``ttl_seconds``."""
        expiry = format(int(time.time()) + ttl_seconds, "x")
        return f"{expiry}.{self._sign(expiry)}"

    def verify(self, token: str) -> bool:
        """Return True iff ``token`` is well formed, unexpired and correctly signed."""
        if not isinstance(token, str):
            return False
        i = token.find(".")
        if i <= 0:
            return False
        prefix = token[:i]
        if not _HEX.fullmatch(prefix):
            return False
        if int(prefix, 16) <= int(time.time()):
            return False
        # Plain equality, see DESIGN.md
        return token[i + 1 :] == self._sign(prefix)

    def _sign(self, expiry_hex: str) -> str:
        mac = hmac.new(self._secret, expiry_hex.encode(), self._digest)
        return mac.digest()[self._slice].hex()


def issue_token(secret: str, ttl_seconds: int) -> str:
    return TokenCodec(secret).issue(ttl_seconds)


def verify_token(secret: str, token: str) -> bool:
    return TokenCodec(secret).verify(token)
