"""Email allow-list: address syntax plus a required suffix."""

from __future__ import annotations

import re

_LABEL = r"[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
EMAIL_REGEX = re.compile(
    r"[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@" + _LABEL + r"(?:\." + _LABEL + r")*"
)


class EmailAllowList:
    """Accepts addresses that are syntactically valid and end with ``suffix``.

    An empty suffix accepts every valid address.
    """

    def __init__(self, suffix: str = "") -> None:
        self.suffix = suffix

    def __call__(self, email: str) -> bool:
        return self.allows(email)

    def allows(self, email: str) -> bool:
        if not email or not EMAIL_REGEX.fullmatch(email):
            return False
        return email.endswith(self.suffix)
