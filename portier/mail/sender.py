"""Outbound mail for one-time codes."""

from __future__ import annotations

import asyncio
import re
import smtplib
import ssl
from typing import Protocol

import structlog

from portier.exceptions import MailDeliveryError

logger = structlog.get_logger(__name__)

_LINE_END = re.compile(r"\r?\n")


def to_wire(message: str) -> bytes:
    """Encode a rendered message with CRLF line endings, as SMTP DATA requires."""
    text = _LINE_END.sub("\r\n", message)
    if not text.endswith("\r\n"):
        text += "\r\n"
    return text.encode("utf-8")


class MailSender(Protocol):
    async def send(self, to: str, message: str) -> None: ...


class SMTPMailSender:
    """Delivers a fully rendered RFC 5322 message over SMTP.

    Uses TLS on connect for port 465 or when ``use_ssl`` is set, and only
    authenticates when the server advertises AUTH. The blocking smtplib
    session runs in a worker thread.
    """

    def __init__(
        self,
        host: str,
        port: int,
        username: str = "",
        password: str = "",
        use_ssl: bool = False,
        timeout: float = 30.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self._password = password
        self.use_ssl = use_ssl or port == 465
        self._timeout = timeout

    async def send(self, to: str, message: str) -> None:
        await asyncio.to_thread(self._send, to, message)

    def _connect(self) -> smtplib.SMTP:
        if self.use_ssl:
            context = ssl.create_default_context()
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self._timeout, context=context)
        return smtplib.SMTP(self.host, self.port, timeout=self._timeout)

    def _send(self, to: str, message: str) -> None:
        try:
            with self._connect() as server:
                server.ehlo_or_helo_if_needed()
                if server.has_extn("auth"):
                    server.login(self.username, self._password)
                server.sendmail(self.username, [to], to_wire(message))
        except (smtplib.SMTPException, OSError) as e:
            raise MailDeliveryError(f"delivery to {to} via {self.host}:{self.port} failed: {e}") from e


class LogMailSender:
    """Used when no mail server is configured: logs instead of sending."""

    async def send(self, to: str, message: str) -> None:
        logger.warning("mail_not_configured", to=to, size=len(message))
