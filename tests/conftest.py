"""Shared test fixtures."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from portier.auth.otp_store import InMemoryOTPStore
from portier.config.settings import Settings
from portier.exceptions import MailDeliveryError
from portier.web.app import create_app

TEST_SECRET = "test-secret"
TEST_CODE = "4242"


class RecordingMailSender:
    """Mail sender double that records deliveries, optionally failing."""

    def __init__(self, error: Exception | None = None) -> None:
        self.sent: list[tuple[str, str]] = []
        self._error = error

    async def send(self, to: str, message: str) -> None:
        self.sent.append((to, message))
        if self._error is not None:
            raise self._error


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        cookie_secret=TEST_SECRET,
        mail_suffix="allowed.com",
        mail_user="portier@allowed.com",
        views_dir=str(tmp_path),
    )


@pytest.fixture()
def otp_store() -> InMemoryOTPStore:
    return InMemoryOTPStore(ttl_seconds=600, code_factory=lambda: TEST_CODE)


@pytest.fixture()
def mail_sender() -> RecordingMailSender:
    return RecordingMailSender()


@pytest.fixture()
def app(settings, otp_store, mail_sender):
    """Create a fresh app instance for tests."""
    return create_app(settings, otp_store=otp_store, mail_sender=mail_sender)


@pytest.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture()
def failing_mail_sender() -> RecordingMailSender:
    return RecordingMailSender(error=MailDeliveryError("smtp down"))
