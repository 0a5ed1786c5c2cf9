"""FastAPI application factory."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from fastapi import FastAPI, Request
from starlette.responses import Response

from portier import __version__
from portier.auth.otp_store import InMemoryOTPStore
from portier.config.logging import setup_logging
from portier.config.settings import check_settings, get_settings
from portier.mail.sender import LogMailSender, SMTPMailSender
from portier.web.gateway import AuthGateway
from portier.web.middleware import LoginRateLimitMiddleware, RequestIDMiddleware
from portier.web.views import Views

if TYPE_CHECKING:
    from portier.auth.otp_store import OTPStore
    from portier.config.settings import Settings
    from portier.mail.sender import MailSender

logger = structlog.get_logger(__name__)

_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def _create_mail_sender(settings: Settings) -> MailSender:
    """Create the SMTP sender, or a log-only sender when no server is set."""
    if not settings.mail_addr:
        logger.warning("mail_addr_unset")
        return LogMailSender()
    host, port = settings.mail_endpoint()
    return SMTPMailSender(
        host,
        port,
        username=settings.mail_user,
        password=settings.mail_pass,
        use_ssl=settings.mail_ssl,
    )


def create_app(
    settings: Settings | None = None,
    otp_store: OTPStore | None = None,
    mail_sender: MailSender | None = None,
) -> FastAPI:
    """Create and configure the gateway application."""
    settings = check_settings(settings) if settings is not None else get_settings()
    setup_logging(log_level=settings.log_level, json_output=not settings.debug)

    gateway = AuthGateway(
        settings=settings,
        otp_store=otp_store or InMemoryOTPStore(ttl_seconds=settings.code_ttl),
        mail_sender=mail_sender or _create_mail_sender(settings),
        views=Views(settings.views_dir, settings.lang),
    )

    app = FastAPI(
        title="Portier",
        description="Passwordless email-code authentication gateway",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.gateway = gateway

    # Middleware (order matters — last added runs first)
    app.add_middleware(
        LoginRateLimitMiddleware,
        login_path=settings.login_path,
        max_requests=settings.login_rate_limit,
        window_seconds=settings.login_rate_window,
    )
    app.add_middleware(RequestIDMiddleware)

    @app.api_route("/{path:path}", methods=_METHODS, include_in_schema=False)
    async def gate(request: Request, path: str) -> Response:
        return await gateway.handle(request)

    logger.info(
        "app_created",
        login_path=settings.login_path,
        cookie_name=settings.cookie_name,
        mail_suffix=settings.mail_suffix,
    )
    return app
