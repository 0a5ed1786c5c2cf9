"""Per-request authentication decisions.

Every request ends in exactly one :class:`GatewayState`:

* a valid session cookie authenticates any path (optionally redirecting);
* any other path without a session gets a bare 401, which is what a
  reverse proxy's forward-auth check expects;
* the login path runs the email / one-time code exchange and issues the
  session cookie once a code is verified.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

import structlog
from starlette.background import BackgroundTask
from starlette.responses import RedirectResponse, Response

from portier.auth.allowlist import EmailAllowList
from portier.auth.token import TokenCodec
from portier.exceptions import MailDeliveryError, TemplateError
from portier.web.views import LOGIN_TEMPLATE, MAIL_TEMPLATE

if TYPE_CHECKING:
    from starlette.requests import Request

    from portier.auth.otp_store import OTPStore
    from portier.config.settings import Settings
    from portier.mail.sender import MailSender
    from portier.web.views import Views

logger = structlog.get_logger(__name__)

_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


class GatewayState(StrEnum):
    AUTHENTICATED = "authenticated"
    AWAITING_EMAIL = "awaiting_email"
    EMAIL_REJECTED = "email_rejected"
    CHALLENGE_ISSUED = "challenge_issued"
    CHALLENGE_VERIFIED = "challenge_verified"
    CHALLENGE_FAILED = "challenge_failed"
    UNAUTHORIZED = "unauthorized"


def hostname(redirect: str) -> str:
    """Hostname of the redirect target, for display only."""
    try:
        return urlsplit(redirect).hostname or ""
    except ValueError:
        return ""


class AuthGateway:
    """Decides, per request, between session, login exchange and 401."""

    def __init__(
        self,
        settings: Settings,
        otp_store: OTPStore,
        mail_sender: MailSender,
        views: Views,
        allow_list: EmailAllowList | None = None,
        codec: TokenCodec | None = None,
    ) -> None:
        self.settings = settings
        self.otp_store = otp_store
        self.mail_sender = mail_sender
        self.views = views
        self.allow_list = allow_list or EmailAllowList(settings.mail_suffix)
        self.codec = codec or TokenCodec(settings.cookie_secret)

    async def handle(self, request: Request) -> Response:
        state, response = await self.decide(request)
        logger.debug("gateway_decision", path=request.url.path, state=state.value)
        return response

    async def decide(self, request: Request) -> tuple[GatewayState, Response]:
        redirect = self.redirect_target(request)
        if self.has_session(request):
            return GatewayState.AUTHENTICATED, self._success(redirect)
        if request.url.path != self.settings.login_path:
            return GatewayState.UNAUTHORIZED, Response(status_code=401)
        return await self._login(request, redirect)

    def redirect_target(self, request: Request) -> str:
        if not request.url.query:
            return ""
        return request.query_params.get(self.settings.redirect_key, "")

    def has_session(self, request: Request) -> bool:
        token = request.cookies.get(self.settings.cookie_name)
        return bool(token) and self.codec.verify(token)

    def issue_session(self, response: Response) -> None:
        response.set_cookie(
            key=self.settings.cookie_name,
            value=self.codec.issue(self.settings.cookie_expires),
            max_age=self.settings.cookie_expires,
            domain=self.settings.cookie_domain or None,
            secure=self.settings.cookie_secure,
            httponly=True,
        )

    async def _login(self, request: Request, redirect: str) -> tuple[GatewayState, Response]:
        mail, code = await self._credentials(request)
        lang = self.views.dictionary
        context: dict[str, Any] = {
            "lang": lang,
            "mail": mail,
            "domain": hostname(redirect),
            "now": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        }

        if request.method in ("GET", "HEAD"):
            state = GatewayState.AWAITING_EMAIL
        elif not self.allow_list(mail):
            logger.info("email_rejected", mail=mail)
            context["message"] = lang.get("mail.reject", "")
            state = GatewayState.EMAIL_REJECTED
        elif not code:
            code = self.otp_store.issue(mail)
            context.update(code=code, required="required", message=lang.get("captcha.sent", ""))
            logger.info("code_issued", mail=mail)
            response = self.views.render_page(request, LOGIN_TEMPLATE, context)
            response.background = BackgroundTask(self._dispatch_mail, mail, code, dict(context))
            return GatewayState.CHALLENGE_ISSUED, response
        elif self.otp_store.verify(mail, code):
            response = self._success(redirect)
            self.issue_session(response)
            logger.info("session_issued", mail=mail, redirect=redirect)
            return GatewayState.CHALLENGE_VERIFIED, response
        else:
            logger.info("code_rejected", mail=mail)
            context["message"] = lang.get("captcha.failed", "")
            state = GatewayState.CHALLENGE_FAILED

        return state, self.views.render_page(request, LOGIN_TEMPLATE, context)

    async def _credentials(self, request: Request) -> tuple[str, str]:
        """Read ``mail`` and ``code`` from the form body, then the query string."""
        values: dict[str, str] = {}
        content_type = request.headers.get("content-type", "")
        if request.method not in ("GET", "HEAD") and content_type.startswith(_FORM_TYPES):
            form = await request.form()
            for key in ("mail", "code"):
                value = form.get(key)
                if isinstance(value, str):
                    values[key] = value
        mail = values.get("mail") or request.query_params.get("mail", "")
        code = values.get("code") or request.query_params.get("code", "")
        return mail, code

    async def _dispatch_mail(self, mail: str, code: str, context: dict[str, Any]) -> None:
        """Render and send the code. Runs after the response has been sent."""
        error: str | None = None
        try:
            message = self.views.render(
                MAIL_TEMPLATE, {**context, "to": mail, "sender": self.settings.mail_user}
            )
            await self.mail_sender.send(mail, message)
        except (MailDeliveryError, TemplateError) as e:
            error = str(e)
        if error:
            logger.error("send_mail", mail=mail, code=code, error=error)
        else:
            logger.info("send_mail", mail=mail, code=code, error=None)

    def _success(self, redirect: str) -> Response:
        if redirect:
            return RedirectResponse(url=redirect, status_code=302)
        return Response(status_code=200)
