"""Gateway settings via Pydantic BaseSettings."""

from __future__ import annotations

import warnings
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from portier.exceptions import ConfigError

DEFAULT_SECRET = "portier"  # nosec B105


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PORTIER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Listener
    host: str = "127.0.0.1"
    port: int = 4567
    login_path: str = "/login"
    redirect_key: str = "redirect"

    # Views
    lang: str = "en"
    views_dir: str = "."

    # Session cookie
    cookie_secret: str = DEFAULT_SECRET
    cookie_domain: str = ""
    cookie_name: str = "portier"
    cookie_expires: int = 3600
    cookie_secure: bool = False

    # Mail
    mail_addr: str = ""
    mail_ssl: bool = False
    mail_user: str = ""
    mail_pass: str = ""
    mail_suffix: str = ""

    # One-time codes
    code_ttl: int = 600
    login_rate_limit: int = 30
    login_rate_window: int = 60

    # Logging
    debug: bool = False
    log_level: str = "INFO"

    def mail_endpoint(self) -> tuple[str, int]:
        """Split ``mail_addr`` into host and port."""
        host, sep, port = self.mail_addr.rpartition(":")
        if not sep or not host or not port.isdigit():
            msg = f"mail_addr must be host:port, got {self.mail_addr!r}"
            raise ConfigError(msg)
        return host.removeprefix("[").removesuffix("]"), int(port)


def check_settings(settings: Settings) -> Settings:
    """Validate cross-field constraints and warn about insecure defaults."""
    if settings.cookie_secret == DEFAULT_SECRET:
        warnings.warn(
            "PORTIER_COOKIE_SECRET is using the insecure default. "
            "Set it to a random value for production.",
            UserWarning,
            stacklevel=2,
        )
    if not settings.login_path.startswith("/"):
        msg = f"login_path must start with '/', got {settings.login_path!r}"
        raise ConfigError(msg)
    if settings.cookie_expires <= 0:
        msg = "cookie_expires must be positive"
        raise ConfigError(msg)
    if settings.mail_addr:
        settings.mail_endpoint()
    return settings


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return check_settings(Settings())
