"""Portier entrypoint."""

import uvicorn

from portier.config.settings import Settings
from portier.web.app import create_app


def cli() -> None:
    """CLI entrypoint. Flags mirror the PORTIER_* environment variables."""
    settings = Settings(_cli_parse_args=True)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    cli()
