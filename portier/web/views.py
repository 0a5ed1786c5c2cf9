"""Template rendering and the localization dictionary.

Templates and dictionaries are looked up in an overlay: the operator's
``views_dir`` first, then the views shipped with the package.
"""

from __future__ import annotations

import base64
import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from jinja2 import ChoiceLoader, Environment, FileSystemLoader, TemplateNotFound, select_autoescape
from markupsafe import Markup

from portier.exceptions import TemplateError

if TYPE_CHECKING:
    from starlette.requests import Request

logger = structlog.get_logger(__name__)

PACKAGE_VIEWS = Path(__file__).resolve().parent.parent / "views"
LOGIN_TEMPLATE = "login.html"
MAIL_TEMPLATE = "captcha.html"


def _b64(value: str) -> Markup:
    return Markup(base64.b64encode(str(value).encode()).decode("ascii"))


def load_dictionary(search_path: list[Path], lang: str) -> dict[str, str]:
    """Load ``lang.json``, falling back to ``<lang>.json``.

    Returns an empty dictionary when neither can be read.
    """
    for name in ("lang.json", f"{lang}.json"):
        for directory in search_path:
            path = directory / name
            if not path.is_file():
                continue
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                logger.error("lang_load_failed", path=str(path), error=str(e))
                continue
            if not isinstance(data, dict):
                logger.error("lang_load_failed", path=str(path), error="not a JSON object")
                continue
            logger.info("lang_loaded", path=str(path), keys=len(data))
            return {str(k): str(v) for k, v in data.items()}
    logger.warning("lang_missing", lang=lang)
    return {}


class Views:
    """Renders the login page and the outbound mail from one template family."""

    def __init__(self, views_dir: str | Path = ".", lang: str = "en") -> None:
        self.search_path = [Path(views_dir), PACKAGE_VIEWS]
        self.env = Environment(
            loader=ChoiceLoader([FileSystemLoader(str(p)) for p in self.search_path]),
            autoescape=select_autoescape(["html"]),
        )
        self.env.filters["base64"] = _b64
        self.templates = Jinja2Templates(env=self.env)
        self.dictionary = load_dictionary(self.search_path, lang)
        self.check()

    def check(self) -> bool:
        """Log any template that cannot be loaded. Returns True if all load."""
        ok = True
        for name in (LOGIN_TEMPLATE, MAIL_TEMPLATE):
            try:
                self.env.get_template(name)
            except Exception as e:  # jinja raises TemplateSyntaxError, TemplateNotFound, OSError
                logger.error("template_load_failed", template=name, error=str(e))
                ok = False
        return ok

    def render(self, name: str, context: dict[str, Any]) -> str:
        """Render ``name`` to a string."""
        try:
            return self.env.get_template(name).render(context)
        except TemplateNotFound as e:
            raise TemplateError(f"template not found: {name}") from e

    def render_page(self, request: Request, name: str, context: dict[str, Any]) -> HTMLResponse:
        """Render ``name`` as an HTML response; empty body when it is missing."""
        try:
            return self.templates.TemplateResponse(request, name, context)
        except TemplateNotFound:
            logger.error("template_missing", template=name)
            return HTMLResponse("")
