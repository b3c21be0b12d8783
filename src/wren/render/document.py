"""Document template — the HTML page around the application markup.

A jinja2 environment is created once during ``App._freeze()``. The
built-in ``document.html`` can be overridden by placing a file of the
same name in ``config.template_dir``. The template is rendered once per
shell with a marker in place of the application markup, then split at
the marker and around ``</body>`` so the streamed parts can be placed
between them.
"""

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from jinja2 import BaseLoader, ChoiceLoader, DictLoader, Environment, FileSystemLoader
from markupsafe import Markup

from wren.config import AppConfig
from wren.errors import ConfigurationError
from wren.render.html import meta_tags

DOCUMENT_TEMPLATE = "document.html"

_APP_MARKER = "\x00wren-app\x00"

DEFAULT_DOCUMENT = """\
<!DOCTYPE html>
<html lang="{{ lang }}">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
{% if title %}<title>{{ title }}</title>
{% endif %}{{ meta }}{{ head }}
</head>
<body>
<div id="app">{{ app }}</div>
</body>
</html>
"""


@dataclass(frozen=True, slots=True)
class DocumentParts:
    """The rendered document split around the application markup."""

    start: str
    closing: str
    end: str


def create_environment(
    config: AppConfig,
    globals_: dict[str, Any] | None = None,
    filters: dict[str, Callable[..., Any]] | None = None,
) -> Environment:
    """Create the document environment from app configuration.

    The returned environment is shared, read-only, for the lifetime of the app.
    """
    loaders: list[BaseLoader] = []
    if config.template_dir is not None:
        loaders.append(FileSystemLoader(str(config.template_dir)))
    loaders.append(DictLoader({DOCUMENT_TEMPLATE: DEFAULT_DOCUMENT}))

    env = Environment(
        loader=ChoiceLoader(loaders),
        autoescape=config.autoescape,
        auto_reload=config.debug,
    )
    if filters:
        env.filters.update(filters)
    if globals_:
        env.globals.update(globals_)
    return env


class Document:
    """Renders and splits the document template."""

    __slots__ = ("env", "lang")

    def __init__(self, env: Environment, *, lang: str = "en") -> None:
        self.env = env
        self.lang = lang

    def render(
        self,
        *,
        head: str = "",
        title: str | None = None,
        meta: Iterable[Mapping[str, Any]] = (),
        **context: Any,
    ) -> DocumentParts:
        template = self.env.get_template(DOCUMENT_TEMPLATE)
        html = template.render(
            lang=self.lang,
            title=title,
            meta=Markup(meta_tags(meta)),
            head=Markup(head),
            app=Markup(_APP_MARKER),
            **context,
        )
        if html.count(_APP_MARKER) != 1:
            msg = f"{DOCUMENT_TEMPLATE} must output {{{{ app }}}} exactly once."
            raise ConfigurationError(msg)
        start, rest = html.split(_APP_MARKER)
        body_end = rest.rfind("</body>")
        if body_end == -1:
            return DocumentParts(start=start, closing=rest, end="")
        return DocumentParts(start=start, closing=rest[:body_end], end=rest[body_end:])
