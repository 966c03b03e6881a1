"""Template handling for Sitkin.

This module uses Jinja2 to load and compose the project's templates.

Two environments are created per build. The HTML environment autoescapes and
is used for ``.tmpl`` files; the text environment does not, and is used for
``.tpl`` files and for markdown bodies (which may use template syntax before
being converted to HTML). Both use StrictUndefined, so referring to a missing
context key fails the build instead of producing an empty string.

``sitkin/default.tmpl`` is the root layout. Every other ``.tmpl`` file is
composed on top of it: unless the file extends something else itself, the
blocks it defines replace the default layout's blocks of the same name.

Key classes:
- TemplateRegistry: Named templates plus the environments that parse them.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any
from xml.sax.saxutils import escape as _xml_escape

from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    Template,
    TemplateSyntaxError,
)

from .errors import ProjectStructureError, TemplateLoadError
from .renderers import pygments_css

DEFAULT_TEMPLATE = "default"
TEMPLATE_SUFFIX = ".tmpl"
TEXT_TEMPLATE_SUFFIX = ".tpl"

_EXTENDS_RE = re.compile(r"^\s*\{%-?\s*extends\b")
_XML_ENTITIES = {'"': "&quot;", "'": "&apos;"}


def rfc3339(value: date | datetime) -> str:
    """Format a date or datetime as RFC 3339 text.

    Dates are taken as midnight UTC, and naive datetimes as UTC.

    Examples:
        >>> rfc3339(date(2018, 3, 5))
        '2018-03-05T00:00:00Z'
    """
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    elif value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.isoformat(timespec="seconds")
    return text[: -len("+00:00")] + "Z" if text.endswith("+00:00") else text


def xml_escape(value: Any) -> str:
    """Escape text for inclusion in XML, including already-safe HTML."""
    return _xml_escape(str(value), _XML_ENTITIES)


def create_environment(
    search_path: list[Path],
    *,
    autoescape: bool,
    link: Callable[[str], str],
    dev_mode: bool,
) -> Environment:
    """Create a Jinja2 environment with Sitkin's globals and filters.

    Args:
        search_path: Directories ``include`` and ``import`` look in.
        autoescape: Whether output is HTML-escaped by default.
        link: Function mapping an asset URL path to its hashed path.
        dev_mode: Exposed to templates as ``dev_mode``.

    Returns:
        Configured environment.
    """
    env = Environment(
        loader=FileSystemLoader(search_path),
        autoescape=autoescape,
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )
    env.globals["link"] = link
    env.globals["dev_mode"] = dev_mode
    env.globals["pygments_css"] = pygments_css
    env.filters["rfc3339"] = rfc3339
    env.filters["xml_escape"] = xml_escape
    return env


def parse_template(
    env: Environment,
    source: str,
    name: str | None = None,
    filename: str | None = None,
    globals: dict[str, Any] | None = None,
) -> Template:
    """Compile template source, keeping its name for error messages.

    Raises:
        TemplateSyntaxError: If the source does not parse.
    """
    code = env.compile(source, name, filename)
    return env.template_class.from_code(env, code, env.make_globals(globals), None)


def compose_template(
    env: Environment,
    default: Template,
    source: str,
    name: str | None = None,
    filename: str | None = None,
) -> Template:
    """Derive a template from the default layout.

    The source's blocks override the default layout's blocks; any text
    outside blocks is discarded, as for any Jinja child template. A source
    that already starts with ``{% extends %}`` is left alone.

    Args:
        env: Environment to compile in.
        default: The root layout.
        source: Template source adding or overriding blocks.
        name: Template name for error messages.
        filename: Source filename for error messages.

    Returns:
        The composed template.

    Raises:
        TemplateSyntaxError: If the source does not parse.
    """
    if _EXTENDS_RE.match(source):
        return parse_template(env, source, name, filename)
    # Same line as the source's first line, so line numbers stay correct.
    composed = "{% extends _default_layout %}" + source
    return parse_template(
        env, composed, name, filename, globals={"_default_layout": default}
    )


class TemplateRegistry:
    """Named templates for one build.

    Attributes:
        html_env: Environment for HTML templates.
        text_env: Environment for text templates and markdown bodies.
        default: The root layout, once loaded.
    """

    def __init__(
        self,
        search_path: list[Path],
        link: Callable[[str], str],
        dev_mode: bool = False,
    ):
        """Initialize the registry.

        Args:
            search_path: Directories templates can include from.
            link: Asset link lookup exposed to templates as ``link``.
            dev_mode: Exposed to templates as ``dev_mode``.
        """
        self.html_env = create_environment(
            search_path, autoescape=True, link=link, dev_mode=dev_mode
        )
        self.text_env = create_environment(
            search_path, autoescape=False, link=link, dev_mode=dev_mode
        )
        self.default: Template | None = None
        self._templates: dict[str, Template] = {}

    def load_default(self, path: Path) -> Template:
        """Parse the root layout.

        Raises:
            ProjectStructureError: If the file is missing or fails to parse.
        """
        try:
            source = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise ProjectStructureError("missing default template", path, exc) from exc
        except UnicodeDecodeError as exc:
            raise ProjectStructureError(
                f"default template is not valid UTF-8: {exc}", path, exc
            ) from exc
        try:
            self.default = parse_template(self.html_env, source, path.name, str(path))
        except TemplateSyntaxError as exc:
            raise ProjectStructureError(
                f"error loading default template: line {exc.lineno}: {exc.message}",
                path,
                exc,
            ) from exc
        self._templates[DEFAULT_TEMPLATE] = self.default
        return self.default

    def add(self, path: Path) -> Template:
        """Compose a named template from a ``.tmpl`` file and register it."""
        tmpl = self.parse_html_file(path)
        self._templates[path.name[: -len(TEMPLATE_SUFFIX)]] = tmpl
        return tmpl

    def get(self, name: str) -> Template | None:
        return self._templates.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._templates

    def names(self) -> list[str]:
        return sorted(self._templates)

    def parse_html_file(self, path: Path) -> Template:
        """Compose an HTML template file on top of the default layout.

        Raises:
            TemplateLoadError: If the file is not UTF-8 or fails to parse.
        """
        if self.default is None:
            raise RuntimeError("default template must be loaded first")
        source = _read_source(path)
        try:
            return compose_template(
                self.html_env, self.default, source, path.name, str(path)
            )
        except TemplateSyntaxError as exc:
            raise _load_error(path, exc) from exc

    def parse_text_file(self, path: Path) -> Template:
        """Parse a plain-text template file.

        Raises:
            TemplateLoadError: If the file is not UTF-8 or fails to parse.
        """
        return self.parse_text(_read_source(path), path)

    def parse_text(self, source: str, path: Path) -> Template:
        """Parse plain-text template source read from path.

        Raises:
            TemplateLoadError: If the source fails to parse.
        """
        try:
            return parse_template(self.text_env, source, path.name, str(path))
        except TemplateSyntaxError as exc:
            raise _load_error(path, exc) from exc


def _read_source(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise TemplateLoadError(f"template is not valid UTF-8: {exc}", path, exc) from exc


def _load_error(path: Path, exc: TemplateSyntaxError) -> TemplateLoadError:
    return TemplateLoadError(
        f"template syntax error on line {exc.lineno}: {exc.message}", path, exc
    )
