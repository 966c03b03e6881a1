"""Markdown rendering and HTML minification for Sitkin.

Both are pure string transformations used by the renderer. The minifier is a
plain object built once per build and passed to the renderer, so repeated
builds in the dev server never share state.

Key classes and functions:
- render_markdown: Markdown to HTML, with Pygments highlighting.
- HTMLMinifier: Wraps minify-html.
"""

from __future__ import annotations

import re
from typing import Any

import minify_html
import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound


def _generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text.

    Args:
        text: The heading text.

    Returns:
        URL-friendly slug suitable for anchor links.
    """
    slug = re.sub(r"<[^>]+>", "", text).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-")


class _HighlightRenderer(mistune.HTMLRenderer):
    """HTML renderer adding heading anchors and syntax highlighting."""

    def __init__(self):
        super().__init__(escape=False)
        self._heading_id_counts: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        base_id = _generate_heading_id(text)
        if base_id in self._heading_id_counts:
            self._heading_id_counts[base_id] += 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        else:
            self._heading_id_counts[base_id] = 0
            heading_id = base_id
        if not heading_id:
            return f"<h{level}>{text}</h{level}>\n"
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a fenced code block, highlighted when the language is known."""
        lang = info.split(None, 1)[0] if info and info.strip() else None
        if lang:
            try:
                lexer = get_lexer_by_name(lang, stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                return highlight(code, lexer, HtmlFormatter(cssclass="highlight"))
        escaped = mistune.escape(code)
        lang_class = f' class="language-{mistune.escape(lang)}"' if lang else ""
        return f"<pre><code{lang_class}>{escaped}</code></pre>\n"


def render_markdown(text: str) -> str:
    """Render Markdown to an HTML fragment.

    Args:
        text: Markdown source.

    Returns:
        Rendered HTML.
    """
    markdown = mistune.create_markdown(
        renderer=_HighlightRenderer(),
        plugins=["strikethrough", "footnotes", "table", "url"],
    )
    return markdown(text)


def pygments_css(style: str = "default") -> str:
    """Return the CSS rules for highlighted code blocks."""
    return HtmlFormatter(style=style).get_style_defs(".highlight")


class HTMLMinifier:
    """Minifies rendered HTML documents.

    Inline CSS and JavaScript are left alone unless enabled, since a broken
    script is much harder to notice than a few extra bytes.
    """

    def __init__(self, minify_css: bool = False, minify_js: bool = False, **options: Any):
        self.options: dict[str, Any] = {
            "minify_css": minify_css,
            "minify_js": minify_js,
            **options,
        }

    def minify(self, html: str) -> str:
        return minify_html.minify(html, **self.options)
