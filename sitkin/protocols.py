"""Protocol definitions for Sitkin.

The renderer depends on these collaborator interfaces rather than on
mistune and minify-html directly, so tests can substitute trivial
implementations and check the pipeline on its own.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class MarkdownRenderer(Protocol):
    """Converts a markdown document to an HTML fragment."""

    def __call__(self, text: str) -> str:
        ...


@runtime_checkable
class Minifier(Protocol):
    """Minifies a complete HTML document."""

    def minify(self, html: str) -> str:
        """Return the minified document.

        Args:
            html: Rendered HTML document.

        Returns:
            Equivalent, smaller HTML.
        """
        ...
