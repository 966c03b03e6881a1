"""HTML utility functions for Sitkin.

This module rewrites asset references in rendered HTML so that they point
at the content-hashed copies of the assets.

Only ``src`` and ``href`` attributes of ``<img>``, ``<link>`` and
``<script>`` tags are touched. Anchors (``<a href>``) point at pages, which
are never renamed.

Functions:
    rewrite_asset_links: Replace asset URLs with their hashed equivalents.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

_ASSET_TAG_RE = re.compile(r"<(?:img|link|script)\b[^>]*>", re.IGNORECASE)

_URL_ATTR_RE = re.compile(
    r"""(?P<prefix>\s(?:src|href)\s*=\s*)"""
    r"""(?:"(?P<dq>[^"]*)"|'(?P<sq>[^']*)'|(?P<bare>[^\s"'=<>`]+))""",
    re.IGNORECASE,
)


def rewrite_asset_links(
    html: str, hash_assets: Mapping[str, str], source: str | None = None
) -> str:
    """Rewrite site-relative asset URLs to their hashed paths.

    URLs with a scheme or a network host are left unchanged. Root-relative
    URLs (``/assets/x.css``) are replaced when the hash map has an entry for
    their path; query strings and fragments are kept. Relative URLs
    (``x.css``) are left unchanged with a warning, since resolving them
    would require knowing where the page itself ends up.

    Args:
        html: Rendered HTML.
        hash_assets: Mapping from original URL path to hashed URL path.
        source: Name of the document, used in warnings.

    Returns:
        HTML with asset links rewritten.

    Examples:
        >>> rewrite_asset_links('<link href="/x.css">', {"/x.css": "/x.abc.css"})
        '<link href="/x.abc.css">'
    """

    def rewrite_url(url: str) -> str:
        if not url or url.startswith("#"):
            return url
        parts = urlsplit(url)
        if parts.scheme or parts.netloc:
            return url
        if not parts.path.startswith("/"):
            logger.warning(
                "Warning: not rewriting relative link %r%s",
                url,
                f" in {source}" if source else "",
            )
            return url
        hashed = hash_assets.get(parts.path)
        if hashed is None:
            return url
        return parts._replace(path=hashed).geturl()

    def rewrite_attr(match: re.Match) -> str:
        prefix = match.group("prefix")
        if match.group("dq") is not None:
            return f'{prefix}"{rewrite_url(match.group("dq"))}"'
        if match.group("sq") is not None:
            return f"{prefix}'{rewrite_url(match.group('sq'))}'"
        return f"{prefix}{rewrite_url(match.group('bare'))}"

    def rewrite_tag(match: re.Match) -> str:
        return _URL_ATTR_RE.sub(rewrite_attr, match.group(0))

    return _ASSET_TAG_RE.sub(rewrite_tag, html)
