"""Markdown metadata extraction for Sitkin.

A markdown file may start with an HTML comment holding a JSON object:

    <!--
    {"title": "Hello World"}
    -->
    # Hello World

The comment is invisible if the file is rendered by any other markdown tool,
which is why it is used instead of YAML frontmatter.
"""

from __future__ import annotations

import json
import re
from typing import Any

from .errors import MalformedMetadataError

METADATA_OPEN = b"<!--"
METADATA_CLOSE = b"-->"

# Trailing blanks on the closing marker's line plus a single line break.
_MARKER_LINE_END_RE = re.compile(rb"[ \t]*\r?\n")


def split_metadata(raw: bytes) -> tuple[dict[str, Any] | None, bytes]:
    """Split a leading JSON metadata comment from markdown content.

    Args:
        raw: Raw file content.

    Returns:
        Tuple of (metadata dict or None if absent, remaining body bytes).

    Raises:
        MalformedMetadataError: If the comment is never closed, or its text
            is not a JSON object.

    Examples:
        >>> split_metadata(b'<!--{"title":"X"}-->\\nBody')
        ({'title': 'X'}, b'Body')

        >>> split_metadata(b"# No metadata")
        (None, b'# No metadata')
    """
    if not raw.startswith(METADATA_OPEN):
        return None, raw
    rest = raw[len(METADATA_OPEN) :]
    end = rest.find(METADATA_CLOSE)
    if end < 0:
        raise MalformedMetadataError(f"no closing {METADATA_CLOSE.decode()} to end metadata")
    try:
        metadata = json.loads(rest[:end])
    except ValueError as exc:
        raise MalformedMetadataError(f"error decoding metadata: {exc}", original_error=exc) from exc
    if not isinstance(metadata, dict):
        raise MalformedMetadataError(
            f"metadata must be a JSON object, not {type(metadata).__name__}"
        )
    body = rest[end + len(METADATA_CLOSE) :]
    line_end = _MARKER_LINE_END_RE.match(body)
    if line_end:
        body = body[line_end.end() :]
    return metadata, body
