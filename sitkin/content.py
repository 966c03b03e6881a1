"""Content loading for Sitkin.

This module turns markdown files and template files into the objects the
renderer works with. Markdown bodies are compiled as text templates at load
time and rendered to HTML later, so a broken body fails the build before any
output is touched.

Key classes:
- MarkdownFile: A top-level markdown file or a file-set entry.
- TemplateFile: A top-level ``.tmpl`` file rendered to HTML.
- TextTemplateFile: A top-level ``.tpl`` file rendered to plain text.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

from jinja2 import Template
from markupsafe import Markup

from .collections import FileSet
from .errors import DuplicateEntryError, MalformedMetadataError, SourceEncodingError
from .metadata import split_metadata
from .templates import TemplateRegistry
from .utils import parse_entry_filename

logger = logging.getLogger(__name__)


@dataclass
class MarkdownFile:
    """A markdown document and the layout that wraps it.

    Attributes:
        name: Output name (entry name for file-set entries, stem otherwise).
        path: Source file.
        template: Layout template the rendered HTML is placed in.
        body: Markdown body, compiled as a text template.
        metadata: Metadata from the leading comment; empty if there was none.
        date: Entry date; None for top-level markdown files.
        contents: Rendered HTML, filled in during render.
    """

    name: str
    path: Path
    template: Template
    body: Template
    metadata: dict[str, Any] = field(default_factory=dict)
    date: date | None = None
    contents: Markup = field(default_factory=Markup)

    def template_context(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "contents": self.contents,
            "metadata": self.metadata,
            "date": self.date,
        }


@dataclass
class TemplateFile:
    """A top-level HTML template, rendered to ``<name>.html``."""

    name: str
    path: Path
    template: Template


@dataclass
class TextTemplateFile:
    """A top-level text template, rendered to ``<name>`` verbatim."""

    name: str
    path: Path
    template: Template


def read_markdown(path: Path) -> tuple[dict[str, Any], str]:
    """Read a markdown file and split off its metadata.

    Returns:
        Tuple of (metadata, body text).

    Raises:
        MalformedMetadataError: If the metadata block is malformed.
        SourceEncodingError: If the body is not valid UTF-8.
    """
    try:
        metadata, body = split_metadata(path.read_bytes())
    except MalformedMetadataError as exc:
        raise MalformedMetadataError(exc.message, path, exc.original_error) from exc
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise SourceEncodingError(f"markdown is not valid UTF-8: {exc}", path, exc) from exc
    return metadata or {}, text


def load_markdown_file(
    path: Path,
    registry: TemplateRegistry,
    name: str,
    template: Template,
    entry_date: date | None = None,
    metadata: dict[str, Any] | None = None,
    body: str | None = None,
) -> MarkdownFile:
    """Load a markdown file, compiling its body as a text template.

    Args:
        path: Markdown file.
        registry: Registry used to compile the body.
        name: Output name.
        template: Layout template.
        entry_date: Date for file-set entries.
        metadata: Already-read metadata; the file is read when omitted.
        body: Already-read body text; the file is read when omitted.

    Returns:
        The loaded MarkdownFile.
    """
    if body is None:
        metadata, body = read_markdown(path)
    return MarkdownFile(
        name=name,
        path=path,
        template=template,
        body=registry.parse_text(body, path),
        metadata=metadata or {},
        date=entry_date,
    )


def load_file_set(directory: Path, template: Template, registry: TemplateRegistry) -> FileSet:
    """Load every entry of a file-set directory.

    Entries are named ``<YYYY-MM-DD>.<entry-name>.md``. Subdirectories, other
    files and oddly named markdown files are skipped with a warning.

    Args:
        directory: File-set directory; its name is the file set's name.
        template: Layout for every entry.
        registry: Registry used to compile entry bodies.

    Returns:
        The file set, newest entry first.

    Raises:
        FileNotFoundError: If the directory does not exist.
        DuplicateEntryError: If two files share an entry name.
    """
    seen: dict[str, Path] = {}
    files: list[MarkdownFile] = []
    for path in sorted(directory.iterdir()):
        if path.is_dir():
            logger.warning("Warning: ignoring unexpected dir %s", path)
            continue
        if path.suffix != ".md":
            logger.warning("Warning: ignoring unexpected file %s", path)
            continue
        parsed = parse_entry_filename(path.name)
        if parsed is None:
            logger.warning(
                "Warning: ignoring strangely-named file %s (expected <YYYY-MM-DD>.<name>.md)",
                path,
            )
            continue
        entry_date, name = parsed
        if name in seen:
            raise DuplicateEntryError(
                f"duplicate name ({name}) in file set {directory.name}; also used by {seen[name].name}",
                path,
            )
        seen[name] = path
        files.append(load_markdown_file(path, registry, name, template, entry_date))
    return FileSet(directory.name, files)
