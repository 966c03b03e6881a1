"""Project loading for Sitkin.

This module reads a project directory into a Project: the parsed config, the
template registry, file sets, top-level documents and the files to copy,
along with the map from asset URLs to their hashed URLs.

Loading happens once per build and never writes anything, so every error it
raises leaves the previous output untouched.

Key classes and functions:
- EntryKind, ProjectEntry: What a top-level directory entry is.
- classify_entry: Decide an entry's kind from its name alone.
- Project: The loaded project.
- load_project: Load a project from disk.
"""

from __future__ import annotations

import enum
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from jinja2 import Template

from .collections import FileSet
from .config import Config, load_config
from .content import (
    MarkdownFile,
    TemplateFile,
    TextTemplateFile,
    load_file_set,
    load_markdown_file,
    read_markdown,
)
from .copier import CopyFile, CopyPolicy, discover_copy_files
from .errors import MissingTemplateError, ProjectStructureError
from .templates import (
    DEFAULT_TEMPLATE,
    TEMPLATE_SUFFIX,
    TEXT_TEMPLATE_SUFFIX,
    TemplateRegistry,
)

logger = logging.getLogger(__name__)

SITKIN_DIR = "sitkin"
OUTPUT_DIR = "gen"
MARKDOWN_SUFFIX = ".md"

# Metadata key naming the layout of a top-level markdown file.
TEMPLATE_METADATA_KEY = "template"


class EntryKind(enum.Enum):
    TEMPLATE = "template"
    TEXT_TEMPLATE = "text_template"
    MARKDOWN = "markdown"
    FILE_SET = "file_set"
    COPY = "copy"


_SUFFIXES = {
    EntryKind.TEMPLATE: TEMPLATE_SUFFIX,
    EntryKind.TEXT_TEMPLATE: TEXT_TEMPLATE_SUFFIX,
    EntryKind.MARKDOWN: MARKDOWN_SUFFIX,
}


@dataclass(frozen=True)
class ProjectEntry:
    """A classified top-level entry of the project directory.

    Attributes:
        kind: What the entry is.
        filename: Entry name in the project directory.
    """

    kind: EntryKind
    filename: str

    @property
    def name(self) -> str:
        """Output name: the filename without its template or markdown suffix."""
        suffix = _SUFFIXES.get(self.kind)
        if suffix:
            return self.filename[: -len(suffix)]
        return self.filename


def classify_entry(filename: str, file_set_names: list[str]) -> ProjectEntry | None:
    """Classify a top-level project entry by its name.

    Args:
        filename: Name of a file or directory directly inside the project.
        file_set_names: Configured file-set names.

    Returns:
        The classified entry, or None if the entry is never processed (the
        sitkin and output directories, and dot files).

    Examples:
        >>> classify_entry("index.tmpl", []).kind
        <EntryKind.TEMPLATE: 'template'>

        >>> classify_entry(".git", []) is None
        True
    """
    if filename in (SITKIN_DIR, OUTPUT_DIR) or filename.startswith("."):
        return None
    if filename in file_set_names:
        return ProjectEntry(EntryKind.FILE_SET, filename)
    for kind, suffix in _SUFFIXES.items():
        if filename.endswith(suffix) and len(filename) > len(suffix):
            return ProjectEntry(kind, filename)
    return ProjectEntry(EntryKind.COPY, filename)


@dataclass
class Project:
    """A loaded Sitkin project.

    Attributes:
        root: Project directory.
        dev_mode: Whether assets keep their names.
        config: Parsed configuration.
        templates: Named templates.
        file_sets: File sets in configured order.
        template_files: Top-level ``.tmpl`` files.
        text_template_files: Top-level ``.tpl`` files.
        markdown_files: Top-level ``.md`` files.
        copy_files: Files copied into the output.
        hash_assets: Mapping from original asset URL to hashed URL,
            e.g. ``"/styles/x.css" -> "/styles/x.k3JfA09bQz.css"``.
    """

    root: Path
    dev_mode: bool
    config: Config
    templates: TemplateRegistry
    file_sets: list[FileSet] = field(default_factory=list)
    template_files: list[TemplateFile] = field(default_factory=list)
    text_template_files: list[TextTemplateFile] = field(default_factory=list)
    markdown_files: list[MarkdownFile] = field(default_factory=list)
    copy_files: list[CopyFile] = field(default_factory=list)
    hash_assets: dict[str, str] = field(default_factory=dict)

    @property
    def output_dir(self) -> Path:
        return self.root / OUTPUT_DIR

    def context(self) -> dict[str, Any]:
        """Context shared by every rendered document."""
        return {
            "dev_mode": self.dev_mode,
            "file_sets": {fs.name: fs for fs in self.file_sets},
        }


def load_project(root: Path, dev_mode: bool = False, verbose: bool = False) -> Project:
    """Load a project directory.

    Args:
        root: Project directory.
        dev_mode: When true, copied assets keep their names.
        verbose: When true, log the hashed asset names.

    Returns:
        The loaded project.

    Raises:
        ProjectStructureError: If the sitkin directory, the default template
            or a file-set directory is missing.
        ConfigError: If config.json is invalid.
        MissingTemplateError: If a file set or markdown file names a template
            that does not exist.
        DuplicateEntryError: If a file set has two entries with one name.
        MalformedMetadataError: If a markdown metadata block is malformed.
        SourceEncodingError: If a markdown file is not valid UTF-8.
        TemplateLoadError: If a template fails to parse.
    """
    sitkin_dir = root / SITKIN_DIR
    if not sitkin_dir.exists():
        raise ProjectStructureError(
            f"{root} does not appear to be a sitkin project "
            f"(it does not contain a {SITKIN_DIR} directory)"
        )
    if not sitkin_dir.is_dir():
        raise ProjectStructureError(f"{sitkin_dir} is not a directory")

    hash_assets: dict[str, str] = {}
    templates = TemplateRegistry(
        [sitkin_dir, root],
        link=lambda href: hash_assets.get(href, href),
        dev_mode=dev_mode,
    )
    default = templates.load_default(sitkin_dir / f"{DEFAULT_TEMPLATE}{TEMPLATE_SUFFIX}")
    config = load_config(sitkin_dir)

    project = Project(
        root=root,
        dev_mode=dev_mode,
        config=config,
        templates=templates,
        hash_assets=hash_assets,
    )

    for path in sorted(sitkin_dir.glob(f"*{TEMPLATE_SUFFIX}")):
        if path.name[: -len(TEMPLATE_SUFFIX)] != DEFAULT_TEMPLATE:
            templates.add(path)
    unused = {name for name in templates.names() if name != DEFAULT_TEMPLATE}

    for name in config.filesets:
        if name not in templates:
            raise MissingTemplateError(f"no template for file set {name}")
        try:
            project.file_sets.append(
                load_file_set(root / name, templates.get(name), templates)
            )
        except (FileNotFoundError, NotADirectoryError) as exc:
            raise ProjectStructureError(
                f"no directory for file set {name}", root / name, exc
            ) from exc
        unused.discard(name)

    entries = []
    for filename in sorted(os.listdir(root)):
        entry = classify_entry(filename, config.filesets)
        if entry is not None:
            entries.append(entry)
    policy = CopyPolicy(
        ignore=config.ignore_patterns,
        nohash=config.nohash_patterns,
        dev_mode=dev_mode,
    )
    for entry in entries:
        used = _add_entry(project, entry, default, policy)
        if used:
            unused.discard(used)

    if unused:
        logger.warning(
            "Warning: the following templates are not used: %s", ", ".join(sorted(unused))
        )
    if verbose:
        logger.info("Hashed assets:")
        for key in sorted(hash_assets):
            logger.info("  %s -> %s", key, hash_assets[key])
    return project


def _add_entry(
    project: Project, entry: ProjectEntry, default: Template, policy: CopyPolicy
) -> str | None:
    """Fold one classified entry into the project.

    Returns:
        Name of the named template the entry uses, if any.
    """
    path = project.root / entry.filename
    templates = project.templates
    if entry.kind is EntryKind.FILE_SET:
        return None
    if entry.kind is EntryKind.TEMPLATE:
        project.template_files.append(
            TemplateFile(entry.name, path, templates.parse_html_file(path))
        )
        return None
    if entry.kind is EntryKind.TEXT_TEMPLATE:
        project.text_template_files.append(
            TextTemplateFile(entry.name, path, templates.parse_text_file(path))
        )
        return None
    if entry.kind is EntryKind.MARKDOWN:
        metadata, body = read_markdown(path)
        template_name = metadata.get(TEMPLATE_METADATA_KEY)
        if template_name is not None:
            tmpl = templates.get(str(template_name))
            if tmpl is None:
                raise MissingTemplateError(
                    f"no template named {template_name!r}", path
                )
            used = str(template_name)
        else:
            used = entry.name if entry.name in templates else None
            tmpl = templates.get(entry.name) if used else default
        project.markdown_files.append(
            load_markdown_file(
                path, templates, entry.name, tmpl, metadata=metadata, body=body
            )
        )
        return used
    copy_files, hash_assets = discover_copy_files(project.root, entry.filename, policy)
    project.copy_files.extend(copy_files)
    project.hash_assets.update(hash_assets)
    return None
