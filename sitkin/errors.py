"""Error types for Sitkin.

Every failure the build pipeline reports is a SitkinError subclass, so the CLI
and the dev server can print a readable cause without a traceback. The
subclasses follow the kind of input that was wrong:

- structural: ProjectStructureError
- configuration: ConfigError
- content: DuplicateEntryError, MalformedMetadataError, SourceEncodingError
- template: MissingTemplateError, TemplateLoadError
- render and I/O: RenderError
"""

from __future__ import annotations

from pathlib import Path


class SitkinError(Exception):
    """Base error with optional file context.

    Attributes:
        message: Human-readable error message.
        source_path: Path to the file that caused the error, if any.
        original_error: The original exception that was caught, if any.
    """

    def __init__(
        self,
        message: str,
        source_path: Path | None = None,
        original_error: Exception | None = None,
    ):
        self.message = message
        self.source_path = source_path
        self.original_error = original_error
        if source_path is not None:
            super().__init__(f"{source_path}: {message}")
        else:
            super().__init__(message)


class ProjectStructureError(SitkinError):
    """A required directory or file is missing or has the wrong type."""


class ConfigError(SitkinError):
    """config.json is not valid JSON, has the wrong shape, or holds a bad glob."""


class DuplicateEntryError(SitkinError):
    """Two files in one file set resolve to the same entry name."""


class MalformedMetadataError(SitkinError):
    """A markdown metadata block is unterminated or is not a JSON object."""


class SourceEncodingError(SitkinError):
    """A markdown file is not valid UTF-8."""


class MissingTemplateError(SitkinError):
    """A file set or markdown file refers to a template that does not exist."""


class TemplateLoadError(SitkinError):
    """A template (other than the default layout) failed to parse."""


class RenderError(SitkinError):
    """Template execution or output writing failed during render."""
