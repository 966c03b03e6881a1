"""Site building functionality for Sitkin.

This module contains the core logic for turning a loaded Project into the
output tree. The order of the steps matters:

1. The output directory is deleted and recreated.
2. Assets are copied under their hashed names. The hash map is already
   complete after loading, so every later step can rely on it.
3. Every markdown body is rendered to HTML, so any template can show the
   contents of any file-set entry.
4. File-set entries, top-level templates, text templates and top-level
   markdown files are rendered and written.

HTML output has its asset links rewritten and is minified before writing.
Output files are created exclusively, so two inputs can never silently
overwrite each other.

Key classes and functions:
- Renderer: Renders one project.
- build_site: Load and render a project.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from jinja2 import Template
from markupsafe import Markup

from .content import MarkdownFile
from .errors import RenderError
from .html_utils import rewrite_asset_links
from .project import Project, load_project
from .protocols import MarkdownRenderer, Minifier
from .renderers import HTMLMinifier, render_markdown
from .utils import ensure_clean_dir, format_duration

logger = logging.getLogger(__name__)

HTML_SUFFIX = ".html"


@dataclass
class BuildResult:
    """Result of a site build.

    Attributes:
        project: The loaded project.
        output_dir: Directory the site was written to.
        outputs: Every file written, in write order.
        elapsed: Build time in seconds.
    """

    project: Project
    output_dir: Path
    outputs: list[Path]
    elapsed: float


def _format_error_message(exc: Exception) -> str:
    """Format an exception into a user-friendly error message.

    Args:
        exc: The exception to format.

    Returns:
        A human-readable error message.
    """
    error_type = type(exc).__name__
    error_msg = str(exc)

    if error_type == "UndefinedError":
        return f"Undefined variable: {error_msg}"
    if error_type == "FileExistsError":
        return f"Output file already exists (two inputs render to the same path): {error_msg}"
    if error_type == "TypeError":
        return f"Type error: {error_msg}"
    if error_type == "AttributeError":
        return f"Attribute error: {error_msg}"

    return f"{error_type}: {error_msg}"


class Renderer:
    """Writes a loaded project to its output directory.

    Attributes:
        project: Project to render.
        minifier: HTML minifier for this build.
        markdown: Markdown to HTML converter.
        outputs: Files written so far.
    """

    def __init__(
        self,
        project: Project,
        minifier: Minifier,
        markdown: MarkdownRenderer = render_markdown,
    ):
        self.project = project
        self.minifier = minifier
        self.markdown = markdown
        self.outputs: list[Path] = []

    @property
    def output_dir(self) -> Path:
        return self.project.output_dir

    def render(self) -> list[Path]:
        """Render the whole project.

        Returns:
            Every file written.

        Raises:
            RenderError: If a template fails to execute or a file cannot be
                written.
        """
        project = self.project
        try:
            ensure_clean_dir(self.output_dir)
        except OSError as exc:
            raise RenderError(
                f"cannot recreate output dir: {exc}", self.output_dir, exc
            ) from exc

        for cf in project.copy_files:
            try:
                self.outputs.append(cf.copy(project.root, self.output_dir))
            except OSError as exc:
                raise RenderError(
                    _format_error_message(exc), project.root / cf.src_path, exc
                ) from exc

        for fs in project.file_sets:
            for md in fs.files:
                self._render_contents(md)
        for md in project.markdown_files:
            self._render_contents(md)

        context = project.context()
        for fs in project.file_sets:
            fs_dir = self.output_dir / fs.name
            try:
                fs_dir.mkdir()
            except OSError as exc:
                raise RenderError(
                    _format_error_message(exc), project.root / fs.name, exc
                ) from exc
            for md in fs.files:
                self._write_html(
                    fs_dir / f"{md.name}{HTML_SUFFIX}",
                    md.path,
                    md.template,
                    {**context, **md.template_context()},
                )
        for tf in project.template_files:
            self._write_html(
                self.output_dir / f"{tf.name}{HTML_SUFFIX}", tf.path, tf.template, context
            )
        for ttf in project.text_template_files:
            text = self._execute(ttf.path, ttf.template, context)
            self._write(self.output_dir / ttf.name, ttf.path, text)
        for md in project.markdown_files:
            self._write_html(
                self.output_dir / f"{md.name}{HTML_SUFFIX}",
                md.path,
                md.template,
                {**context, **md.template_context()},
            )
        return self.outputs

    def _render_contents(self, md: MarkdownFile) -> None:
        text = self._execute(md.path, md.body, {})
        md.contents = Markup(self.markdown(text))

    def _execute(self, source: Path, template: Template, context: dict[str, Any]) -> str:
        try:
            return template.render(context)
        except Exception as exc:
            raise RenderError(_format_error_message(exc), source, exc) from exc

    def _write_html(
        self, target: Path, source: Path, template: Template, context: dict[str, Any]
    ) -> None:
        html = self._execute(source, template, context)
        html = rewrite_asset_links(
            html, self.project.hash_assets, source.relative_to(self.project.root).as_posix()
        )
        self._write(target, source, self.minifier.minify(html))

    def _write(self, target: Path, source: Path, text: str) -> None:
        try:
            with open(target, "x", encoding="utf-8") as f:
                f.write(text)
        except OSError as exc:
            raise RenderError(_format_error_message(exc), source, exc) from exc
        self.outputs.append(target)


def build_site(
    project_root: Path,
    dev_mode: bool = False,
    verbose: bool = False,
    minifier: Minifier | None = None,
) -> BuildResult:
    """Load and render a project.

    Args:
        project_root: Project directory.
        dev_mode: When true, assets keep their original names.
        verbose: When true, log extra diagnostics.
        minifier: HTML minifier; a fresh HTMLMinifier by default.

    Returns:
        BuildResult describing the written site.

    Raises:
        SitkinError: If loading or rendering fails.
    """
    start = time.perf_counter()
    project = load_project(project_root, dev_mode=dev_mode, verbose=verbose)
    outputs = Renderer(project, minifier or HTMLMinifier()).render()
    elapsed = time.perf_counter() - start
    logger.info("Successfully built in %s", format_duration(elapsed))
    return BuildResult(
        project=project,
        output_dir=project.output_dir,
        outputs=outputs,
        elapsed=elapsed,
    )
