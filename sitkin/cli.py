"""Command-line interface for Sitkin.

This module defines the CLI commands using Click framework.

Commands:
- build: Build the site into gen/.
- serve: Run the development server, rebuilding on change.
- entry: Create a new file-set entry interactively.
"""

from __future__ import annotations

import json
import logging
from datetime import date
from pathlib import Path

import click
import questionary

from . import __version__
from .config import load_config
from .errors import SitkinError
from .project import SITKIN_DIR
from .utils import parse_entry_filename

_DIR_ARGUMENT = click.argument(
    "directory",
    required=False,
    default=".",
    type=click.Path(file_okay=False, path_type=Path),
)
_VERBOSE_OPTION = click.option("-v", "--verbose", is_flag=True, help="Verbose mode")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
    )


@click.group()
@click.version_option(version=__version__, prog_name="sitkin")
def cli():
    """Sitkin static site generator.

    DIRECTORY defaults to the current directory.
    """


@cli.command()
@_DIR_ARGUMENT
@_VERBOSE_OPTION
def build(directory: Path, verbose: bool):
    """Build the site into DIRECTORY/gen."""
    _configure_logging(verbose)
    from .build import build_site

    try:
        result = build_site(directory, dev_mode=False, verbose=verbose)
    except (SitkinError, OSError) as exc:
        click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
        click.echo(click.style(f"  Error: {exc}", fg="white"), err=True)
        raise SystemExit(1) from None
    click.echo(f"Wrote {len(result.outputs)} files into {result.output_dir}")


@cli.command()
@_DIR_ARGUMENT
@click.option(
    "--addr",
    default="localhost:8080",
    show_default=True,
    help="HTTP address to serve at; the reload websocket uses the next port",
)
@click.option("--no-browser", is_flag=True, help="Do not open a browser window")
@_VERBOSE_OPTION
def serve(directory: Path, addr: str, no_browser: bool, verbose: bool):
    """Serve DIRECTORY in dev mode and rebuild when files change."""
    _configure_logging(verbose)
    from .server import DevServer

    try:
        server = DevServer(directory, address=addr, verbose=verbose, open_browser=not no_browser)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--addr") from exc
    server.start()


@cli.command()
@_DIR_ARGUMENT
def entry(directory: Path):
    """Create a new file-set entry interactively."""
    sitkin_dir = directory / SITKIN_DIR
    if not sitkin_dir.is_dir():
        raise click.ClickException(
            f"No {SITKIN_DIR}/ directory found in {directory}. Is this a sitkin project?"
        )
    try:
        config = load_config(sitkin_dir)
    except SitkinError as exc:
        raise click.ClickException(str(exc)) from exc
    if not config.filesets:
        raise click.ClickException(
            f'No file sets configured. Add "filesets" to {SITKIN_DIR}/config.json first.'
        )

    file_set = questionary.select(
        "Select file set:",
        choices=config.filesets,
        style=_questionary_style(),
    ).ask()
    if file_set is None:
        raise click.Abort()

    name = questionary.text(
        "Entry name (used in the URL):",
        validate=_validate_entry_name,
        style=_questionary_style(),
    ).ask()
    if name is None:
        raise click.Abort()
    name = name.strip()

    title = questionary.text(
        "Title:",
        default=_titleize(name),
        style=_questionary_style(),
    ).ask()
    if title is None:
        raise click.Abort()

    entry_date = questionary.text(
        "Date (YYYY-MM-DD):",
        default=date.today().isoformat(),
        validate=lambda x: parse_entry_filename(f"{x.strip()}.x.md") is not None
        or "Enter a date as YYYY-MM-DD",
        style=_questionary_style(),
    ).ask()
    if entry_date is None:
        raise click.Abort()

    target_dir = directory / file_set
    existing = _existing_entries(target_dir)
    if name in existing:
        raise click.ClickException(
            f"An entry named '{name}' already exists: {existing[name]}"
        )

    target_dir.mkdir(parents=True, exist_ok=True)
    target_path = target_dir / f"{entry_date.strip()}.{name}.md"
    metadata = json.dumps({"title": title}, indent=2, ensure_ascii=False)
    target_path.write_text(f"<!--\n{metadata}\n-->\n# {title}\n\n", encoding="utf-8")
    click.echo(f"Created {target_path}")


def _validate_entry_name(value: str) -> bool | str:
    value = value.strip()
    if not value:
        return "Entry name cannot be empty"
    if "/" in value or value.startswith("."):
        return "Entry name cannot contain '/' or start with '.'"
    return True


def _existing_entries(folder: Path) -> dict[str, str]:
    """Map entry names already used in a file-set directory to their filenames."""
    entries: dict[str, str] = {}
    if folder.is_dir():
        for f in folder.iterdir():
            parsed = parse_entry_filename(f.name)
            if parsed is not None:
                entries[parsed[1]] = f.name
    return entries


def _titleize(name: str) -> str:
    """Convert an entry name to title case."""
    words = name.replace("-", " ").replace("_", " ").split()
    return " ".join(word.capitalize() for word in words)


def _questionary_style():
    """Return consistent questionary style."""
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
            ("pointer", "fg:cyan bold"),
            ("highlighted", "fg:cyan bold"),
            ("selected", "fg:cyan"),
        ]
    )


def main():
    """Entry point for the CLI application."""
    cli()
