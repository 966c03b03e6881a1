"""Project configuration for Sitkin.

Configuration lives in ``sitkin/config.json`` and is optional:

    {
      "ignore": ["*.sh", "node_modules"],
      "nohash": ["favicon.ico", "robots.txt"],
      "filesets": ["posts"]
    }

Globs are compiled when the config is loaded, so a bad pattern fails the
build before anything is written.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .errors import ConfigError
from .utils import compile_glob

CONFIG_FILENAME = "config.json"


@dataclass
class Config:
    """Parsed project configuration.

    Attributes:
        ignore: Globs for paths that are never copied.
        nohash: Globs for paths copied under their original name.
        filesets: Names of subdirectories that are file sets.
        ignore_patterns: Compiled ignore globs.
        nohash_patterns: Compiled nohash globs.
    """

    ignore: list[str] = field(default_factory=list)
    nohash: list[str] = field(default_factory=list)
    filesets: list[str] = field(default_factory=list)
    ignore_patterns: list[re.Pattern[str]] = field(default_factory=list, repr=False)
    nohash_patterns: list[re.Pattern[str]] = field(default_factory=list, repr=False)

    def __post_init__(self) -> None:
        self.ignore_patterns = _compile_all("ignore", self.ignore)
        self.nohash_patterns = _compile_all("nohash", self.nohash)


def _compile_all(kind: str, globs: list[str]) -> list[re.Pattern[str]]:
    patterns = []
    for glob in globs:
        try:
            patterns.append(compile_glob(glob))
        except ValueError as exc:
            raise ConfigError(f"bad {kind} glob {glob!r}: {exc}", original_error=exc) from exc
    return patterns


def load_config(sitkin_dir: Path) -> Config:
    """Load configuration from config.json in the sitkin directory.

    Args:
        sitkin_dir: The project's ``sitkin`` directory.

    Returns:
        Config with defaults for anything not set.

    Raises:
        ConfigError: If the file is not valid JSON, has the wrong shape, or
            contains a malformed glob.
    """
    config_path = sitkin_dir / CONFIG_FILENAME
    if not config_path.exists():
        return Config()
    try:
        with open(config_path, encoding="utf-8") as f:
            loaded = json.load(f)
    except ValueError as exc:
        raise ConfigError(
            f"error loading {CONFIG_FILENAME}: {exc}", config_path, exc
        ) from exc
    if not isinstance(loaded, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a JSON object", config_path)
    return Config(
        ignore=_string_list(loaded, "ignore", config_path),
        nohash=_string_list(loaded, "nohash", config_path),
        filesets=_string_list(loaded, "filesets", config_path),
    )


def _string_list(loaded: dict[str, Any], key: str, config_path: Path) -> list[str]:
    value = loaded.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{key!r} must be a list of strings", config_path)
    return list(value)
