"""Utility functions for Sitkin.

This module contains small helpers used throughout the Sitkin codebase:
glob compilation, content hashing, entry filename parsing, output directory
handling and duration formatting.

Key functions:
    compile_glob: Compile a shell-style path glob to a regular expression.
    base62_hash: Encode digest bytes as a short base62 token.
    file_hash: Compute the content hash token of a file.
    hashed_name: Insert a hash token before a file's extension.
    parse_entry_filename: Split a file-set entry filename into date and name.
    ensure_clean_dir: Ensure a directory exists and is empty.
    format_duration: Format a duration for humans.
"""

from __future__ import annotations

import hashlib
import re
import shutil
from datetime import date
from pathlib import Path, PurePosixPath

BASE62_ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
HASH_LENGTH = 10

ENTRY_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def compile_glob(pattern: str) -> re.Pattern[str]:
    """Compile a shell-style glob into an anchored regular expression.

    The syntax follows path matching rules: ``*`` matches any run of
    characters except ``/``, ``?`` matches one character except ``/``,
    ``[abc]``, ``[a-z]`` and ``[^a-z]`` match character classes, and ``\\``
    escapes the next character.

    Args:
        pattern: Glob to compile.

    Returns:
        Compiled pattern matching the whole path.

    Raises:
        ValueError: If the pattern is malformed.

    Examples:
        >>> bool(compile_glob("*.css").match("main.css"))
        True

        >>> bool(compile_glob("*.css").match("css/main.css"))
        False
    """
    parts: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        i += 1
        if c == "*":
            parts.append("[^/]*")
        elif c == "?":
            parts.append("[^/]")
        elif c == "\\":
            if i >= n:
                raise ValueError(f"trailing backslash in glob {pattern!r}")
            parts.append(re.escape(pattern[i]))
            i += 1
        elif c == "[":
            cls, i = _compile_class(pattern, i)
            parts.append(cls)
        else:
            parts.append(re.escape(c))
    return re.compile("".join(parts) + r"\Z", re.DOTALL)


def _compile_class(pattern: str, i: int) -> tuple[str, int]:
    """Compile the character class starting just after ``[`` at index i."""
    n = len(pattern)
    negate = i < n and pattern[i] in "^!"
    if negate:
        i += 1
    items: list[str] = []
    while True:
        if i >= n:
            raise ValueError(f"unterminated character class in glob {pattern!r}")
        if pattern[i] == "]":
            if not items:
                raise ValueError(f"empty character class in glob {pattern!r}")
            i += 1
            break
        lo, i = _class_char(pattern, i)
        if i + 1 < n and pattern[i] == "-" and pattern[i + 1] != "]":
            hi, i = _class_char(pattern, i + 1)
            if hi < lo:
                raise ValueError(f"invalid range {lo}-{hi} in glob {pattern!r}")
            items.append(f"{re.escape(lo)}-{re.escape(hi)}")
        else:
            items.append(re.escape(lo))
    return f"[{'^' if negate else ''}{''.join(items)}]", i


def _class_char(pattern: str, i: int) -> tuple[str, int]:
    if pattern[i] == "\\":
        i += 1
        if i >= len(pattern):
            raise ValueError(f"trailing backslash in glob {pattern!r}")
    return pattern[i], i + 1


def base62_hash(digest: bytes) -> str:
    """Encode the first 8 bytes of a digest as a 10-character base62 token.

    Roughly 60 bits survive, which is plenty to tell asset versions apart.

    Args:
        digest: Digest bytes, at least 8 long.

    Returns:
        Token of HASH_LENGTH characters from BASE62_ALPHABET.
    """
    n = int.from_bytes(digest[:8], "big")
    chars = []
    for _ in range(HASH_LENGTH):
        n, m = divmod(n, 62)
        chars.append(BASE62_ALPHABET[m])
    return "".join(chars)


def file_hash(path: Path) -> str:
    """Return the content hash token of a file.

    Args:
        path: File to hash.

    Returns:
        base62 token of the file's SHA-256 digest.
    """
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(64 * 1024), b""):
            h.update(chunk)
    return base62_hash(h.digest())


def hashed_name(relpath: str, token: str) -> str:
    """Insert a hash token before the final extension of a slash path.

    Examples:
        >>> hashed_name("assets/css/x.css", "abc")
        'assets/css/x.abc.css'
    """
    suffix = PurePosixPath(relpath).suffix
    return f"{relpath[: len(relpath) - len(suffix)]}.{token}{suffix}"


def parse_entry_filename(filename: str) -> tuple[date, str] | None:
    """Split a file-set entry filename into its date and entry name.

    Args:
        filename: Name such as ``2018-03-05.hello-world.md``.

    Returns:
        Tuple of (date, entry name), or None if the name is missing the date,
        the date is invalid, or the entry name is empty.

    Examples:
        >>> parse_entry_filename("2018-03-05.hello-world.md")
        (datetime.date(2018, 3, 5), 'hello-world')

        >>> parse_entry_filename("hello-world.md") is None
        True
    """
    if not filename.endswith(".md"):
        return None
    stem = filename[: -len(".md")]
    prefix, sep, name = stem.partition(".")
    if not sep or not name or not ENTRY_DATE_RE.match(prefix):
        return None
    try:
        return date.fromisoformat(prefix), name
    except ValueError:
        return None


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    Args:
        path: Directory path to clean or create.
    """
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True)


def format_duration(seconds: float) -> str:
    """Format a duration with a unit and precision suited to its size.

    Args:
        seconds: Duration in seconds.

    Returns:
        Short string such as ``900ns``, ``1.1ms``, ``9.9s`` or ``5m25s``.

    Examples:
        >>> format_duration(0.0099)
        '9.9ms'

        >>> format_duration(325)
        '5m25s'
    """
    ns = seconds * 1e9
    if ns < 1e3:
        return f"{ns:.0f}ns"
    if ns < 1e5:
        return f"{ns / 1e3:.1f}μs"
    if ns < 1e6:
        return f"{ns / 1e3:.0f}μs"
    if ns < 1e8:
        return f"{ns / 1e6:.1f}ms"
    if ns < 1e9:
        return f"{ns / 1e6:.0f}ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    if seconds < 3600:
        mins = int(seconds // 60)
        return f"{mins}m{seconds - mins * 60:.0f}s"
    hours = int(seconds // 3600)
    mins = int((seconds - hours * 3600) // 60)
    rest = seconds - hours * 3600 - mins * 60
    return f"{hours}h{mins}m{_trim_float(rest)}s"


def _trim_float(value: float) -> str:
    text = f"{value:.9f}".rstrip("0").rstrip(".")
    return text or "0"
