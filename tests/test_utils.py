import hashlib
from datetime import date

import pytest

from sitkin.utils import (
    BASE62_ALPHABET,
    HASH_LENGTH,
    base62_hash,
    compile_glob,
    ensure_clean_dir,
    file_hash,
    format_duration,
    hashed_name,
    parse_entry_filename,
)


@pytest.mark.parametrize(
    "pattern,path,expected",
    [
        ("*.sh", "g.sh", True),
        ("*.sh", "x/g.sh", False),
        ("x/*.sh", "x/g.sh", True),
        ("favicon.ico", "favicon.ico", True),
        ("favicon.ico", "favicon.icon", False),
        ("x/y/d.txt", "x/y/d.txt", True),
        ("?.txt", "a.txt", True),
        ("?.txt", "/.txt", False),
        ("[a-c].txt", "b.txt", True),
        ("[a-c].txt", "d.txt", False),
        ("[^a-c].txt", "d.txt", True),
        ("[!a-c].txt", "a.txt", False),
        ("\\*.txt", "*.txt", True),
        ("\\*.txt", "a.txt", False),
        ("node_modules", "node_modules", True),
        ("node_modules", "x/node_modules", False),
    ],
)
def test_compile_glob_matches_whole_slash_path(pattern, path, expected):
    assert bool(compile_glob(pattern).match(path)) is expected


@pytest.mark.parametrize("pattern", ["[a", "abc\\", "[]", "[z-a]"])
def test_compile_glob_rejects_malformed_patterns(pattern):
    with pytest.raises(ValueError):
        compile_glob(pattern)


def test_base62_hash_is_little_endian_digits():
    assert base62_hash(bytes(32)) == "a" * HASH_LENGTH
    assert base62_hash(bytes(7) + b"\x01") == "b" + "a" * 9
    assert base62_hash(bytes(7) + bytes([62])) == "ab" + "a" * 8
    # Only the first 8 bytes count.
    assert base62_hash(bytes(8) + b"\xff" * 24) == "a" * HASH_LENGTH


def test_file_hash(tmp_path):
    a = tmp_path / "a.css"
    b = tmp_path / "b.css"
    a.write_text("css text", encoding="utf-8")
    b.write_text("other", encoding="utf-8")

    token = file_hash(a)
    assert len(token) == HASH_LENGTH
    assert set(token) <= set(BASE62_ALPHABET)
    assert token == base62_hash(hashlib.sha256(b"css text").digest())
    assert token == file_hash(a)
    assert token != file_hash(b)


def test_hashed_name():
    assert hashed_name("assets/css/x.css", "TOKEN") == "assets/css/x.TOKEN.css"
    assert hashed_name("b.min.js", "TOKEN") == "b.min.TOKEN.js"
    assert hashed_name("x/y/e", "TOKEN") == "x/y/e.TOKEN"


@pytest.mark.parametrize(
    "filename,expected",
    [
        ("2018-03-05.hello-world.md", (date(2018, 3, 5), "hello-world")),
        ("2018-03-05.a.b.md", (date(2018, 3, 5), "a.b")),
        ("2018-13-05.bad-month.md", None),
        ("2018-3-5.short.md", None),
        ("2018-03-05..md", None),
        ("2018-03-05.md", None),
        ("hello-world.md", None),
        ("2018-03-05.hello-world.txt", None),
    ],
)
def test_parse_entry_filename(filename, expected):
    assert parse_entry_filename(filename) == expected


def test_ensure_clean_dir(tmp_path):
    target = tmp_path / "gen"
    ensure_clean_dir(target)
    assert target.is_dir()

    (target / "old").mkdir()
    (target / "old" / "file.txt").write_text("x", encoding="utf-8")
    ensure_clean_dir(target)
    assert list(target.iterdir()) == []


@pytest.mark.parametrize(
    "ns,expected",
    [
        (1, "1ns"),
        (900, "900ns"),
        (1_100, "1.1μs"),
        (5_500, "5.5μs"),
        (10_600, "10.6μs"),
        (105_123, "105μs"),
        (900_000, "900μs"),
        (1_100_000, "1.1ms"),
        (9_900_000, "9.9ms"),
        (10_100_000, "10.1ms"),
        (900_000_000, "900ms"),
        (1_000_000_000, "1.0s"),
        (9_900_000_000, "9.9s"),
        (59_123_000_000, "59.1s"),
        (60_123_000_000, "1m0s"),
        (61_123_000_000, "1m1s"),
        (325_000_000_000, "5m25s"),
        (3_599_000_000_000, "59m59s"),
        (3_661_100_000_000, "1h1m1.1s"),
    ],
)
def test_format_duration(ns, expected):
    assert format_duration(ns / 1e9) == expected
