import os
from pathlib import Path

import pytest

from sitkin.copier import CopyFile, CopyPolicy, copy_tree, discover_copy_files
from sitkin.utils import compile_glob, file_hash, hashed_name


def write_files(root: Path, files: dict) -> None:
    for name, content in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


def make_policy(ignore=(), nohash=(), dev_mode=False) -> CopyPolicy:
    return CopyPolicy(
        ignore=[compile_glob(g) for g in ignore],
        nohash=[compile_glob(g) for g in nohash],
        dev_mode=dev_mode,
    )


@pytest.fixture
def source(tmp_path):
    src = tmp_path / "d1"
    write_files(
        src,
        {
            "favicon.ico": "favicon",
            "a.html": "a",
            "b.js": "b",
            "x/c.css": "c",
            "x/y/d.txt": "d",
            "x/y/e": "e",
            "x/y/z/f.html": "f",
            "g.sh": "g",
        },
    )
    return src


def test_discover_and_copy(source, tmp_path):
    policy = make_policy(ignore=["*.sh"], nohash=["favicon.ico", "x/y/d.txt"])
    bjs = hashed_name("b.js", file_hash(source / "b.js"))
    ccss = hashed_name("x/c.css", file_hash(source / "x/c.css"))

    cases = [
        ("favicon.ico", [CopyFile("favicon.ico", "favicon.ico")], {}),
        ("a.html", [CopyFile("a.html", "a.html")], {}),
        ("b.js", [CopyFile("b.js", bjs)], {"/b.js": f"/{bjs}"}),
        (
            "x",
            [
                CopyFile("x/c.css", ccss),
                CopyFile("x/y/d.txt", "x/y/d.txt"),
                CopyFile("x/y/e", "x/y/e"),
                CopyFile("x/y/z/f.html", "x/y/z/f.html"),
            ],
            {"/x/c.css": f"/{ccss}"},
        ),
        ("g.sh", [], {}),
    ]

    files = []
    for name, want, want_hash_assets in cases:
        got, hash_assets = discover_copy_files(source, name, policy)
        assert got == want, name
        assert hash_assets == want_hash_assets, name
        files.extend(got)

    dest = tmp_path / "d2"
    for cf in files:
        assert cf.copy(source, dest) == dest / cf.dst_path

    assert (dest / "favicon.ico").read_text() == "favicon"
    assert (dest / "a.html").read_text() == "a"
    assert (dest / bjs).read_text() == "b"
    assert (dest / ccss).read_text() == "c"
    assert (dest / "x/y/d.txt").read_text() == "d"
    assert (dest / "x/y/e").read_text() == "e"
    assert (dest / "x/y/z/f.html").read_text() == "f"
    assert not (dest / "g.sh").exists()


def test_hashed_flag():
    assert CopyFile("b.js", "b.abc.js").hashed
    assert not CopyFile("a.html", "a.html").hashed


def test_dev_mode_keeps_names(source):
    files, hash_assets = discover_copy_files(source, "x", make_policy(dev_mode=True))
    assert [cf.src_path for cf in files] == [cf.dst_path for cf in files]
    assert hash_assets == {}


def test_ignored_directory_is_skipped(source):
    files, _ = discover_copy_files(source, "x", make_policy(ignore=["x/y"]))
    assert [cf.src_path for cf in files] == ["x/c.css"]

    files, _ = discover_copy_files(source, "x", make_policy(ignore=["x"]))
    assert files == []


def test_ignore_globs_are_relative_to_root(source):
    # "*.css" only matches top-level names.
    files, _ = discover_copy_files(source, "x", make_policy(ignore=["*.css"]))
    assert "x/c.css" in [cf.src_path for cf in files]

    files, _ = discover_copy_files(source, "x", make_policy(ignore=["x/*.css"]))
    assert "x/c.css" not in [cf.src_path for cf in files]


def test_copy_replaces_existing_and_keeps_mode(tmp_path):
    src = tmp_path / "src"
    dst = tmp_path / "dst"
    write_files(src, {"run.sh": "new"})
    write_files(dst, {"run.sh": "old"})
    os.chmod(src / "run.sh", 0o755)

    CopyFile("run.sh", "run.sh").copy(src, dst)

    assert (dst / "run.sh").read_text() == "new"
    assert (dst / "run.sh").stat().st_mode & 0o777 == 0o755
    assert [p.name for p in dst.iterdir()] == ["run.sh"]


def test_copy_missing_source_leaves_nothing(tmp_path):
    dst = tmp_path / "dst"
    with pytest.raises(FileNotFoundError):
        CopyFile("missing.css", "missing.css").copy(tmp_path, dst)
    assert not (dst / "missing.css").exists()


def test_copy_tree(source, tmp_path):
    dest = tmp_path / "d2"
    hash_assets = copy_tree(dest, source, make_policy(ignore=["*.sh"], nohash=["favicon.ico"]))

    bjs = hashed_name("b.js", file_hash(source / "b.js"))
    assert hash_assets["/b.js"] == f"/{bjs}"
    assert "/favicon.ico" not in hash_assets
    assert (dest / bjs).read_text() == "b"
    assert (dest / "favicon.ico").exists()
    assert not (dest / "g.sh").exists()


def test_failed_rename_removes_temp_file(tmp_path, monkeypatch):
    src = tmp_path / "src"
    dst = tmp_path / "dst"
    write_files(src, {"a.css": "a"})

    def fail_replace(*args):
        raise OSError("rename failed")

    monkeypatch.setattr(os, "replace", fail_replace)
    with pytest.raises(OSError, match="rename failed"):
        CopyFile("a.css", "a.css").copy(src, dst)
    assert list(dst.iterdir()) == []
