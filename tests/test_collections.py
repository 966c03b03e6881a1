from datetime import date
from pathlib import Path

from jinja2 import Template

from sitkin.collections import FileSet
from sitkin.content import MarkdownFile


def entry(name, entry_date):
    return MarkdownFile(
        name=name,
        path=Path(f"posts/{entry_date}.{name}.md"),
        template=Template(""),
        body=Template(""),
        date=entry_date,
    )


def test_file_set_orders_newest_first():
    fs = FileSet(
        "posts",
        [
            entry("a", date(2018, 1, 1)),
            entry("c", date(2018, 2, 1)),
            entry("b", date(2018, 2, 1)),
        ],
    )
    assert [f.name for f in fs] == ["b", "c", "a"]
    assert [f.name for f in fs.files] == ["b", "c", "a"]
    assert len(fs) == 3
    assert fs[0].name == "b"
    assert fs.last_date == date(2018, 2, 1)


def test_file_set_lookup():
    fs = FileSet("posts", [entry("a", date(2018, 1, 1)), entry("b", date(2019, 1, 1))])
    assert fs.get("a").date == date(2018, 1, 1)
    assert fs.get("missing") is None
    assert [f.name for f in fs.latest(1)] == ["b"]
    assert [f.name for f in fs.latest()] == ["b", "a"]


def test_empty_file_set():
    fs = FileSet("posts", [])
    assert len(fs) == 0
    assert fs.last_date is None
    assert list(fs) == []
