from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from datetime import date
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .content import MarkdownFile


class FileSet(Sequence["MarkdownFile"]):
    """Dated entries of one file set, newest first.

    Templates see this as ``file_sets.<name>``; ``files`` and ``last_date``
    are the usual entry points, and the set itself can be iterated.
    """

    def __init__(self, name: str, files: Iterable[MarkdownFile]):
        self.name = name
        # Name first so equal dates fall back to entry name, ascending.
        by_name = sorted(files, key=lambda f: f.name)
        self.files: list[MarkdownFile] = sorted(
            by_name, key=lambda f: f.date or date.min, reverse=True
        )

    @property
    def last_date(self) -> date | None:
        return self.files[0].date if self.files else None

    def __iter__(self) -> Iterator[MarkdownFile]:
        return iter(self.files)

    def __len__(self) -> int:
        return len(self.files)

    def __getitem__(self, item):
        return self.files[item]

    def get(self, name: str) -> MarkdownFile | None:
        for f in self.files:
            if f.name == name:
                return f
        return None

    def latest(self, count: int = 5) -> list[MarkdownFile]:
        return self.files[:count]

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"FileSet({self.name!r}, {len(self.files)} files)"
