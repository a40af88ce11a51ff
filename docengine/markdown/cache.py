# docengine/markdown/cache.py
"""
Caches kept across render passes of one document.

- diagram cache: content hash -> rendered markup.  A pass fills a fresh
  buffer and the buffer replaces the live map wholesale at the end of a
  preview pass, so a pass never sees a mix of old and new entries.
- file cache: resolved path -> file contents, for import expansion.
- code-chunk store: chunk id -> CodeChunkData, persistent until cleared.

The three caches are cleared together.  The last rendered HTML and the last
seen headings are snapshots, not caches, and survive ``clear()``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterator, Optional

if TYPE_CHECKING:
    from .context import CodeChunkData, Heading

logger = logging.getLogger(__name__)


class CodeChunkStore:
    """Ordered chunk records with stable indices and an id -> index map."""

    def __init__(self):
        self._records: list[CodeChunkData] = []
        self._index: dict[str, int] = {}

    def get(self, chunk_id) -> Optional[CodeChunkData]:
        if chunk_id is None:
            return None
        position = self._index.get(str(chunk_id))
        if position is None:
            return None
        return self._records[position]

    def put(self, record: CodeChunkData) -> None:
        position = self._index.get(record.id)
        if position is None:
            self._index[record.id] = len(self._records)
            self._records.append(record)
        else:
            self._records[position] = record

    def ids(self) -> list[str]:
        return [record.id for record in self._records]

    def clear(self) -> None:
        self._records = []
        self._index = {}

    def __contains__(self, chunk_id) -> bool:
        return str(chunk_id) in self._index

    def __iter__(self) -> Iterator[CodeChunkData]:
        return iter(list(self._records))

    def __len__(self) -> int:
        return len(self._records)


class CacheStore:
    def __init__(self):
        self._diagrams: dict[str, str] = {}
        self.files: dict[str, str] = {}
        self.code_chunks = CodeChunkStore()

        self.last_rendered_html: str = ""
        self.last_headings: list[Heading] = []

    def get_diagram(self, key: str) -> Optional[str]:
        return self._diagrams.get(key)

    def new_diagram_buffer(self) -> dict[str, str]:
        return {}

    def commit_diagrams(self, buffer: dict[str, str]) -> None:
        logger.debug(f"Committing {len(buffer)} diagram(s), dropping {len(self._diagrams)}")
        self._diagrams = buffer

    @property
    def diagram_keys(self) -> set[str]:
        return set(self._diagrams)

    def clear(self) -> None:
        self._diagrams = {}
        self.files = {}
        self.code_chunks.clear()
