# docengine/markdown/postprocessors/toc.py

from __future__ import annotations

import logging
import re
from typing import Callable, Sequence

from ..cache import CacheStore
from ..context import Heading
from ..preprocessors.transformer import TOC_MARKER

logger = logging.getLogger(__name__)

TOC_MARKER_RE = re.compile(r"^\s*<p>" + re.escape(TOC_MARKER) + r"</p>\s*", re.M)


def build_toc(
    headings: Sequence[Heading],
    ordered: bool = False,
    depth_from: int = 1,
    depth_to: int = 6,
    tab: str = "\t",
) -> str:
    """
    Markdown list linking to ``headings``.

    Entries outside ``depth_from..depth_to`` are skipped; the shallowest
    remaining level is not indented, and an entry sits at most one step
    deeper than the one before it.
    """
    selected = [h for h in headings if depth_from <= h.level <= depth_to]
    if not selected:
        return ""
    top = min(h.level for h in selected)
    bullet = "1." if ordered else "*"
    lines = []
    depth = -1
    for heading in selected:
        depth = min(heading.level - top, depth + 1)
        lines.append(f"{tab * depth}{bullet} [{heading.content}](#{heading.id})")
    return "\n".join(lines) + "\n"


class TocTracker:
    """Keeps the TOC markup in step with the heading list of the last pass."""

    def __init__(self, cache: CacheStore):
        self.cache = cache
        self.toc_html = ""
        self.generations = 0
        self._settings = None

    def update(
        self,
        headings: Sequence[Heading],
        render: Callable[[str], str],
        ordered: bool = False,
        depth_from: int = 1,
        depth_to: int = 6,
        tab: str = "\t",
    ) -> str:
        """Rebuild the TOC when the headings or the list settings differ from the last pass."""
        headings = list(headings)
        settings = (ordered, depth_from, depth_to, tab)
        if headings != self.cache.last_headings or settings != self._settings:
            logger.debug(f"Headings changed, rebuilding TOC ({len(headings)} entries)")
            markdown_list = build_toc(headings, ordered, depth_from, depth_to, tab)
            self.toc_html = render(markdown_list) if markdown_list else ""
            self.generations += 1
        self._settings = settings
        self.cache.last_headings = headings
        return self.toc_html


def substitute_toc_marker(html: str, toc_html: str) -> str:
    """Replace a ``[MDTOC]`` paragraph with the TOC markup."""
    return TOC_MARKER_RE.sub(lambda _: toc_html, html)
