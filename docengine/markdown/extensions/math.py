# docengine/markdown/extensions/math.py
"""
Inline and display math for Python-Markdown.

Delimiters come from the engine configuration.  Block (display) pairs are
tried before inline pairs at the same position and the first pair whose close
delimiter can be found wins.  A span with no close delimiter, or with empty
content, is left as literal text.

The processor runs at priority 185: after code spans (190), so ``$`` inside
backticks is never math, and before backslash escapes (180), so ``\\(`` and
``\\[`` still reach us.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Optional, Sequence

from django.utils.html import escape
from markdown.extensions import Extension
from markdown.inlinepatterns import InlineProcessor

logger = logging.getLogger(__name__)

MATH_PRIORITY = 185
MATH_ERROR_STYLE = "color: #ee7f49; font-weight: 500;"


def find_close(text: str, start: int, close: str) -> int:
    """
    Index of ``close`` in ``text`` at or after ``start``, skipping escaped characters.

    The close delimiter is checked before the escape so delimiters that begin
    with a backslash (``\\)``, ``\\]``) are still found.  Returns -1 if missing.
    """
    i = start
    while i < len(text):
        if text.startswith(close, i):
            return i
        if text[i] == "\\":
            i += 2
            continue
        i += 1
    return -1


class MathRenderer:
    """Turns an expression into markup for the configured math engine."""

    def __init__(
        self,
        option: str = "KaTeX",
        inline_delimiters: Optional[Sequence[Sequence[str]]] = None,
        block_delimiters: Optional[Sequence[Sequence[str]]] = None,
        render_math: Optional[Callable[[str, bool], str]] = None,
    ):
        self.option = option or "None"
        self.inline_delimiters = [tuple(pair) for pair in (inline_delimiters or [])]
        self.block_delimiters = [tuple(pair) for pair in (block_delimiters or [])]
        self.render_math = render_math

    @property
    def enabled(self) -> bool:
        return self.option in ("KaTeX", "MathJax")

    def delimiters(self):
        """(open, close, display) triples, display pairs first."""
        for open_, close in self.block_delimiters:
            yield open_, close, True
        for open_, close in self.inline_delimiters:
            yield open_, close, False

    def match_at(self, text: str, pos: int):
        """
        Find a math span starting exactly at ``pos``.

        Returns:
            ``(content, open, close, display, end)`` or None.
        """
        for open_, close, display in self.delimiters():
            if not text.startswith(open_, pos):
                continue
            content_start = pos + len(open_)
            close_at = find_close(text, content_start, close)
            if close_at == -1:
                continue
            content = text[content_start:close_at]
            if not content.strip():
                continue
            return content, open_, close, display, close_at + len(close)
        return None

    def render(self, content: str, open_: str, close: str, display: bool) -> str:
        if not self.enabled:
            return ""
        tag = "div" if display else "span"
        if self.option == "KaTeX" and self.render_math is not None:
            try:
                return self.render_math(content.strip(), display)
            except Exception as exc:
                logger.warning(f"Math rendering failed: {exc}")
                return f'<span style="{MATH_ERROR_STYLE}">{escape(str(exc))}</span>'
        # MathJax markup; also the KaTeX fallback when no engine is injected
        expression = (open_ + content + close).replace("\n", "")
        return f'<{tag} class="mathjax-exps">{escape(expression)}</{tag}>'

    def render_display(self, content: str) -> str:
        """Render ``content`` in display mode with the first block delimiter pair."""
        open_, close = self.block_delimiters[0] if self.block_delimiters else ("$$", "$$")
        return self.render(content, open_, close, True)


class MathInlineProcessor(InlineProcessor):
    def __init__(self, renderer: MathRenderer, md=None):
        self.renderer = renderer
        openers = sorted({open_ for open_, _, _ in renderer.delimiters()}, key=len, reverse=True)
        pattern = r"(?<!\\)(?:" + "|".join(re.escape(o) for o in openers) + ")"
        super().__init__(pattern, md)

    def handleMatch(self, m, data):
        found = self.renderer.match_at(data, m.start(0))
        if found is None:
            return None, None, None
        content, open_, close, display, end = found
        html = self.renderer.render(content, open_, close, display)
        return self.md.htmlStash.store(html), m.start(0), end


class MathExtension(Extension):
    # Not a config entry: Extension.setConfig coerces values whose default is None to bool
    def __init__(self, renderer: Optional[MathRenderer] = None, **kwargs):
        self.renderer = renderer
        super().__init__(**kwargs)

    def extendMarkdown(self, md):
        renderer = self.renderer
        if renderer is None or not renderer.enabled:
            return
        if not list(renderer.delimiters()):
            return
        md.inlinePatterns.register(MathInlineProcessor(renderer, md), "math", MATH_PRIORITY)


def makeExtension(**kwargs):
    return MathExtension(**kwargs)
