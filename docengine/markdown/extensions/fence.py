# docengine/markdown/extensions/fence.py
"""
Fenced code blocks that keep their full info string.

Replaces Python-Markdown's ``fenced_code`` extension.  Every fence becomes

    <pre><code class="language-LANG" data-info="INFO">CODE</code></pre>

so the code-block dispatcher can recover the attribute fragment later.  A
``math`` fence is rendered in display mode instead.
"""

from __future__ import annotations

import re
from typing import Callable, Optional

from django.utils.html import escape
from markdown.extensions import Extension
from markdown.preprocessors import Preprocessor

from ..options import split_info
from .math import MathRenderer

FENCE_PRIORITY = 25

FENCE_RE = re.compile(
    # A closer repeats the opening character at least as many times as the opener
    r"(?P<fence>^(?P<char>[`~])(?P=char){2,})[ ]*(?P<info>[^\n`]*)\n(?P<code>.*?)(?<=\n)(?P=fence)(?P=char)*[ ]*$",
    re.MULTILINE | re.DOTALL,
)


def render_fence(info: str, code: str, math_renderer: Optional[MathRenderer] = None) -> str:
    info = info.strip()
    lang, _ = split_info(info)
    if lang == "math" and math_renderer is not None and math_renderer.enabled:
        if not code.strip():
            return ""
        return f"<p>{math_renderer.render_display(code)}</p>"

    attrs = ""
    if lang:
        attrs += f' class="language-{escape(lang)}"'
    if info:
        attrs += f' data-info="{escape(info)}"'
    return f"<pre><code{attrs}>{escape(code)}</code></pre>"


def replace_fences(text: str, store: Callable[[str], str], math_renderer: Optional[MathRenderer] = None) -> str:
    """Replace every fenced block in ``text`` with ``store(html)``."""

    def _sub(m):
        html = render_fence(m.group("info"), m.group("code"), math_renderer)
        return f"\n\n{store(html)}\n\n"

    return FENCE_RE.sub(_sub, text)


def fences_to_html(text: str, math_renderer: Optional[MathRenderer] = None) -> str:
    """Inline fences as raw HTML blocks, for parsers that pass raw HTML through."""
    return replace_fences(text, lambda html: html, math_renderer)


class FencePreprocessor(Preprocessor):
    def __init__(self, md, math_renderer: Optional[MathRenderer] = None):
        super().__init__(md)
        self.math_renderer = math_renderer

    def run(self, lines):
        text = "\n".join(lines)
        text = replace_fences(text, self.md.htmlStash.store, self.math_renderer)
        return text.split("\n")


class FenceExtension(Extension):
    def __init__(self, math_renderer: Optional[MathRenderer] = None, **kwargs):
        self.math_renderer = math_renderer
        super().__init__(**kwargs)

    def extendMarkdown(self, md):
        md.registerExtension(self)
        md.preprocessors.register(
            FencePreprocessor(md, self.math_renderer), "docengine_fence", FENCE_PRIORITY
        )


def makeExtension(**kwargs):
    return FenceExtension(**kwargs)
