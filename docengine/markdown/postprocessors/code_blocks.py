# docengine/markdown/postprocessors/code_blocks.py
"""
Rewrites every ``<pre>`` of a rendered document.

Preparation runs synchronously over all blocks in document order: options
are parsed, blocks are routed, code chunks are registered and diagram keys
are computed.  Rendering is then launched for all blocks at once and joined.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional

from bs4 import BeautifulSoup, Tag
from django.utils.html import escape

from ..code_chunks import AUTO_ID_PREFIX, CodeChunkRuntime, call_capability
from ..context import CodeChunkData, RenderContext, RenderOptions
from ..errors import OptionsError
from ..options import BlockKind, CodeBlockOptions, diagram_kind, parse_options, route, split_info
from .utils import add_class, parse_fragment, replace_with_html, set_inner_html

logger = logging.getLogger(__name__)

LINE_BREAK_RE = re.compile(r"\n(?!\Z)")

BUTTON_GROUP = (
    '<div class="btn-group">'
    '<div class="run-btn btn"><span>▶︎</span></div>'
    '<div class="run-all-btn btn">all</div>'
    "</div>"
)
STATUS_LINE = '<div class="status">running...</div>'


def line_numbers_gutter(code: str) -> str:
    count = len(LINE_BREAK_RE.findall(code)) + 1
    return '<span aria-hidden="true" class="line-numbers-rows">' + "<span></span>" * count + "</span>"


def diagram_key(options_str: str, code: str) -> str:
    return hashlib.md5((options_str + code).encode("utf-8")).hexdigest()


@dataclass
class _Block:
    pre: Tag
    lang: str
    code: str
    options_str: str
    options: CodeBlockOptions
    kind: BlockKind
    key: Optional[str] = None
    chunk: Optional[CodeChunkData] = None


class CodeBlockDispatcher:
    def __init__(
        self,
        context: RenderContext,
        runtime: CodeChunkRuntime,
        highlight: Callable,
        render_diagram: Callable,
    ):
        self.context = context
        self.runtime = runtime
        self.highlight = highlight
        self.render_diagram = render_diagram

    async def dispatch(
        self, soup: BeautifulSoup, options: RenderOptions, id_prefix: str = AUTO_ID_PREFIX
    ) -> dict[str, str]:
        """
        Render all code blocks in ``soup`` in place.

        ``id_prefix`` numbers chunks that have no explicit id.

        Returns:
            The diagram buffer filled by this pass; the caller decides whether
            to commit it.
        """
        fresh = self.context.cache.new_diagram_buffer()
        pending: dict[str, asyncio.Future] = {}
        pass_chunks: list[CodeChunkData] = []

        blocks = []
        for pre in soup.find_all("pre"):
            block = self._prepare(pre, pass_chunks, id_prefix)
            if block is not None:
                blocks.append(block)

        await asyncio.gather(*(self._render(block, fresh, pending, options) for block in blocks))
        return fresh

    def _prepare(self, pre: Tag, pass_chunks: list[CodeChunkData], id_prefix: str) -> Optional[_Block]:
        code_tag = pre.find("code", recursive=False)
        if code_tag is not None:
            classes = code_tag.get("class") or ["language-text"]
            info = code_tag.get("data-info")
            if info is None:
                info = re.sub(r"^language-", "", " ".join(classes))
            code = code_tag.get_text()
        else:
            info = "text"
            code = pre.get_text()

        lang, options_str = split_info(info)
        lang = lang or "text"
        pre["class"] = [f"language-{lang}"]
        if code_tag is not None:
            add_class(code_tag, f"language-{lang}")

        try:
            options = CodeBlockOptions.from_mapping(parse_options(options_str))
        except OptionsError as exc:
            logger.warning(f"Bad options for {lang} block: {exc}")
            replace_with_html(
                pre,
                f'<pre class="language-text">OptionsError: {escape("{" + options_str + "}")}'
                f"<br>{escape(str(exc))}</pre>",
            )
            return None

        kind = route(lang, options)
        block = _Block(pre=pre, lang=lang, code=code, options_str=options_str, options=options, kind=kind)
        if kind is BlockKind.DIAGRAM:
            block.key = diagram_key(options_str, code)
        elif kind is BlockKind.CODE_CHUNK:
            block.chunk = self.runtime.register(code, lang, options, pass_chunks, id_prefix)
        return block

    async def _render(self, block: _Block, fresh: dict, pending: dict, options: RenderOptions) -> None:
        if block.kind is BlockKind.DIAGRAM:
            await self._render_diagram(block, fresh, pending)
        elif block.kind is BlockKind.MERMAID:
            # Always handed to the client-side renderer; never cached
            replace_with_html(block.pre, f'<div class="mermaid">{escape(block.code)}</div>')
        elif block.kind is BlockKind.CODE_CHUNK:
            await self._render_code_chunk(block, options)
        else:
            await self._render_plain(block)

    async def _render_diagram(self, block: _Block, fresh: dict, pending: dict) -> None:
        svg = self.context.cache.get_diagram(block.key)
        if svg is None:
            task = pending.get(block.key)
            if task is None:
                logger.debug(f"Diagram cache miss {block.key}")
                task = asyncio.ensure_future(
                    call_capability(
                        self.render_diagram,
                        diagram_kind(block.lang),
                        block.code,
                        block.options.as_dict(),
                        self.context.file_directory_path,
                    )
                )
                pending[block.key] = task
            try:
                svg = await task
            except Exception as exc:
                logger.warning(f"Diagram rendering failed: {exc}")
                replace_with_html(block.pre, f'<pre class="language-text">{escape(str(exc))}</pre>')
                return
        fresh[block.key] = svg
        replace_with_html(block.pre, f"<p>{svg}</p>")

    async def _highlight(self, code: str, lang: str) -> Optional[str]:
        try:
            return await call_capability(self.highlight, code, lang)
        except Exception as exc:
            logger.debug(f"No highlighting for '{lang}': {exc}")
            return None

    async def _render_plain(self, block: _Block) -> None:
        pre = block.pre
        highlighted = await self._highlight(block.code, block.lang)
        if highlighted is not None:
            set_inner_html(pre, highlighted)
        if block.options.class_:
            add_class(pre, str(block.options.class_))
        if "line-numbers" in (pre.get("class") or []):
            for node in list(parse_fragment(line_numbers_gutter(block.code)).contents):
                pre.append(node)

    async def _render_code_chunk(self, block: _Block, options: RenderOptions) -> None:
        chunk = block.chunk
        chunk_options = chunk.options

        if options.triggered_by_save and chunk_options.run_on_save:
            await self.runtime.run_code_chunk(chunk.id)

        source = ""
        if not chunk_options.hide:
            highlighted = await self._highlight(block.code, block.lang)
            pre_class = f"language-{block.lang}" if highlighted is not None else "language-text"
            classes = " ".join(filter(None, [pre_class, str(chunk_options.class_ or "")]))
            inner = highlighted if highlighted is not None else escape(block.code)
            gutter = line_numbers_gutter(block.code) if "line-numbers" in classes.split() else ""
            source = f'<pre class="{escape(classes)}">{inner}{gutter}</pre>'

        result = chunk.result
        if not result and chunk_options.element:
            result = chunk_options.element
            chunk.result = result

        cmd = str(chunk_options.cmd)
        container_class = "code-chunk running" if chunk.running else "code-chunk"
        js_code = block.code if cmd == "javascript" else ""
        html = (
            f'<div class="{container_class}" data-id="{escape(chunk.id)}" data-cmd="{escape(cmd)}" '
            f'data-code="{escape(js_code)}">'
            f"{source}{BUTTON_GROUP}{STATUS_LINE}"
            f'<div class="output-div">{result}</div>'
        )
        if not options.is_for_preview and cmd == "javascript":
            html += f"<script>{block.code}</script>"
        html += "</div>"
        replace_with_html(block.pre, html)
