# docengine/markdown/code_chunks.py
"""
Executable code chunks.

A fenced block with a ``cmd`` option is a code chunk.  Chunks are registered
on every pass in document order, which fixes their ``prev``/``next`` links
before anything runs; execution can then happen in any order.
"""

from __future__ import annotations

import asyncio
import base64
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional

from django.utils.html import escape

from .context import CodeChunkData, RenderContext
from .options import CodeBlockOptions
from .postprocessors.toc import build_toc

logger = logging.getLogger(__name__)

AUTO_ID_PREFIX = "code-chunk-id-"
NESTED_ID_PREFIX = "code-chunk-nested-id-"

ExecuteCode = Callable[[str, str, dict], Any]
RenderFragment = Callable[[str], Awaitable[str]]
SourcePatch = Callable[[CodeChunkData, Any, str], Any]


async def call_capability(func: Callable, *args, **kwargs):
    """Call an injected capability that may be sync or async."""
    result = func(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result


class CodeChunkRuntime:
    def __init__(
        self,
        context: RenderContext,
        execute_code: ExecuteCode,
        render_fragment: Optional[RenderFragment] = None,
        on_source_patch: Optional[SourcePatch] = None,
    ):
        self.context = context
        self.execute_code = execute_code
        self.render_fragment = render_fragment
        self.on_source_patch = on_source_patch

    @property
    def store(self):
        return self.context.cache.code_chunks

    def register(
        self,
        code: str,
        lang: str,
        options: CodeBlockOptions,
        pass_chunks: list[CodeChunkData],
        id_prefix: str = AUTO_ID_PREFIX,
    ) -> CodeChunkData:
        """
        Create or refresh the record for a chunk seen in the current pass.

        Args:
            code: The chunk's source.
            lang: Fence language, used when ``cmd`` is ``true``.
            options: Parsed block options; ``id`` and ``cmd`` are filled in here.
            pass_chunks: Chunks registered so far in this pass, in document order.
            id_prefix: Prefix for generated ids; nested renders use their own.
        """
        if not options.id:
            options.id = f"{id_prefix}{len(pass_chunks)}"
        if options.cmd is True:
            options.cmd = lang

        previous = pass_chunks[-1] if pass_chunks else None
        prev_id = previous.id if previous else None

        chunk = self.store.get(options.id)
        if chunk is None:
            chunk = CodeChunkData(id=options.id, code=code, options=options, prev=prev_id)
            self.store.put(chunk)
        else:
            chunk.code = code
            chunk.options = options
            chunk.prev = prev_id
        chunk.next = None

        if previous is not None:
            previous.next = chunk.id

        pass_chunks.append(chunk)
        return chunk

    def resolve_code(self, chunk: CodeChunkData) -> str:
        """The chunk's code with every ``continue`` ancestor prepended."""
        code = chunk.code
        seen = {chunk.id}
        current = chunk
        while current.options.continue_:
            target = current.prev if current.options.continue_ is True else str(current.options.continue_)
            if target is None or target in seen:
                break
            current = self.store.get(target)
            if current is None:
                break
            seen.add(current.id)
            code = current.code + code
        return code

    async def run_code_chunk(self, chunk_id) -> str:
        chunk = self.store.get(chunk_id)
        if chunk is None or chunk.running:
            return ""

        code = self.resolve_code(chunk)
        options = chunk.options
        chunk.running = True
        try:
            if options.cmd == "toc":
                result = build_toc(
                    self.context.cache.last_headings,
                    ordered=bool(options.get("orderedList", False)),
                    depth_from=int(options.get("depthFrom", 1)),
                    depth_to=int(options.get("depthTo", 6)),
                    tab=options.get("tab", "\t"),
                )
            else:
                result = await call_capability(
                    self.execute_code, code, self.context.file_directory_path, options.as_dict()
                )
            chunk.plain_result = result

            if options.modify_source and options.code_chunk_offset is not None:
                chunk.result = ""
                if self.on_source_patch is None:
                    return ""
                patched = await call_capability(self.on_source_patch, chunk, result, self.context.file_path)
                return patched or ""

            result = await self.format_result(result, options.output or "text")
        except Exception as exc:
            logger.error(f"Code chunk {chunk.id} failed: {exc}", exc_info=True)
            result = f'<pre class="language-text">{escape(str(exc))}</pre>'
        finally:
            chunk.running = False

        chunk.result = result
        return result

    async def format_result(self, result, output: str) -> str:
        if not result:
            return ""
        if output == "html":
            return result if isinstance(result, str) else result.decode("utf-8")
        if output == "png":
            raw = result if isinstance(result, bytes) else str(result).encode("utf-8")
            encoded = base64.b64encode(raw).decode("ascii")
            return f'<img src="data:image/png;charset=utf-8;base64,{encoded}">'
        if output == "markdown":
            if self.render_fragment is None:
                return f'<pre class="language-text">{escape(result)}</pre>'
            return await self.render_fragment(result)
        if output == "none":
            return ""
        if isinstance(result, bytes):
            result = result.decode("utf-8", errors="replace")
        return f'<pre class="language-text">{escape(result)}</pre>'

    async def run_all_code_chunks(self) -> list[str]:
        return await asyncio.gather(*(self.run_code_chunk(chunk_id) for chunk_id in self.store.ids()))

    def cache_code_chunk_result(self, chunk_id, result: str) -> None:
        chunk = self.store.get(chunk_id)
        if chunk is None:
            return
        chunk.result = result
