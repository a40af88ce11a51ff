# docengine/markdown/renderer.py

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import replace
from typing import Any, Callable, Mapping, Optional

import markdown
import pypandoc
from asgiref.sync import async_to_sync
from bs4 import BeautifulSoup
from django.utils.html import escape

from . import renderers
from .code_chunks import AUTO_ID_PREFIX, NESTED_ID_PREFIX, CodeChunkRuntime, call_capability
from .config import EngineConfig, get_engine_config, get_pandoc_config
from .context import RenderContext, RenderOptions, RenderOutput
from .errors import ConfigurationError
from .extensions.fence import FenceExtension, fences_to_html
from .extensions.math import MathExtension, MathRenderer
from .extensions.wikilink import WikiLinkExtension
from .postprocessors import (
    TocTracker,
    parse_slides,
    parse_slides_for_export,
    resolve_file_path,
    resolve_paths,
    substitute_toc_marker,
)
from .postprocessors.code_blocks import CodeBlockDispatcher
from .preprocessors import process_front_matter, transform_markdown

logger = logging.getLogger(__name__)


class MarkdownEngine:
    """
    Renders one document, keeping caches and code-chunk state between passes.

    External capabilities are injected so they can be swapped or faked:

        render_math(expression, display_mode) -> markup
        render_diagram(kind, code, options, cwd) -> markup
        highlight(code, lang) -> markup
        execute_code(code, cwd, options) -> result
        expand_imports(text, context, *, for_preview, use_relative_file_path) -> ImportResult
        on_source_patch(chunk, result, file_path)

    Any of them may be a plain function or a coroutine function.
    """

    def __init__(
        self,
        file_path: str,
        project_directory_path: Optional[str] = None,
        config: Optional[Mapping[str, Any] | EngineConfig] = None,
        *,
        render_math: Optional[Callable] = None,
        render_diagram: Callable = renderers.render_diagram,
        highlight: Callable = renderers.highlight_code,
        execute_code: Callable = renderers.execute_code,
        expand_imports: Callable = transform_markdown,
        on_source_patch: Optional[Callable] = None,
    ):
        self.context = RenderContext(file_path, project_directory_path, get_engine_config(config))
        self.render_math = render_math
        self.expand_imports = expand_imports

        self.runtime = CodeChunkRuntime(self.context, execute_code, self._render_fragment, on_source_patch)
        self.dispatcher = CodeBlockDispatcher(self.context, self.runtime, highlight, render_diagram)
        self.toc = TocTracker(self.context.cache)
        self._pass_serial = 0
        self._build_parser()

    @property
    def config(self) -> EngineConfig:
        return self.context.config

    def _build_parser(self) -> None:
        config = self.context.config
        self.math_renderer = MathRenderer(
            config.math_rendering_option,
            config.math_inline_delimiters,
            config.math_block_delimiters,
            self.render_math,
        )
        extensions = [
            "tables",
            "attr_list",
            "footnotes",
            "sane_lists",
            FenceExtension(math_renderer=self.math_renderer),
            MathExtension(renderer=self.math_renderer),
            WikiLinkExtension(
                enabled=config.enable_wiki_link_syntax,
                file_extension=config.wiki_link_file_extension,
            ),
        ]
        if config.break_on_single_newline:
            extensions.append("nl2br")
        if config.enable_typographer:
            extensions.append("smarty")
        self.md = markdown.Markdown(extensions=extensions, output_format="html")

    def _parse(self, text: str) -> str:
        self.md.reset()
        return self.md.convert(text)

    async def _pandoc_render(self, text: str, front_matter_data: dict) -> str:
        pandoc_config = get_pandoc_config(self.context.config)
        args = list(pandoc_config["extra_args"])
        pandoc_args = front_matter_data.get("pandoc_args")
        if isinstance(pandoc_args, list):
            args.extend(str(arg) for arg in pandoc_args)
        if front_matter_data.get("bibliography") or front_matter_data.get("references"):
            args.append("--citeproc")

        source = fences_to_html(text, self.math_renderer)
        try:
            return await asyncio.to_thread(
                pypandoc.convert_text,
                source,
                pandoc_config["to"],
                format=pandoc_config["format"],
                extra_args=args,
                cworkdir=self.context.file_directory_path,
            )
        except (RuntimeError, OSError) as exc:
            logger.warning(f"pandoc failed for {self.context.file_path}: {exc}")
            return f"<pre>{escape(str(exc))}</pre>"

    async def render(self, text: str, options: Optional[RenderOptions] = None) -> RenderOutput:
        """
        Render ``text`` to HTML.

        Args:
            text: The document source.
            options: Per-call options; defaults to a preview render.

        Returns:
            RenderOutput with the html, TOC markup, front-matter data and the
            css/js files pulled in by ``@import``.
        """
        return await self._render(text, options or RenderOptions(), top_level=True)

    async def _render(self, text: str, options: RenderOptions, top_level: bool) -> RenderOutput:
        if top_level:
            self._pass_serial += 1
        serial = self._pass_serial
        config = self.context.config

        imported = await call_capability(
            self.expand_imports,
            text,
            self.context,
            for_preview=options.is_for_preview,
            use_relative_file_path=options.use_relative_file_path,
        )

        front_matter = process_front_matter(imported.front_matter, config, options.hide_front_matter)
        front_matter_data = dict(front_matter.data)
        body = front_matter.content + imported.text

        if config.use_pandoc_parser:
            html = await self._pandoc_render(body, front_matter_data)
        else:
            html = self._parse(body)

        if top_level:
            toc_html = self.toc.update(
                imported.headings,
                self._parse,
                ordered=config.toc_ordered,
                depth_from=config.toc_depth_from,
                depth_to=config.toc_depth_to,
                tab=config.toc_tab,
            )
        else:
            toc_html = self.toc.toc_html
        if imported.toc_bracket_enabled:
            html = substitute_toc_marker(html, toc_html)

        soup = BeautifulSoup(html, "html.parser")
        fresh = await self.dispatcher.dispatch(soup, options, AUTO_ID_PREFIX if top_level else NESTED_ID_PREFIX)
        resolve_paths(soup, self.context, options.use_relative_file_path)
        if options.is_for_preview and serial == self._pass_serial:
            self.context.cache.commit_diagrams(fresh)

        html = front_matter.table + str(soup)

        if imported.slide_configs:
            if options.is_for_preview:
                html = parse_slides(html, imported.slide_configs, front_matter_data, self.context)
            else:
                html = parse_slides_for_export(
                    html, imported.slide_configs, self.context, options.use_relative_file_path
                )
            front_matter_data["isPresentationMode"] = True

        if options.run_all_code_chunks:
            await self.runtime.run_all_code_chunks()
            return await self._render(text, replace(options, run_all_code_chunks=False), top_level)

        if top_level and serial == self._pass_serial:
            self.context.cache.last_rendered_html = html

        return RenderOutput(
            html=html,
            markdown=text,
            toc_html=toc_html,
            front_matter_data=front_matter_data,
            imported_assets=list(imported.imported_assets),
        )

    async def _render_fragment(self, text: str) -> str:
        """Render code-chunk markdown output as a nested, export-style pass."""
        options = RenderOptions(use_relative_file_path=True, is_for_preview=False, hide_front_matter=True)
        output = await self._render(text, options, top_level=False)
        return output.html

    async def run_code_chunk(self, chunk_id) -> str:
        return await self.runtime.run_code_chunk(chunk_id)

    async def run_all_code_chunks(self) -> list[str]:
        return await self.runtime.run_all_code_chunks()

    def cache_code_chunk_result(self, chunk_id, result: str) -> None:
        self.runtime.cache_code_chunk_result(chunk_id, result)

    def update_configuration(self, partial: Mapping[str, Any]) -> EngineConfig:
        config = self.context.update_config(partial)
        self._build_parser()
        return config

    def clear_caches(self) -> None:
        self.context.cache.clear()

    def get_last_rendered_html(self) -> str:
        return self.context.cache.last_rendered_html

    def export_settings(self, front_matter_data: Mapping[str, Any], section: str) -> dict:
        """
        Settings block an exporter needs from the front matter (``ebook``, ``pandoc``...).

        Raises:
            ConfigurationError: if the document has no such block.
        """
        settings = (front_matter_data or {}).get(section)
        if not isinstance(settings, Mapping) or not settings:
            raise ConfigurationError(
                f"{section} config not found. Please insert {section} front-matter to your markdown file."
            )
        settings = dict(settings)
        cover = settings.get("cover")
        if isinstance(cover, str):
            resolved = resolve_file_path(cover, self.context, False)
            if resolved.startswith("file://"):
                resolved = os.path.normpath(resolved[len("file://"):])
            settings["cover"] = resolved
        return settings


def render_markdown(text, context=None):
    """
    Render markdown to HTML in one synchronous call.

    Args:
        text: Raw markdown text
        context: Optional dict; ``file_path`` and ``project_directory_path``
            anchor relative links, ``options`` holds RenderOptions fields and
            ``config`` holds engine configuration overrides.
    """
    context = context or {}
    file_path = context.get("file_path") or os.path.join(os.getcwd(), "document.md")
    engine = MarkdownEngine(
        file_path,
        context.get("project_directory_path"),
        context.get("config"),
    )
    options = RenderOptions(**{"use_relative_file_path": True, **(context.get("options") or {})})
    output = async_to_sync(engine.render)(text or "", options)
    return output.html
