# docengine/markdown/preprocessors/transformer.py
"""
Line-level pass that runs before the markdown parser.

- splits off the front matter
- collects ATX headings and pins their ids with ``{#id}``
- turns ``[TOC]`` into the TOC marker
- turns ``<!-- slide -->`` comments into slide sentinels
- expands ``@import "file"`` lines
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from typing import Optional

import yaml
from django.utils.html import escape
from django.utils.text import slugify

from ..context import Heading, ImportResult, RenderContext, SlideConfig
from .front_matter import split_front_matter

logger = logging.getLogger(__name__)

TOC_MARKER = "[MDTOC]"
SLIDE_SENTINEL = '<div class="new-slide"></div>'

FENCE_OPEN_RE = re.compile(r"^\s*(`{3,}|~{3,})")
HEADING_RE = re.compile(r"^(#{1,6})[ \t]+(.+?)[ \t]*#*[ \t]*$")
HEADING_ID_RE = re.compile(r"\s*\{#([^}\s]+)\}\s*$")
TOC_LINE_RE = re.compile(r"^\s*\[toc\]\s*$", re.I)
SLIDE_RE = re.compile(r"^\s*<!--\s*slide\b(.*?)-->\s*$")
SLIDE_ATTR_RE = re.compile(r"""([\w.:-]+)(?:\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"']+)))?""")
IMPORT_RE = re.compile(r"""^\s*@import\s+(?:"([^"]+)"|'([^']+)')\s*$""")

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".gif", ".png", ".apng", ".svg", ".bmp", ".webp"}
MARKDOWN_EXTENSIONS = {".md", ".markdown", ".mdown", ".mkdn", ".mkd"}


def parse_slide_attributes(text: str) -> dict:
    """``data-background-color="#fff" vertical=true`` -> dict."""
    attributes = {}
    for match in SLIDE_ATTR_RE.finditer(text or ""):
        key = match.group(1)
        raw = next((g for g in match.groups()[1:] if g is not None), None)
        if raw is None:
            attributes[key] = True
            continue
        value = raw
        if match.group(4) is not None:
            # Unquoted booleans and numbers; "#fff" and friends stay strings
            try:
                loaded = yaml.safe_load(raw)
            except yaml.YAMLError:
                loaded = None
            if isinstance(loaded, (bool, int, float)):
                value = loaded
        attributes[key] = value
    return attributes


class _HeadingIds:
    """Unique heading ids for one document: ``intro``, ``intro-1``, ``intro-2``."""

    def __init__(self):
        self._used: dict[str, int] = {}

    def claim(self, base: str) -> str:
        base = base or "section"
        if base not in self._used:
            self._used[base] = 0
            return base
        while True:
            self._used[base] += 1
            candidate = f"{base}-{self._used[base]}"
            if candidate not in self._used:
                self._used[candidate] = 0
                return candidate


async def _read_file(path: str, context: RenderContext) -> Optional[str]:
    cached = context.cache.files.get(path)
    if cached is not None:
        return cached

    def _read():
        with open(path, encoding="utf-8") as handle:
            return handle.read()

    try:
        contents = await asyncio.to_thread(_read)
    except OSError as exc:
        logger.warning(f"Cannot import {path}: {exc}")
        return None
    context.cache.files[path] = contents
    return contents


def _import_path(path: str, base_directory: str, context: RenderContext) -> str:
    if path.startswith("/"):
        return os.path.abspath(os.path.join(context.project_directory_path, "." + path))
    return os.path.abspath(os.path.join(base_directory, path))


class _Transformer:
    def __init__(self, context: RenderContext):
        self.context = context
        self.result = ImportResult(text="")
        self.ids = _HeadingIds()
        self.line_number = 0

    async def transform(self, text: str, base_directory: str, stack: tuple[str, ...]) -> str:
        output = []
        fence: Optional[str] = None

        for line in text.split("\n"):
            line_number = self.line_number
            self.line_number += 1

            fence_match = FENCE_OPEN_RE.match(line)
            if fence is not None:
                if fence_match and fence_match.group(1)[0] == fence[0] and len(fence_match.group(1)) >= len(fence):
                    if not line.strip()[len(fence_match.group(1)):].strip():
                        fence = None
                output.append(line)
                continue
            if fence_match:
                fence = fence_match.group(1)
                output.append(line)
                continue

            heading = HEADING_RE.match(line)
            if heading:
                output.append(self._heading(heading, line_number))
                continue

            if TOC_LINE_RE.match(line):
                self.result.toc_bracket_enabled = True
                output.append(TOC_MARKER)
                continue

            slide = SLIDE_RE.match(line)
            if slide:
                self.result.slide_configs.append(
                    SlideConfig.from_attributes(parse_slide_attributes(slide.group(1)), line_no=line_number)
                )
                output.extend(["", SLIDE_SENTINEL, ""])
                continue

            imported = IMPORT_RE.match(line)
            if imported:
                path = imported.group(1) or imported.group(2)
                output.append(await self._import(path, base_directory, stack))
                continue

            output.append(line)

        return "\n".join(output)

    def _heading(self, match, line_number: int) -> str:
        hashes, content = match.group(1), match.group(2)
        explicit = HEADING_ID_RE.search(content)
        if explicit:
            content = content[: explicit.start()].rstrip()
            heading_id = self.ids.claim(explicit.group(1))
        else:
            heading_id = self.ids.claim(slugify(content, allow_unicode=True))
        self.result.headings.append(
            Heading(content=content, level=len(hashes), id=heading_id, line_number=line_number)
        )
        return f"{hashes} {content} {{#{heading_id}}}"

    async def _import(self, path: str, base_directory: str, stack: tuple[str, ...]) -> str:
        absolute = _import_path(path, base_directory, self.context)
        extension = os.path.splitext(absolute)[1].lower()

        if extension in IMAGE_EXTENSIONS:
            return f"![]({path})"

        if extension in (".css", ".js"):
            if path not in self.result.imported_assets:
                self.result.imported_assets.append(path)
            return ""

        if absolute in stack:
            logger.warning(f"Skipping recursive import of {absolute}")
            return f'<pre class="language-text">Recursive import: {escape(path)}</pre>'

        contents = await _read_file(absolute, self.context)
        if contents is None:
            return f'<pre class="language-text">File {escape(path)} not found.</pre>'

        if extension in MARKDOWN_EXTENSIONS:
            _, body = split_front_matter(contents)
            # Line numbers refer to the importing document
            saved = self.line_number
            expanded = await self.transform(body, os.path.dirname(absolute), stack + (absolute,))
            self.line_number = saved
            return expanded

        if extension in (".html", ".htm"):
            return contents

        language = extension.lstrip(".") or "text"
        return f"```{language}\n{contents.rstrip(chr(10))}\n```"


async def transform_markdown(
    text: str,
    context: RenderContext,
    *,
    for_preview: bool = True,
    use_relative_file_path: bool = False,
) -> ImportResult:
    """
    Expand imports and collect headings and slide markers.

    Args:
        text: Document source.
        context: The document's render context; supplies paths and the file cache.
        for_preview, use_relative_file_path: The pass options.  Paths are
            resolved after parsing, so this expander does not use them.

    Returns:
        ImportResult with the rewritten body (front matter removed).
    """
    front_matter, body = split_front_matter(text or "")
    transformer = _Transformer(context)
    # Body lines are numbered from the top of the file
    transformer.line_number = front_matter.count("\n")
    transformer.result.text = await transformer.transform(body, context.file_directory_path, (context.file_path,))
    transformer.result.front_matter = front_matter
    return transformer.result
