# docengine/markdown/config.py

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)

SETTINGS_KEY = "DOCENGINE_MARKDOWN"


@dataclass
class EngineConfig:
    """
    Per-document engine configuration.

    Values are plain data so the whole record can be rebuilt from a partial
    mapping when the host application pushes a configuration update.
    """

    use_pandoc_parser: bool = False
    break_on_single_newline: bool = True
    enable_typographer: bool = False
    enable_wiki_link_syntax: bool = True
    wiki_link_file_extension: str = ".md"
    protocols_white_list: str = "http, https, atom, file"
    # "KaTeX", "MathJax", or "None"
    math_rendering_option: str = "KaTeX"
    math_inline_delimiters: list = field(default_factory=lambda: [["$", "$"], ["\\(", "\\)"]])
    math_block_delimiters: list = field(default_factory=lambda: [["$$", "$$"], ["\\[", "\\]"]])
    # "table", "code block", or "none"
    front_matter_rendering_option: str = "table"
    image_folder_path: str = "/assets"
    toc_ordered: bool = False
    toc_depth_from: int = 1
    toc_depth_to: int = 6
    toc_tab: str = "\t"
    pandoc_markdown_flavor: str = "markdown-raw_tex+tex_math_single_backslash"
    pandoc_arguments: list = field(default_factory=list)


_FIELD_NAMES = {f.name for f in fields(EngineConfig)}


def _settings_overrides() -> dict:
    """Read overrides from ``settings.DOCENGINE_MARKDOWN`` when Django is configured."""
    from django.conf import settings

    if not settings.configured:
        return {}
    return dict(getattr(settings, SETTINGS_KEY, None) or {})


def _clean(values: Mapping[str, Any]) -> dict:
    cleaned = {}
    for key, value in values.items():
        if key not in _FIELD_NAMES:
            logger.warning(f"Ignoring unknown markdown engine option '{key}'")
            continue
        cleaned[key] = value
    return cleaned


def get_engine_config(overrides: Optional[Mapping[str, Any] | EngineConfig] = None) -> EngineConfig:
    """
    Build the engine configuration.

    Layers, lowest to highest precedence:
        1. EngineConfig defaults
        2. ``settings.DOCENGINE_MARKDOWN`` (only when Django settings are configured)
        3. explicit ``overrides``
    """
    if isinstance(overrides, EngineConfig):
        return replace(overrides)

    config = EngineConfig(**_clean(_settings_overrides()))
    if overrides:
        config = merge_config(config, overrides)
    return config


def merge_config(config: EngineConfig, partial: Mapping[str, Any]) -> EngineConfig:
    """Return a copy of ``config`` with ``partial`` applied on top."""
    values = asdict(config)
    values.update(_clean(partial))
    return EngineConfig(**values)


def compile_protocols_white_list(protocols_white_list: str) -> re.Pattern:
    """
    Compile the protocol whitelist into a prefix matcher.

    "http, https" -> ^(http|https)://
    """
    protocols = [p.strip() for p in protocols_white_list.split(",") if p.strip()]
    if not protocols:
        protocols = ["http", "https", "atom", "file"]
    return re.compile("^(" + "|".join(re.escape(p) for p in protocols) + r")://")


def get_pandoc_config(config: EngineConfig) -> dict:
    """
    Configuration for the pypandoc parser backend.

    Used instead of Python-Markdown when ``use_pandoc_parser`` is enabled.
    Fenced code blocks are converted to raw HTML before pandoc sees them, so
    the code-block dispatcher gets the same markup from both backends.
    """
    return {
        "format": config.pandoc_markdown_flavor,
        "to": "html5",
        "extra_args": [
            # Math is left to the client renderer
            "--mathjax",
            *config.pandoc_arguments,
        ],
    }
