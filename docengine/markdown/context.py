# docengine/markdown/context.py
"""
Records shared by every stage of the render pipeline.

RenderContext lives as long as the open document.  Everything else is either
produced fresh on each pass (Heading, SlideConfig, ImportResult, RenderOutput)
or passed in by the caller (RenderOptions).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from .cache import CacheStore
from .config import EngineConfig, compile_protocols_white_list, get_engine_config, merge_config
from .options import CodeBlockOptions


@dataclass(frozen=True)
class Heading:
    content: str
    level: int
    id: str
    line_number: int = field(compare=False)


@dataclass
class CodeChunkData:
    """State of one executable code chunk, keyed by ``id`` in the cache store."""

    id: str
    code: str
    options: CodeBlockOptions
    result: str = ""
    plain_result: Any = ""
    running: bool = False
    prev: Optional[str] = None
    next: Optional[str] = None


@dataclass
class SlideConfig:
    """
    Attributes of one ``<!-- slide -->`` marker.

    Known attributes are stored on fields; anything else is kept in ``extras``.
    ``get`` looks values up by their HTML attribute name.
    """

    class_: str = ""
    id: str = ""
    vertical: bool = False
    line_no: Optional[int] = None
    background_image: Optional[str] = None
    background_size: Optional[str] = None
    background_position: Optional[str] = None
    background_repeat: Optional[str] = None
    background_color: Optional[str] = None
    background_video: Optional[str] = None
    background_video_loop: bool = False
    background_video_muted: bool = False
    background_iframe: Optional[str] = None
    notes: Optional[str] = None
    transition: Optional[str] = None
    extras: dict = field(default_factory=dict)

    ATTRIBUTES = {
        "class": "class_",
        "id": "id",
        "vertical": "vertical",
        "lineNo": "line_no",
        "data-background-image": "background_image",
        "data-background-size": "background_size",
        "data-background-position": "background_position",
        "data-background-repeat": "background_repeat",
        "data-background-color": "background_color",
        "data-background-video": "background_video",
        "data-background-video-loop": "background_video_loop",
        "data-background-video-muted": "background_video_muted",
        "data-background-iframe": "background_iframe",
        "data-notes": "notes",
        "data-transition": "transition",
    }

    @classmethod
    def from_attributes(cls, attributes: Mapping[str, Any], line_no: Optional[int] = None) -> "SlideConfig":
        known = {}
        extras = {}
        for key, value in attributes.items():
            name = cls.ATTRIBUTES.get(key)
            if name is None:
                extras[key] = value
            else:
                known[name] = value
        if line_no is not None:
            known["line_no"] = line_no
        for flag in ("vertical", "background_video_loop", "background_video_muted"):
            if flag in known:
                known[flag] = bool(known[flag])
        for text in ("class_", "id"):
            if text in known:
                known[text] = "" if known[text] is None else str(known[text])
        return cls(**known, extras=extras)

    def get(self, attribute: str, default: Any = None) -> Any:
        name = self.ATTRIBUTES.get(attribute)
        if name is None:
            return self.extras.get(attribute, default)
        value = getattr(self, name)
        return default if value is None else value


@dataclass
class RenderOptions:
    use_relative_file_path: bool = False
    is_for_preview: bool = True
    hide_front_matter: bool = False
    triggered_by_save: bool = False
    run_all_code_chunks: bool = False


@dataclass
class ImportResult:
    """Output of the import-expansion step that runs before parsing."""

    text: str
    slide_configs: list = field(default_factory=list)
    headings: list = field(default_factory=list)
    front_matter: str = ""
    imported_assets: list = field(default_factory=list)
    toc_bracket_enabled: bool = False


@dataclass
class RenderOutput:
    html: str
    markdown: str
    toc_html: str
    front_matter_data: dict
    imported_assets: list


class RenderContext:
    """File identity, resolved configuration and caches for one open document."""

    def __init__(
        self,
        file_path: str,
        project_directory_path: Optional[str] = None,
        config: Optional[EngineConfig] = None,
    ):
        self.file_path = os.path.abspath(file_path)
        self.file_directory_path = os.path.dirname(self.file_path)
        self.project_directory_path = (
            os.path.abspath(project_directory_path) if project_directory_path else self.file_directory_path
        )
        self.cache = CacheStore()
        self.config = config or get_engine_config()
        self.protocols_white_list_re = compile_protocols_white_list(self.config.protocols_white_list)

    def update_config(self, partial: Mapping[str, Any]) -> EngineConfig:
        self.config = merge_config(self.config, partial)
        self.protocols_white_list_re = compile_protocols_white_list(self.config.protocols_white_list)
        return self.config
