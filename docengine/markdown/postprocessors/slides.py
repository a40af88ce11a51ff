# docengine/markdown/postprocessors/slides.py
"""
Slide partitioning.

The transformer leaves a sentinel ``<div class="new-slide"></div>`` wherever a
``<!-- slide -->`` comment was.  The rendered HTML is split on the sentinel;
the part before the first slide is kept hidden.
"""

from __future__ import annotations

import re
from typing import Sequence

from django.utils.html import escape

from ..context import RenderContext, SlideConfig
from ..preprocessors.transformer import SLIDE_SENTINEL
from .path_resolver import resolve_file_path

DEFAULT_WIDTH = 960
DEFAULT_HEIGHT = 700

NOTES_RE = re.compile(r"(<aside\b[^>]*>)[^<>]*(</aside>)", re.I)

# Plain data attributes copied onto exported <section> elements, in output order
_EXPORT_ATTRIBUTES = (
    ("data-background-image", True),
    ("data-background-size", False),
    ("data-background-position", False),
    ("data-background-repeat", False),
    ("data-background-color", False),
    ("data-notes", False),
    ("data-background-video", True),
    ("data-background-video-loop", None),
    ("data-background-video-muted", None),
    ("data-transition", False),
    ("data-background-iframe", True),
)


def split_slides(html: str) -> list[str]:
    return html.split(SLIDE_SENTINEL)


def _slide_config(configs: Sequence[SlideConfig], offset: int) -> SlideConfig:
    return configs[offset] if offset < len(configs) else SlideConfig()


def _presentation_size(front_matter_data: dict) -> tuple:
    presentation = (front_matter_data or {}).get("presentation")
    if not isinstance(presentation, dict):
        return DEFAULT_WIDTH, DEFAULT_HEIGHT
    return presentation.get("width") or DEFAULT_WIDTH, presentation.get("height") or DEFAULT_HEIGHT


def _preview_slide(slide: str, config: SlideConfig, offset: int, width, height, context: RenderContext) -> str:
    style = ""
    video = ""
    iframe = ""

    if config.background_image:
        image = resolve_file_path(config.background_image, context, False)
        style += f"background-image: url('{image}');"
        style += f"background-size: {config.background_size or 'cover'};"
        style += f"background-position: {config.background_position or 'center'};"
        style += f"background-repeat: {config.background_repeat or 'no-repeat'};"
    elif config.background_color:
        style += f"background-color: {config.background_color} !important;"
    elif config.background_video:
        flags = " ".join(
            flag
            for flag, enabled in (("muted", config.background_video_muted), ("loop", config.background_video_loop))
            if enabled
        )
        src = escape(resolve_file_path(config.background_video, context, False))
        video = f'<video {flags} playsinline autoplay class="background-video" src="{src}"></video>'
    elif config.background_iframe:
        src = escape(resolve_file_path(config.background_iframe, context, False))
        iframe = (
            f'<iframe class="background-iframe" src="{src}" frameborder="0"></iframe>'
            '<div class="background-iframe-overlay"></div>'
        )

    classes = " ".join(filter(None, ["slide", config.class_]))
    id_attr = f' id="{escape(config.id)}"' if config.id else ""
    line = "" if config.line_no is None else config.line_no
    return (
        f'<div class="{escape(classes)}"{id_attr} data-line="{line}" data-offset="{offset}" '
        f'style="width: {width}px; height: {height}px; {escape(style)}">'
        f"{video}{iframe}<section>{slide}</section></div>"
    )


def parse_slides(
    html: str,
    configs: Sequence[SlideConfig],
    front_matter_data: dict,
    context: RenderContext,
) -> str:
    """Slide markup for the preview."""
    width, height = _presentation_size(front_matter_data)
    slides = split_slides(html)

    output = f'<div style="display: none;">{slides[0]}</div>'
    for offset, slide in enumerate(slides[1:]):
        output += _preview_slide(slide, _slide_config(configs, offset), offset, width, height, context)

    output = NOTES_RE.sub("", output)
    return f'<div id="preview-slides" data-width="{width}" data-height="{height}">{output}</div>'


def _export_attributes(config: SlideConfig, context: RenderContext, relative: bool) -> str:
    parts = []
    for name, is_path in _EXPORT_ATTRIBUTES:
        value = config.get(name)
        if not value:
            continue
        if is_path is None:
            parts.append(name)
            continue
        if is_path:
            value = resolve_file_path(str(value), context, relative)
        parts.append(f'{name}="{escape(str(value))}"')
    for name, value in config.extras.items():
        if name.startswith("data-") and value not in (None, False):
            parts.append(name if value is True else f'{name}="{escape(str(value))}"')
    return " ".join(parts)


def parse_slides_for_export(
    html: str,
    configs: Sequence[SlideConfig],
    context: RenderContext,
    relative: bool,
) -> str:
    """
    reveal.js markup for exports.

    Consecutive ``vertical`` slides are grouped, together with the slide just
    before them, inside an enclosing ``<section>``.
    """
    slides = split_slides(html)
    before, slides = slides[0], slides[1:]

    def vertical(index: int) -> bool:
        return 0 <= index < len(slides) and _slide_config(configs, index).vertical

    output = ""
    for i, slide in enumerate(slides):
        config = _slide_config(configs, i)
        if not config.vertical:
            if vertical(i - 1):
                output += "</section>"
            if vertical(i + 1):
                output += "<section>"

        attributes = _export_attributes(config, context, relative)
        id_attr = f' id="{escape(config.id)}"' if config.id else ""
        attr_string = f" {attributes}" if attributes else ""
        output += f'<section{attr_string}{id_attr} class="{escape(config.class_)}">{slide}</section>'

    if vertical(len(slides) - 1):
        output += "</section>"

    return (
        f'<div style="display:none;">{before}</div>'
        f'<div class="reveal"><div class="slides">{output}</div></div>'
    )
