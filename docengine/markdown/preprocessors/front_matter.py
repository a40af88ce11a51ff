# docengine/markdown/preprocessors/front_matter.py

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

import yaml
from django.utils.html import escape

from ..config import EngineConfig

logger = logging.getLogger(__name__)

FRONT_MATTER_RE = re.compile(r"\A---[ \t]*\n(?P<body>.*?\n)?---[ \t]*(?:\n|\Z)", re.S)


@dataclass
class FrontMatter:
    content: str = ""
    table: str = ""
    data: dict = field(default_factory=dict)


def split_front_matter(text: str) -> tuple[str, str]:
    """
    Split a leading ``---`` block off ``text``.

    Returns:
        ``(front_matter, body)``; the front matter keeps its fence lines.
    """
    match = FRONT_MATTER_RE.match(text)
    if not match:
        return "", text
    return match.group(0), text[match.end():]


def load_front_matter(front_matter: str):
    """Parse the YAML inside a front-matter block.  Returns None on failure."""
    match = FRONT_MATTER_RE.match(front_matter)
    body = (match.group("body") or "") if match else front_matter
    try:
        data = yaml.safe_load(body)
    except yaml.YAMLError as exc:
        logger.warning(f"Failed to parse front matter: {exc}")
        return None
    if data is None:
        return {}
    return data


def front_matter_to_table(value) -> str:
    """
    Render parsed front matter as nested tables.

    Mappings become a header row of keys over a row of values; lists become a
    single row of cells.  Scalars are escaped text.
    """
    if isinstance(value, (list, tuple)):
        cells = "".join(f"<td>{front_matter_to_table(item)}</td>" for item in value)
        return f"<table><tbody><tr>{cells}</tr></tbody></table>"
    if isinstance(value, dict):
        head = "".join(f"<th>{escape(str(key))}</th>" for key in value)
        cells = "".join(f"<td>{front_matter_to_table(item)}</td>" for item in value.values())
        return f"<table><thead><tr>{head}</tr></thead><tbody><tr>{cells}</tr></tbody></table>"
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return escape(str(value))


def process_front_matter(front_matter: str, config: EngineConfig, hide: bool = False) -> FrontMatter:
    """
    Decide what a front-matter block turns into.

    Args:
        front_matter: The raw block including its ``---`` lines, or "".
        config: Engine configuration; selects pandoc / table / code block / none.
        hide: Drop the block from the output regardless of configuration.

    Returns:
        FrontMatter whose ``content`` is prepended to the markdown body and
        whose ``table`` is prepended to the rendered HTML.
    """
    if not front_matter:
        return FrontMatter()

    data = load_front_matter(front_matter)
    parsed = isinstance(data, dict)
    safe_data = data if parsed else {}
    option = (config.front_matter_rendering_option or "table").lower()

    if config.use_pandoc_parser:
        return FrontMatter(content=front_matter, data=safe_data)

    if hide or option.startswith("n"):
        return FrontMatter(data=safe_data)

    if option.startswith("t"):
        table = front_matter_to_table(data) if parsed else "<pre>Failed to parse YAML.</pre>"
        return FrontMatter(table=table, data=safe_data)

    # code block
    content = re.sub(r"\A---", "```yaml", front_matter, count=1)
    content = re.sub(r"---[ \t]*(\n?)\Z", r"```\1", content, count=1)
    if not content.endswith("\n"):
        content += "\n"
    return FrontMatter(content=content, data=safe_data)
