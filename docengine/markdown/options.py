# docengine/markdown/options.py
"""
Fenced-block attribute fragments.

A fence info string may carry a trailing attribute fragment:

    ```python {cmd: true, id: "setup", output: html}

The fragment is a relaxed object literal (unquoted keys, ``k:v`` without a
space).  It is normalised into a YAML flow mapping and parsed with PyYAML.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field, fields
from typing import Any, Mapping, Optional

import yaml

from .errors import OptionsError

_INFO_RE = re.compile(r"^\s*([^\s{]+)\s*\{(.*)\}\s*$", re.S)
# "{key:" / ", key :" -> "{key: " so YAML sees a mapping key; quoted scalars match whole and stay as written
_BARE_KEY_RE = re.compile(r"""("(?:[^"\\]|\\.)*"|'(?:[^']|'')*')|([{,]\s*)([A-Za-z_][\w-]*)\s*:\s*""")


def _space_key(match: re.Match) -> str:
    if match.group(1) is not None:
        return match.group(1)
    return f"{match.group(2)}{match.group(3)}: "


DIAGRAM_LANGUAGES = {
    "puml": "plantuml",
    "plantuml": "plantuml",
    "dot": "graphviz",
    "viz": "graphviz",
}


def split_info(info: str) -> tuple[str, str]:
    """
    Split a fence info string into its language and attribute fragment.

    Returns:
        ``(lang, options_str)``; ``options_str`` is the text between the braces,
        or "" when the info string has no fragment.
    """
    info = (info or "").strip()
    match = _INFO_RE.match(info)
    if match:
        return match.group(1), match.group(2).strip()
    lang = info.split(None, 1)[0] if info else ""
    return lang, ""


def parse_options(options_str: str) -> dict:
    """
    Parse a relaxed object literal into a dict.

    Raises:
        OptionsError: if the fragment is not a valid mapping.
    """
    if not options_str or not options_str.strip():
        return {}
    normalized = _BARE_KEY_RE.sub(_space_key, "{" + options_str.strip() + "}")
    try:
        data = yaml.safe_load(normalized)
    except yaml.YAMLError as exc:
        raise OptionsError(str(exc)) from exc
    if not isinstance(data, dict):
        raise OptionsError(f"expected a mapping, got {type(data).__name__}")
    return {str(key): value for key, value in data.items()}


@dataclass
class CodeBlockOptions:
    """Recognized block options; anything else is kept in ``extras``."""

    id: Optional[str] = None
    cmd: Any = None
    output: Optional[str] = None
    element: Optional[str] = None
    continue_: Any = None
    run_on_save: bool = False
    hide: bool = False
    class_: Optional[str] = None
    modify_source: bool = False
    code_chunk_offset: Optional[int] = None
    code_block: bool = False
    engine: Optional[str] = None
    extras: dict = field(default_factory=dict)

    # HTML-ish / reserved names that do not fit a Python identifier
    _RENAMED = {"continue": "continue_", "class": "class_"}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "CodeBlockOptions":
        names = {f.name for f in fields(cls)} - {"extras"}
        known = {}
        extras = {}
        for key, value in data.items():
            name = cls._RENAMED.get(key, key)
            if name in names and key not in ("continue_", "class_"):
                known[name] = value
            else:
                extras[key] = value
        if known.get("id") is not None:
            known["id"] = str(known["id"])
        return cls(**known, extras=extras)

    def get(self, key: str, default: Any = None) -> Any:
        """Look an option up by the name it is written with in a document."""
        name = self._RENAMED.get(key, key)
        if name != "extras" and name in self.__dataclass_fields__:
            value = getattr(self, name)
            return default if value is None else value
        return self.extras.get(key, default)

    def as_dict(self) -> dict:
        """Options as written in the document, for executors and renderers."""
        result = dict(self.extras)
        for f in fields(self):
            if f.name == "extras":
                continue
            value = getattr(self, f.name)
            if value is None or value is False:
                continue
            key = f.name.rstrip("_") if f.name in ("continue_", "class_") else f.name
            result[key] = value
        return result


class BlockKind(enum.Enum):
    PLAIN = "plain"
    DIAGRAM = "diagram"
    MERMAID = "mermaid"
    CODE_CHUNK = "code_chunk"


def route(lang: str, options: CodeBlockOptions) -> BlockKind:
    """Pick the render path for a fenced block."""
    if options.code_block:
        return BlockKind.PLAIN
    if lang in DIAGRAM_LANGUAGES:
        return BlockKind.DIAGRAM
    if lang == "mermaid":
        return BlockKind.MERMAID
    if options.cmd:
        return BlockKind.CODE_CHUNK
    return BlockKind.PLAIN


def diagram_kind(lang: str) -> Optional[str]:
    return DIAGRAM_LANGUAGES.get(lang)
