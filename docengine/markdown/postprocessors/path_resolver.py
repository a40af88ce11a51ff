# docengine/markdown/postprocessors/path_resolver.py

from __future__ import annotations

import os

from bs4 import BeautifulSoup

from ..context import RenderContext


def resolve_file_path(path: str, context: RenderContext, relative: bool) -> str:
    """
    Resolve a link or image path for the output document.

    - whitelisted URLs, ``data:image/`` URIs and ``#anchors`` are unchanged
    - ``/rooted`` paths resolve against the project directory
    - other paths resolve against the document's directory

    With ``relative`` the result is relative to the document's directory,
    otherwise it is an absolute ``file://`` URL.
    """
    path = path or ""
    if (
        not path
        or context.protocols_white_list_re.match(path)
        or path.startswith("data:image/")
        or path.startswith("#")
    ):
        return path

    if path.startswith("/"):
        absolute = os.path.abspath(os.path.join(context.project_directory_path, "." + path))
        if relative:
            return os.path.relpath(absolute, context.file_directory_path)
        return "file://" + absolute

    if relative:
        return path
    return "file://" + os.path.abspath(os.path.join(context.file_directory_path, path))


def resolve_paths(soup: BeautifulSoup, context: RenderContext, relative: bool) -> None:
    """Rewrite every ``img[src]`` and ``a[href]`` in place."""
    for tag in soup.find_all(["img", "a"]):
        attribute = "src" if tag.name == "img" else "href"
        value = tag.get(attribute)
        if value is None:
            continue
        tag[attribute] = resolve_file_path(value, context, relative)
