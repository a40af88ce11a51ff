"""Utilities shared by the BeautifulSoup passes over rendered HTML."""

from __future__ import annotations

from bs4 import BeautifulSoup, Tag


def parse_fragment(html: str) -> BeautifulSoup:
    """Parse an HTML fragment with the same parser the render pass uses."""
    return BeautifulSoup(html, "html.parser")


def replace_with_html(tag: Tag, html: str) -> None:
    """Replace ``tag`` with the nodes parsed from ``html`` (nothing if ``html`` is empty)."""
    nodes = list(parse_fragment(html).contents) if html else []
    if nodes:
        tag.replace_with(*nodes)
    else:
        tag.decompose()


def set_inner_html(tag: Tag, html: str) -> None:
    tag.clear()
    for node in list(parse_fragment(html).contents):
        tag.append(node)


def add_class(tag: Tag, *classes: str) -> None:
    """Append classes to ``tag`` without duplicating existing ones."""
    current = tag.get("class") or []
    if isinstance(current, str):
        current = current.split()
    for value in classes:
        for name in (value or "").split():
            if name not in current:
                current.append(name)
    if current:
        tag["class"] = current
