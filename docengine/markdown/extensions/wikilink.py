# docengine/markdown/extensions/wikilink.py
"""
``[[target|text]]`` and ``[[Page Name]]`` links.

    [[Home]]            -> <a href="Home.md">Home</a>
    [[Home|Go Home]]    -> <a href="Home.md">Go Home</a>
    [[My Page]]         -> <a href="MyPage.md">My Page</a>
"""

from __future__ import annotations

import re
from xml.etree import ElementTree as ET

from markdown.extensions import Extension
from markdown.inlinepatterns import InlineProcessor

from .math import find_close

WIKI_LINK_PRIORITY = 182


class WikiLinkInlineProcessor(InlineProcessor):
    def __init__(self, pattern, md=None, file_extension=".md"):
        super().__init__(pattern, md)
        self.file_extension = file_extension

    def handleMatch(self, m, data):
        close_at = find_close(data, m.end(0), "]]")
        if close_at == -1:
            return None, None, None
        content = data[m.end(0):close_at].strip()
        if not content:
            return None, None, None

        if "|" in content:
            target, text = (part.strip() for part in content.split("|", 1))
            href = target + self.file_extension
        else:
            text = content
            href = re.sub(r"\s", "", content) + self.file_extension

        el = ET.Element("a")
        el.set("href", href)
        el.text = text
        return el, m.start(0), close_at + 2


class WikiLinkExtension(Extension):
    def __init__(self, **kwargs):
        self.config = {
            "enabled": [True, "Recognize [[...]] links"],
            "file_extension": [".md", "Appended to every link target"],
        }
        super().__init__(**kwargs)

    def extendMarkdown(self, md):
        if not self.getConfig("enabled"):
            return
        md.inlinePatterns.register(
            WikiLinkInlineProcessor(r"(?<!\\)\[\[", md, file_extension=self.getConfig("file_extension")),
            "wikilink",
            WIKI_LINK_PRIORITY,
        )


def makeExtension(**kwargs):
    return WikiLinkExtension(**kwargs)
