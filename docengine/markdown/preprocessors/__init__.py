# docengine/markdown/preprocessors/__init__.py

from .front_matter import FrontMatter, process_front_matter, split_front_matter
from .transformer import SLIDE_SENTINEL, TOC_MARKER, transform_markdown

__all__ = [
    "FrontMatter",
    "SLIDE_SENTINEL",
    "TOC_MARKER",
    "process_front_matter",
    "split_front_matter",
    "transform_markdown",
]
