# docengine/markdown/postprocessors/__init__.py

# .code_blocks imports ..code_chunks, which imports .toc; import it directly.
from .path_resolver import resolve_file_path, resolve_paths
from .slides import parse_slides, parse_slides_for_export
from .toc import TocTracker, build_toc, substitute_toc_marker

__all__ = [
    "TocTracker",
    "build_toc",
    "parse_slides",
    "parse_slides_for_export",
    "resolve_file_path",
    "resolve_paths",
    "substitute_toc_marker",
]
