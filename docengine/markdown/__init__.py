# docengine/markdown/__init__.py

from .config import EngineConfig, get_engine_config
from .context import CodeChunkData, Heading, RenderContext, RenderOptions, RenderOutput, SlideConfig
from .errors import (
    ConfigurationError,
    DiagramRenderError,
    DocEngineError,
    ExecutorError,
    OptionsError,
    RecoverableRenderError,
)
from .renderer import MarkdownEngine, render_markdown

__all__ = [
    "CodeChunkData",
    "ConfigurationError",
    "DiagramRenderError",
    "DocEngineError",
    "EngineConfig",
    "ExecutorError",
    "Heading",
    "MarkdownEngine",
    "OptionsError",
    "RecoverableRenderError",
    "RenderContext",
    "RenderOptions",
    "RenderOutput",
    "SlideConfig",
    "get_engine_config",
    "render_markdown",
]
