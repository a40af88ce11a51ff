"""Markdown engine error hierarchy.

Recoverable render errors never escape a render pass: they are turned into a
visible fragment where the failing block or span would have been.  Executor
errors are captured per code chunk.  Configuration errors are raised to the
caller.
"""


class DocEngineError(Exception):
    """Base for all docengine errors."""


class RecoverableRenderError(DocEngineError):
    """A block or span could not be rendered; the pass continues."""


class OptionsError(RecoverableRenderError):
    """The ``lang {...}`` attribute fragment of a fenced block is malformed."""


class DiagramRenderError(RecoverableRenderError):
    """An external diagram renderer failed or is not available."""


class ExecutorError(DocEngineError):
    """A code chunk executor exited with an error."""


class ConfigurationError(DocEngineError):
    """A required front-matter block for an export is missing."""
