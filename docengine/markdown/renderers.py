# docengine/markdown/renderers.py
"""
Default external capabilities: syntax highlighting, diagrams and code execution.

Each one can be replaced by passing a different callable to MarkdownEngine.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
import tempfile
from typing import Optional

from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name

from .errors import DiagramRenderError, ExecutorError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60


def highlight_code(code: str, lang: str) -> str:
    """
    Highlight ``code`` as ``lang`` and return the inner markup of a ``<pre>``.

    Raises:
        pygments.util.ClassNotFound: if no lexer matches ``lang``.
    """
    lexer = get_lexer_by_name(lang, stripnl=False, ensurenl=False)
    return highlight(code, lexer, HtmlFormatter(nowrap=True))


async def _run(args: list[str], stdin: Optional[bytes], cwd: Optional[str], timeout: Optional[float]):
    process = await asyncio.create_subprocess_exec(
        *args,
        stdin=asyncio.subprocess.PIPE,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        cwd=cwd,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(stdin), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise
    return process.returncode, stdout, stderr


def _plantuml_source(code: str) -> str:
    code = code.strip()
    if not code.startswith("@start"):
        code = f"@startuml\n{code}\n@enduml"
    return code + "\n"


async def render_diagram(kind: str, code: str, options: dict, cwd: Optional[str]) -> str:
    """
    Render a diagram block to SVG markup.

    Args:
        kind: "graphviz" or "plantuml".
        code: Diagram source.
        options: Block options; ``engine`` selects the graphviz layout engine,
            ``plantuml_jar`` the PlantUML jar (falls back to ``$PLANTUML_JAR``).
        cwd: Working directory for the renderer process.

    Raises:
        DiagramRenderError: if the renderer is missing or fails.
    """
    options = options or {}
    if kind == "graphviz":
        args = ["dot", f"-K{options.get('engine') or 'dot'}", "-Tsvg"]
        source = code
    elif kind == "plantuml":
        jar = options.get("plantuml_jar") or os.environ.get("PLANTUML_JAR")
        if not jar:
            raise DiagramRenderError("PlantUML jar not configured; set PLANTUML_JAR")
        args = ["java", "-Djava.awt.headless=true", "-jar", jar, "-pipe", "-tsvg", "-charset", "UTF-8"]
        source = _plantuml_source(code)
    else:
        raise DiagramRenderError(f"Unknown diagram kind '{kind}'")

    try:
        returncode, stdout, stderr = await _run(args, source.encode("utf-8"), cwd, DEFAULT_TIMEOUT)
    except asyncio.TimeoutError as exc:
        raise DiagramRenderError(f"{args[0]} timed out after {DEFAULT_TIMEOUT}s") from exc
    except OSError as exc:
        raise DiagramRenderError(f"{args[0]}: {exc}") from exc
    if returncode != 0:
        raise DiagramRenderError(stderr.decode("utf-8", errors="replace").strip() or f"{args[0]} exited {returncode}")
    return stdout.decode("utf-8")


async def execute_code(code: str, cwd: str, options: dict):
    """
    Run a code chunk.

    ``cmd`` names the program and ``args`` adds arguments.  The code goes to a
    temporary file appended to the arguments, or to stdin when ``stdin`` is set.

    Returns:
        stdout as text, or raw bytes when ``output`` is ``png``.

    Raises:
        ExecutorError: on a missing program, timeout or non-zero exit.
    """
    cmd = options.get("cmd")
    if not cmd or cmd is True:
        raise ExecutorError("No command given for code chunk")
    args = shlex.split(str(cmd))
    extra = options.get("args") or []
    if isinstance(extra, str):
        extra = shlex.split(extra)
    args.extend(str(a) for a in extra)
    timeout = options.get("timeout", DEFAULT_TIMEOUT)

    path = None
    stdin = None
    try:
        if options.get("stdin"):
            stdin = code.encode("utf-8")
        else:
            suffix = options.get("extension") or ""
            if suffix and not suffix.startswith("."):
                suffix = "." + suffix
            handle = tempfile.NamedTemporaryFile(
                "w", suffix=suffix, prefix="code_chunk_", dir=cwd, delete=False, encoding="utf-8"
            )
            with handle:
                handle.write(code)
            path = handle.name
            args.append(path)

        logger.debug(f"Running code chunk: {args}")
        try:
            returncode, stdout, stderr = await _run(args, stdin, cwd, timeout)
        # TimeoutError subclasses OSError on 3.11+
        except asyncio.TimeoutError as exc:
            raise ExecutorError(f"{args[0]} timed out after {timeout}s") from exc
        except OSError as exc:
            raise ExecutorError(f"{args[0]}: {exc}") from exc
    finally:
        if path is not None:
            try:
                os.remove(path)
            except OSError:
                logger.warning(f"Could not remove {path}")

    if returncode != 0:
        raise ExecutorError(stderr.decode("utf-8", errors="replace").strip() or f"{args[0]} exited {returncode}")
    if options.get("output") == "png":
        return stdout
    return stdout.decode("utf-8", errors="replace")
