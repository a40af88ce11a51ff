"""Tests for the default highlighting, diagram and execution capabilities."""

from __future__ import annotations

import asyncio
import shlex
import sys

import pytest
from pygments.util import ClassNotFound

from docengine.markdown import renderers
from docengine.markdown.errors import DiagramRenderError, ExecutorError
from docengine.markdown.renderers import execute_code, highlight_code, render_diagram

PYTHON = shlex.quote(sys.executable)


class TestHighlight:
    def test_python(self):
        html = highlight_code("def f():\n    pass\n", "python")

        assert '<span class="k">def</span>' in html
        assert not html.startswith("<div")

    def test_unknown_language(self):
        with pytest.raises(ClassNotFound):
            highlight_code("x", "no-such-language")


class TestExecuteCode:
    """Code chunks run as real subprocesses."""

    @pytest.mark.asyncio
    async def test_file_argument(self, tmp_path):
        result = await execute_code("print('hi')\n", str(tmp_path), {"cmd": PYTHON})

        assert result == "hi\n"
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_stdin(self, tmp_path):
        result = await execute_code("print(6 * 7)\n", str(tmp_path), {"cmd": PYTHON, "args": ["-"], "stdin": True})

        assert result == "42\n"

    @pytest.mark.asyncio
    async def test_runs_in_document_directory(self, tmp_path):
        result = await execute_code("import os; print(os.getcwd())\n", str(tmp_path), {"cmd": PYTHON})

        assert result.strip() == str(tmp_path)

    @pytest.mark.asyncio
    async def test_png_returns_bytes(self, tmp_path):
        code = "import sys; sys.stdout.buffer.write(b'\\x89PNG')\n"

        result = await execute_code(code, str(tmp_path), {"cmd": PYTHON, "output": "png"})

        assert result == b"\x89PNG"

    @pytest.mark.asyncio
    async def test_non_zero_exit(self, tmp_path):
        with pytest.raises(ExecutorError, match="bad things"):
            await execute_code("import sys; sys.exit('bad things')\n", str(tmp_path), {"cmd": PYTHON})

    @pytest.mark.asyncio
    async def test_missing_program(self, tmp_path):
        with pytest.raises(ExecutorError):
            await execute_code("x", str(tmp_path), {"cmd": "no-such-program-here"})

    @pytest.mark.asyncio
    async def test_timeout(self, tmp_path):
        with pytest.raises(ExecutorError, match="timed out"):
            await execute_code("import time; time.sleep(5)\n", str(tmp_path), {"cmd": PYTHON, "timeout": 0.2})

    @pytest.mark.asyncio
    async def test_no_command(self, tmp_path):
        with pytest.raises(ExecutorError):
            await execute_code("x", str(tmp_path), {"cmd": True})


class TestRenderDiagram:
    @pytest.mark.asyncio
    async def test_unknown_kind(self, tmp_path):
        with pytest.raises(DiagramRenderError):
            await render_diagram("ditaa", "x", {}, str(tmp_path))

    @pytest.mark.asyncio
    async def test_plantuml_without_jar(self, tmp_path, monkeypatch):
        monkeypatch.delenv("PLANTUML_JAR", raising=False)

        with pytest.raises(DiagramRenderError, match="PLANTUML_JAR"):
            await render_diagram("plantuml", "A -> B", {}, str(tmp_path))

    @pytest.mark.asyncio
    async def test_timeout(self, tmp_path, monkeypatch):
        async def slow_run(args, stdin, cwd, timeout):
            raise asyncio.TimeoutError()

        monkeypatch.setattr(renderers, "_run", slow_run)

        with pytest.raises(DiagramRenderError, match="dot timed out"):
            await render_diagram("graphviz", "digraph {}", {}, str(tmp_path))
