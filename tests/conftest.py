"""Shared fixtures: fake capabilities and an engine factory."""

from __future__ import annotations

import asyncio

import django
import pytest
from django.conf import settings
from django.utils.html import escape

if not settings.configured:
    settings.configure(
        INSTALLED_APPS=["docengine"],
        TEMPLATES=[{"BACKEND": "django.template.backends.django.DjangoTemplates", "APP_DIRS": False}],
        USE_TZ=True,
    )
    django.setup()

from docengine.markdown.config import EngineConfig  # noqa: E402
from docengine.markdown.context import RenderContext  # noqa: E402
from docengine.markdown.renderer import MarkdownEngine  # noqa: E402


class RecordingExecutor:
    """Echoes the code it receives, or returns a canned result per chunk id."""

    def __init__(self):
        self.calls: list[tuple[str, dict]] = []
        self.results: dict[str, object] = {}
        self.errors: dict[str, Exception] = {}
        self.gate: asyncio.Event | None = None

    async def __call__(self, code, cwd, options):
        self.calls.append((code, options))
        if self.gate is not None:
            await self.gate.wait()
        chunk_id = options.get("id")
        if chunk_id in self.errors:
            raise self.errors[chunk_id]
        if chunk_id in self.results:
            return self.results[chunk_id]
        return code


class CountingDiagramRenderer:
    """Returns a numbered svg per call so cache reuse is visible."""

    def __init__(self):
        self.calls: list[tuple[str, str]] = []
        self.fail_on: set[str] = set()
        self.gates: dict[str, asyncio.Event] = {}
        self.started = asyncio.Event()

    async def __call__(self, kind, code, options, cwd):
        self.calls.append((kind, code))
        self.started.set()
        gate = self.gates.get(code.strip())
        if gate is not None:
            await gate.wait()
        if code.strip() in self.fail_on:
            raise RuntimeError(f"cannot render {code.strip()}")
        return f'<svg data-kind="{kind}" data-n="{len(self.calls)}"></svg>'


def fake_highlight(code, lang):
    if lang == "broken":
        raise ValueError("no lexer")
    return f'<span class="hl">{escape(code)}</span>'


def fake_render_math(expression, display_mode):
    if expression == "\\fail":
        raise ValueError("KaTeX parse error")
    tag = "div" if display_mode else "span"
    return f'<{tag} class="katex">{escape(expression)}</{tag}>'


@pytest.fixture
def executor():
    return RecordingExecutor()


@pytest.fixture
def diagram_renderer():
    return CountingDiagramRenderer()


@pytest.fixture
def render_context(tmp_path):
    return RenderContext(str(tmp_path / "doc.md"), str(tmp_path), EngineConfig())


@pytest.fixture
def make_engine(tmp_path, executor, diagram_renderer):
    def _make(config=None, **kwargs):
        kwargs.setdefault("execute_code", executor)
        kwargs.setdefault("render_diagram", diagram_renderer)
        kwargs.setdefault("highlight", fake_highlight)
        kwargs.setdefault("render_math", fake_render_math)
        return MarkdownEngine(str(tmp_path / "doc.md"), str(tmp_path), EngineConfig(**(config or {})), **kwargs)

    return _make
