"""Tests for the code-chunk runtime."""

from __future__ import annotations

import asyncio
import base64

import pytest
from bs4 import BeautifulSoup

from docengine.markdown.context import RenderOptions

CHAINED = (
    "```python {cmd: true, id: a}\nx = 1\n```\n\n"
    "```python {cmd: true, id: b, continue: true}\nprint(x)\n```\n"
)


def chunk_block(chunk_id, code="payload", **options):
    extra = "".join(f", {key}: {value}" for key, value in options.items())
    return f"```python {{cmd: python3, id: {chunk_id}{extra}}}\n{code}\n```\n\n"


class TestRunCodeChunk:
    """Running a single chunk."""

    @pytest.mark.asyncio
    async def test_missing_id(self, make_engine, executor):
        engine = make_engine()

        assert await engine.run_code_chunk("nope") == ""
        assert await engine.run_code_chunk(None) == ""
        assert executor.calls == []

    @pytest.mark.asyncio
    async def test_continue_prepends_previous_chunk(self, make_engine, executor):
        engine = make_engine()
        await engine.render(CHAINED)

        await engine.run_code_chunk("b")

        assert executor.calls[0][0] == "x = 1\nprint(x)\n"

    @pytest.mark.asyncio
    async def test_edits_to_ancestor_are_picked_up(self, make_engine, executor):
        engine = make_engine()
        await engine.render(CHAINED)
        await engine.render(CHAINED.replace("x = 1", "x = 2"))

        await engine.run_code_chunk("b")

        assert executor.calls[0][0] == "x = 2\nprint(x)\n"

    @pytest.mark.asyncio
    async def test_explicit_continue(self, make_engine, executor):
        engine = make_engine()
        await engine.render(
            chunk_block("setup", "import os")
            + chunk_block("other", "unrelated")
            + chunk_block("use", "os.getcwd()", **{"continue": "setup"})
        )

        await engine.run_code_chunk("use")

        assert executor.calls[0][0] == "import os\nos.getcwd()\n"

    @pytest.mark.asyncio
    async def test_continue_cycle_terminates(self, make_engine, executor):
        engine = make_engine()
        await engine.render(
            chunk_block("a", "A", **{"continue": "b"}) + chunk_block("b", "B", **{"continue": "a"})
        )

        await engine.run_code_chunk("a")

        assert executor.calls[0][0] == "B\nA\n"

    @pytest.mark.asyncio
    async def test_running_chunk_is_not_reentered(self, make_engine, executor):
        engine = make_engine()
        await engine.render(chunk_block("slow"))
        executor.gate = asyncio.Event()

        first = asyncio.create_task(engine.run_code_chunk("slow"))
        while not executor.calls:
            await asyncio.sleep(0)

        assert engine.context.cache.code_chunks.get("slow").running is True
        assert await engine.run_code_chunk("slow") == ""

        executor.gate.set()
        assert await first == '<pre class="language-text">payload\n</pre>'
        assert len(executor.calls) == 1
        assert engine.context.cache.code_chunks.get("slow").running is False

    @pytest.mark.asyncio
    async def test_running_class_while_executing(self, make_engine, executor):
        engine = make_engine()
        text = chunk_block("slow")
        await engine.render(text)
        executor.gate = asyncio.Event()

        task = asyncio.create_task(engine.run_code_chunk("slow"))
        while not executor.calls:
            await asyncio.sleep(0)
        output = await engine.render(text)
        executor.gate.set()
        await task

        chunk = BeautifulSoup(output.html, "html.parser").find("div", class_="code-chunk")
        assert chunk["class"] == ["code-chunk", "running"]

    @pytest.mark.asyncio
    async def test_executor_error(self, make_engine, executor):
        engine = make_engine()
        await engine.render(chunk_block("e"))
        executor.errors["e"] = RuntimeError("boom <1>")

        result = await engine.run_code_chunk("e")

        assert result == '<pre class="language-text">boom &lt;1&gt;</pre>'
        chunk = engine.context.cache.code_chunks.get("e")
        assert chunk.result == result
        assert chunk.running is False

    @pytest.mark.asyncio
    async def test_executor_receives_options(self, make_engine, executor):
        engine = make_engine()
        await engine.render(chunk_block("o", args='["-u"]'))

        await engine.run_code_chunk("o")

        options = executor.calls[0][1]
        assert options["cmd"] == "python3"
        assert options["id"] == "o"
        assert options["args"] == ["-u"]


class TestOutputFormats:
    """How an executor's result is turned into markup."""

    @pytest.mark.asyncio
    async def test_text_is_escaped(self, make_engine, executor):
        engine = make_engine()
        await engine.render(chunk_block("t"))
        executor.results["t"] = "<tag> & more"

        assert await engine.run_code_chunk("t") == '<pre class="language-text">&lt;tag&gt; &amp; more</pre>'

    @pytest.mark.asyncio
    async def test_html(self, make_engine, executor):
        engine = make_engine()
        await engine.render(chunk_block("h", output="html"))
        executor.results["h"] = "<b>bold</b>"

        assert await engine.run_code_chunk("h") == "<b>bold</b>"

    @pytest.mark.asyncio
    async def test_none(self, make_engine, executor):
        engine = make_engine()
        await engine.render(chunk_block("n", output="none"))

        assert await engine.run_code_chunk("n") == ""
        assert engine.context.cache.code_chunks.get("n").plain_result == "payload\n"

    @pytest.mark.asyncio
    async def test_png(self, make_engine, executor):
        engine = make_engine()
        await engine.render(chunk_block("p", output="png"))
        executor.results["p"] = b"\x89PNG"

        result = await engine.run_code_chunk("p")

        encoded = base64.b64encode(b"\x89PNG").decode("ascii")
        assert result == f'<img src="data:image/png;charset=utf-8;base64,{encoded}">'

    @pytest.mark.asyncio
    async def test_markdown_is_rendered(self, make_engine, executor):
        engine = make_engine()
        await engine.render(chunk_block("m", output="markdown"))
        executor.results["m"] = "# Title\n\nsome *text*\n"

        result = await engine.run_code_chunk("m")

        assert "Title</h1>" in result
        assert "<em>text</em>" in result

    @pytest.mark.asyncio
    async def test_result_shows_on_next_render(self, make_engine, executor):
        engine = make_engine()
        text = chunk_block("r")
        await engine.render(text)
        await engine.run_code_chunk("r")

        output = await engine.render(text)

        div = BeautifulSoup(output.html, "html.parser").find("div", class_="output-div")
        assert div.find("pre").get_text() == "payload\n"

    @pytest.mark.asyncio
    async def test_markdown_chunks_do_not_replace_outer_chunks(self, make_engine, executor):
        engine = make_engine()
        await engine.render("```sh {cmd: true, output: markdown}\nouter\n```\n")
        executor.results["code-chunk-id-0"] = "```sh {cmd: true}\ninner\n```\n"

        await engine.run_code_chunk("code-chunk-id-0")

        store = engine.context.cache.code_chunks
        assert store.get("code-chunk-id-0").code == "outer\n"
        assert store.get("code-chunk-nested-id-0").code == "inner\n"

    @pytest.mark.asyncio
    async def test_modify_source(self, make_engine, executor):
        patches = []

        def patch(chunk, result, path):
            patches.append((chunk.id, result, path))
            return "patched"

        engine = make_engine(on_source_patch=patch)
        await engine.render(chunk_block("ms", modify_source="true", code_chunk_offset=0))
        executor.results["ms"] = "generated"

        result = await engine.run_code_chunk("ms")

        assert result == "patched"
        assert patches == [("ms", "generated", engine.context.file_path)]
        assert engine.context.cache.code_chunks.get("ms").result == ""

    @pytest.mark.asyncio
    async def test_modify_source_without_hook(self, make_engine, executor):
        engine = make_engine()
        await engine.render(chunk_block("ms", modify_source="true", code_chunk_offset=0))
        executor.results["ms"] = "generated"

        assert await engine.run_code_chunk("ms") == ""
        assert engine.context.cache.code_chunks.get("ms").result == ""


class TestTocChunk:
    @pytest.mark.asyncio
    async def test_toc_from_last_headings(self, make_engine, executor):
        engine = make_engine()
        await engine.render("# A\n\n## B\n\n```text {cmd: toc, id: t, orderedList: true, output: none}\n```\n")

        await engine.run_code_chunk("t")

        assert executor.calls == []
        assert engine.context.cache.code_chunks.get("t").plain_result == "1. [A](#a)\n\t1. [B](#b)\n"

    @pytest.mark.asyncio
    async def test_depth_range(self, make_engine):
        engine = make_engine()
        await engine.render(
            "# A\n\n## B\n\n### C\n\n```text {cmd: toc, id: t, depthFrom: 2, depthTo: 2, output: none}\n```\n"
        )

        await engine.run_code_chunk("t")

        assert engine.context.cache.code_chunks.get("t").plain_result == "* [B](#b)\n"


class TestRunAll:
    """Running every chunk at once."""

    @pytest.mark.asyncio
    async def test_run_all(self, make_engine, executor):
        engine = make_engine()
        await engine.render(chunk_block("one", "1") + chunk_block("two", "2"))

        results = await engine.run_all_code_chunks()

        assert results == ['<pre class="language-text">1\n</pre>', '<pre class="language-text">2\n</pre>']
        assert sorted(call[0] for call in executor.calls) == ["1\n", "2\n"]

    @pytest.mark.asyncio
    async def test_render_with_run_all(self, make_engine, executor):
        engine = make_engine()

        output = await engine.render(
            chunk_block("one", "1") + chunk_block("two", "2"), RenderOptions(run_all_code_chunks=True)
        )

        assert len(executor.calls) == 2
        outputs = BeautifulSoup(output.html, "html.parser").find_all("div", class_="output-div")
        assert [div.get_text() for div in outputs] == ["1\n", "2\n"]

    @pytest.mark.asyncio
    async def test_cache_result(self, make_engine, executor):
        engine = make_engine()
        text = chunk_block("c")
        await engine.render(text)

        engine.cache_code_chunk_result("c", "<i>cached</i>")
        engine.cache_code_chunk_result("missing", "ignored")
        output = await engine.render(text)

        assert "<i>cached</i>" in output.html
        assert executor.calls == []
