"""Tests for engine configuration."""

from __future__ import annotations

import logging

from django.test import override_settings

from docengine.markdown.config import (
    EngineConfig,
    compile_protocols_white_list,
    get_engine_config,
    get_pandoc_config,
    merge_config,
)
from docengine.markdown.context import RenderContext


class TestEngineConfig:
    """Layering of defaults, settings and overrides."""

    def test_defaults(self):
        config = get_engine_config()

        assert config == EngineConfig()
        assert config.math_rendering_option == "KaTeX"
        assert config.front_matter_rendering_option == "table"

    def test_overrides(self):
        config = get_engine_config({"math_rendering_option": "MathJax"})

        assert config.math_rendering_option == "MathJax"
        assert config.enable_wiki_link_syntax is True

    def test_unknown_keys_are_dropped(self, caplog):
        with caplog.at_level(logging.WARNING, logger="docengine.markdown.config"):
            config = get_engine_config({"no_such_option": 1})

        assert config == EngineConfig()
        assert "Ignoring unknown markdown engine option 'no_such_option'" in caplog.text

    def test_django_settings_layer(self):
        with override_settings(DOCENGINE_MARKDOWN={"enable_typographer": True, "image_folder_path": "/img"}):
            config = get_engine_config({"image_folder_path": "/media"})

        assert config.enable_typographer is True
        assert config.image_folder_path == "/media"

    def test_instance_is_copied(self):
        original = EngineConfig(use_pandoc_parser=True)

        config = get_engine_config(original)

        assert config == original
        assert config is not original

    def test_merge_is_a_copy(self):
        base = EngineConfig()

        merged = merge_config(base, {"wiki_link_file_extension": ".html"})

        assert merged.wiki_link_file_extension == ".html"
        assert base.wiki_link_file_extension == ".md"


class TestProtocolsWhiteList:
    def test_listed_protocols(self):
        pattern = compile_protocols_white_list("http, ftp")

        assert pattern.match("ftp://host/file")
        assert pattern.match("http://host")
        assert not pattern.match("https://host")
        assert not pattern.match("relative/path")

    def test_empty_falls_back(self):
        pattern = compile_protocols_white_list(" , ")

        assert pattern.match("https://host")
        assert pattern.match("file:///tmp/x")

    def test_context_recompiles_on_update(self, tmp_path):
        context = RenderContext(str(tmp_path / "doc.md"), str(tmp_path), EngineConfig())
        assert not context.protocols_white_list_re.match("ftp://host")

        context.update_config({"protocols_white_list": "ftp"})

        assert context.protocols_white_list_re.match("ftp://host")


class TestPandocConfig:
    def test_arguments(self):
        config = EngineConfig(pandoc_markdown_flavor="gfm", pandoc_arguments=["--wrap=none"])

        pandoc = get_pandoc_config(config)

        assert pandoc == {"format": "gfm", "to": "html5", "extra_args": ["--mathjax", "--wrap=none"]}
