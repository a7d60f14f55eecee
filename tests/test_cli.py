"""
Tests for translate_subtitles.py - command line entry point
"""
from pathlib import Path
from unittest.mock import patch

import pytest

import translate_subtitles
from core.recovery import RetryPolicy
from providers.base import BackendConfig, BaseTranslationBackend, ProviderType


class UpperBackend(BaseTranslationBackend):
    """Upper-cases numbered entries"""

    retry_policy = RetryPolicy.MISMATCH_RETRY

    @property
    def provider_type(self):
        return ProviderType.OPENAI

    async def translate(self, content, source_hint, target_language, prompt):
        return content.upper()


@pytest.fixture(autouse=True)
def console_only_logging(monkeypatch):
    monkeypatch.setenv("LOG_FILE", "")


@pytest.fixture
def srt_file(tmp_path, sample_srt) -> Path:
    path = tmp_path / "movie.srt"
    path.write_text(sample_srt, encoding="utf-8")
    return path


class TestCli:
    """Test the CLI."""

    def test_default_output_name(self):
        assert translate_subtitles.get_default_output("/tmp/movie.srt", "French") == Path("/tmp/movie.French.srt")
        assert translate_subtitles.get_default_output("movie.srt", "pt/BR").name == "movie.ptBR.srt"

    def test_flags_override_settings(self, monkeypatch):
        monkeypatch.delenv("PROVIDER", raising=False)
        args = translate_subtitles.build_parser().parse_args(
            ["movie.srt", "--target", "de", "--provider", "google", "--mode", "tagged",
             "--concurrency", "2", "--stream"]
        )
        settings = translate_subtitles.build_settings(args)

        assert settings.target_lang == "de"
        assert settings.provider == "google"
        assert settings.format_mode == "tagged"
        assert settings.concurrency == 2
        assert settings.streaming_enabled

    def test_translates_file(self, srt_file, monkeypatch):
        backend = UpperBackend(BackendConfig(model="stub"))
        monkeypatch.setattr(
            translate_subtitles,
            "create_backends_from_settings",
            lambda settings: (backend, None, None),
        )
        output = srt_file.with_name("out.srt")

        with patch("sys.argv", ["subtitle-translator", str(srt_file), "-t", "fr", "-o", str(output),
                                "--concurrency", "1"]):
            assert translate_subtitles.main() == 0

        assert "HELLO THERE." in output.read_text(encoding="utf-8")
        assert "00:00:03,000 --> 00:00:05,000" in output.read_text(encoding="utf-8")

    def test_verbose_flag(self):
        args = translate_subtitles.build_parser().parse_args(["movie.srt", "-v"])
        assert args.verbose

    def test_missing_input(self, tmp_path):
        with patch("sys.argv", ["subtitle-translator", str(tmp_path / "missing.srt"), "-t", "fr"]):
            assert translate_subtitles.main() == 1

    def test_invalid_concurrency(self, srt_file):
        with patch("sys.argv", ["subtitle-translator", str(srt_file), "-t", "fr", "--concurrency", "9"]):
            assert translate_subtitles.main() == 2
