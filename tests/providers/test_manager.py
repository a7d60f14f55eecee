"""
Tests for providers/manager.py - backend registry and factories
"""
import pytest

from config.settings import Settings
from core.credentials import RotationMode
from providers.base import BackendConfig, ProviderType
from providers.claude_provider import ClaudeProvider
from providers.google_translate_provider import GoogleTranslateProvider
from providers.manager import (
    PROVIDER_INFO,
    PROVIDER_REGISTRY,
    create_backend,
    create_backends_from_settings,
    resolve_provider,
)
from providers.openai_provider import OpenAIProvider


@pytest.fixture
def settings_factory(monkeypatch):
    for name in ("OPENAI_API_KEY", "OPENAI_API_KEYS", "ANTHROPIC_API_KEY",
                 "ANTHROPIC_API_KEYS", "DEEPSEEK_API_KEY", "DEEPSEEK_API_KEYS"):
        monkeypatch.delenv(name, raising=False)

    def make(**kwargs):
        return Settings(**kwargs)

    return make


class TestRegistry:
    """Test the provider registry."""

    def test_every_provider_has_info(self):
        assert set(PROVIDER_REGISTRY) == set(PROVIDER_INFO) == set(ProviderType)

    @pytest.mark.parametrize("provider_type", list(ProviderType))
    def test_streaming_flag_matches_backend(self, provider_type):
        backend = PROVIDER_REGISTRY[provider_type](BackendConfig(api_key="sk-test"))
        assert PROVIDER_INFO[provider_type].supports_streaming == backend.supports_streaming

    @pytest.mark.parametrize("name,expected", [
        ("openai", ProviderType.OPENAI),
        ("GPT", ProviderType.OPENAI),
        ("anthropic", ProviderType.CLAUDE),
        (" claude ", ProviderType.CLAUDE),
        ("google_translate", ProviderType.GOOGLE_TRANSLATE),
        (ProviderType.DEEPSEEK, ProviderType.DEEPSEEK),
    ])
    def test_resolve_provider(self, name, expected):
        assert resolve_provider(name) == expected

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            resolve_provider("babelfish")


class TestCreateBackend:
    """Test create_backend."""

    def test_keyless_google(self):
        assert isinstance(create_backend("google"), GoogleTranslateProvider)

    def test_missing_key_raises(self):
        with pytest.raises(ValueError):
            create_backend("openai")

    def test_default_model(self):
        backend = create_backend("claude", api_key="sk-ant")
        assert isinstance(backend, ClaudeProvider)
        assert backend.config.model == ClaudeProvider.DEFAULT_MODEL

    def test_config_overrides(self):
        backend = create_backend("openai", model="gpt-4o", api_key="sk", timeout=5.0)
        assert backend.config.model == "gpt-4o"
        assert backend.config.timeout == 5.0


class TestCreateBackendsFromSettings:
    """Test create_backends_from_settings."""

    def test_primary_with_key_pool(self, settings_factory):
        settings = settings_factory(provider="openai", openai_api_keys="sk-1,sk-2,sk-1")

        primary, fallback, store = create_backends_from_settings(settings)

        assert isinstance(primary, OpenAIProvider)
        assert primary.config.api_key == "sk-1"
        assert fallback is None
        assert len(store) == 2
        assert store.mode == RotationMode.PER_BATCH

    def test_fallback_backend(self, settings_factory):
        settings = settings_factory(
            provider="claude",
            anthropic_api_key="sk-ant",
            fallback_provider="google",
            rotation_mode="none",
        )

        primary, fallback, store = create_backends_from_settings(settings)

        assert isinstance(primary, ClaudeProvider)
        assert isinstance(fallback, GoogleTranslateProvider)
        assert store.mode == RotationMode.NONE

    def test_missing_primary_key(self, settings_factory):
        with pytest.raises(ValueError):
            create_backends_from_settings(settings_factory(provider="deepseek"))
