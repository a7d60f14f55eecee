"""
Translation Providers Package
Subtitle Translator - Multi-Provider Support

Supports:
- OpenAI GPT (gpt-4o, gpt-4o-mini, ...)
- Anthropic Claude (claude-sonnet-4, claude-3.5-haiku)
- DeepSeek (deepseek-chat, deepseek-reasoner)
- Google Translate (keyless web endpoint, no prompt support)

Usage:
    from providers import create_backend

    backend = create_backend("claude", api_key="sk-...")
    raw = await backend.translate(content, "detected", "French", prompt)
"""

from .base import (
    BaseTranslationBackend,
    BackendConfig,
    ProviderType,
)

from .openai_provider import OpenAIProvider
from .claude_provider import ClaudeProvider
from .deepseek_provider import DeepSeekProvider
from .google_translate_provider import GoogleTranslateProvider

from .manager import (
    ProviderInfo,
    PROVIDER_REGISTRY,
    PROVIDER_INFO,
    create_backend,
    create_backends_from_settings,
    resolve_provider,
)

__all__ = [
    'BaseTranslationBackend',
    'BackendConfig',
    'ProviderType',
    'OpenAIProvider',
    'ClaudeProvider',
    'DeepSeekProvider',
    'GoogleTranslateProvider',
    'ProviderInfo',
    'PROVIDER_REGISTRY',
    'PROVIDER_INFO',
    'create_backend',
    'create_backends_from_settings',
    'resolve_provider',
]
