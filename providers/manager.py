"""
Translation Backend Manager
Subtitle Translator - Multi-Provider Support

Registry of available backends and factories that build them from
settings, including the credential pool used for per-batch rotation.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Type

from config.logging_config import get_logger
from core.credentials import CredentialStore, RotationMode

from .base import BackendConfig, BaseTranslationBackend, ProviderType
from .claude_provider import ClaudeProvider
from .deepseek_provider import DeepSeekProvider
from .google_translate_provider import GoogleTranslateProvider
from .openai_provider import OpenAIProvider

logger = get_logger(__name__)


@dataclass
class ProviderInfo:
    """Information about a translation backend"""
    type: ProviderType
    name: str
    description: str
    supports_streaming: bool
    default_model: str
    env_key: Optional[str]  # Environment variable name for API key


# Registry of all available providers
PROVIDER_REGISTRY: Dict[ProviderType, Type[BaseTranslationBackend]] = {
    ProviderType.OPENAI: OpenAIProvider,
    ProviderType.CLAUDE: ClaudeProvider,
    ProviderType.DEEPSEEK: DeepSeekProvider,
    ProviderType.GOOGLE_TRANSLATE: GoogleTranslateProvider,
}

# Provider information
PROVIDER_INFO: Dict[ProviderType, ProviderInfo] = {
    ProviderType.OPENAI: ProviderInfo(
        type=ProviderType.OPENAI,
        name="OpenAI GPT",
        description="GPT-4o family - versatile LLM translation",
        supports_streaming=True,
        default_model=OpenAIProvider.DEFAULT_MODEL,
        env_key="OPENAI_API_KEY",
    ),
    ProviderType.CLAUDE: ProviderInfo(
        type=ProviderType.CLAUDE,
        name="Anthropic Claude",
        description="Claude - nuanced dialogue translation",
        supports_streaming=True,
        default_model=ClaudeProvider.DEFAULT_MODEL,
        env_key="ANTHROPIC_API_KEY",
    ),
    ProviderType.DEEPSEEK: ProviderInfo(
        type=ProviderType.DEEPSEEK,
        name="DeepSeek",
        description="DeepSeek V3 - cost-effective, strong multilingual",
        supports_streaming=True,
        default_model=DeepSeekProvider.DEFAULT_MODEL,
        env_key="DEEPSEEK_API_KEY",
    ),
    ProviderType.GOOGLE_TRANSLATE: ProviderInfo(
        type=ProviderType.GOOGLE_TRANSLATE,
        name="Google Translate",
        description="Keyless web endpoint - fast, no prompt support",
        supports_streaming=False,
        default_model=GoogleTranslateProvider.DEFAULT_MODEL,
        env_key=None,
    ),
}

PROVIDER_ALIASES = {
    "openai": ProviderType.OPENAI,
    "gpt": ProviderType.OPENAI,
    "claude": ProviderType.CLAUDE,
    "anthropic": ProviderType.CLAUDE,
    "deepseek": ProviderType.DEEPSEEK,
    "google": ProviderType.GOOGLE_TRANSLATE,
    "googletranslate": ProviderType.GOOGLE_TRANSLATE,
    "google_translate": ProviderType.GOOGLE_TRANSLATE,
}

# Settings key prefix per provider
SETTINGS_KEY_NAMES = {
    ProviderType.OPENAI: "openai",
    ProviderType.CLAUDE: "anthropic",
    ProviderType.DEEPSEEK: "deepseek",
    ProviderType.GOOGLE_TRANSLATE: "google",
}


def resolve_provider(name) -> ProviderType:
    """Map a provider name or alias to its ProviderType"""
    if isinstance(name, ProviderType):
        return name
    key = (name or "").strip().lower()
    if key not in PROVIDER_ALIASES:
        valid = ", ".join(sorted(PROVIDER_ALIASES))
        raise ValueError(f"Unknown provider: {name!r}. Valid: {valid}")
    return PROVIDER_ALIASES[key]


def create_backend(
    provider,
    model: Optional[str] = None,
    api_key: str = "",
    **config_kwargs,
) -> BaseTranslationBackend:
    """
    Create a backend instance.

    Args:
        provider: Provider name/alias or ProviderType
        model: Model name (provider default when empty)
        api_key: API key (ignored by keyless backends)
        **config_kwargs: Extra BackendConfig fields (timeout, base_url, ...)
    """
    ptype = resolve_provider(provider)
    info = PROVIDER_INFO[ptype]
    if info.env_key and not api_key:
        raise ValueError(f"API key not found for {info.name}. Set {info.env_key} in .env")

    config = BackendConfig(api_key=api_key, model=model or info.default_model, **config_kwargs)
    return PROVIDER_REGISTRY[ptype](config)


def create_backends_from_settings(
    settings,
) -> Tuple[BaseTranslationBackend, Optional[BaseTranslationBackend], CredentialStore]:
    """
    Build the primary backend, the optional fallback backend and the
    credential pool of the primary provider.
    """
    primary_type = resolve_provider(settings.provider)
    keys = settings.get_api_keys(SETTINGS_KEY_NAMES[primary_type])
    store = CredentialStore(keys, mode=RotationMode(settings.rotation_mode))

    extra = {"timeout": settings.translation_timeout}
    if primary_type == ProviderType.GOOGLE_TRANSLATE:
        extra["base_url"] = settings.google_translate_url

    primary = create_backend(
        primary_type,
        model=settings.model or None,
        api_key=keys[0] if keys else "",
        **extra,
    )
    logger.info(f"Primary backend: {primary!r} ({len(store)} credential(s))")

    fallback = None
    if settings.fallback_provider:
        fallback_type = resolve_provider(settings.fallback_provider)
        fallback_keys = settings.get_api_keys(SETTINGS_KEY_NAMES[fallback_type])
        fallback_extra = {"timeout": settings.translation_timeout}
        if fallback_type == ProviderType.GOOGLE_TRANSLATE:
            fallback_extra["base_url"] = settings.google_translate_url
        fallback = create_backend(
            fallback_type,
            model=settings.fallback_model or None,
            api_key=fallback_keys[0] if fallback_keys else "",
            **fallback_extra,
        )
        logger.info(f"Fallback backend: {fallback!r}")

    return primary, fallback, store
