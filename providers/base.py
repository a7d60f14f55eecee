"""
Base Translation Backend - Abstract Interface
Subtitle Translator - Multi-Provider Support
"""

import inspect
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Optional

from config.constants import TRANSLATION_TIMEOUT
from core.recovery import RetryPolicy

PartialCallback = Callable[[str], Any]


class ProviderType(Enum):
    """Supported translation backends"""
    OPENAI = "openai"
    CLAUDE = "claude"
    DEEPSEEK = "deepseek"
    GOOGLE_TRANSLATE = "google"


@dataclass
class BackendConfig:
    """Provider configuration"""
    api_key: str = field(default="", repr=False)
    model: str = ""
    max_tokens: int = 8192
    temperature: float = 0.3
    base_url: Optional[str] = None  # For custom endpoints
    timeout: float = TRANSLATION_TIMEOUT


async def notify_partial(on_partial: Optional[PartialCallback], text: str) -> None:
    """Invoke a sync or async partial-output callback"""
    if on_partial is None:
        return
    result = on_partial(text)
    if inspect.isawaitable(result):
        await result


class BaseTranslationBackend(ABC):
    """
    Abstract base class for translation backends.

    Backends receive fully formatted request content plus the prompt and
    return raw response text; parsing is the engine's job. Failures are
    raised as core.errors.BackendError subclasses.
    """

    retry_policy: RetryPolicy = RetryPolicy.MISMATCH_RETRY
    DEFAULT_MODEL: str = ""

    def __init__(self, config: Optional[BackendConfig] = None):
        self.config = config or BackendConfig()
        if not self.config.model:
            self.config = replace(self.config, model=self.DEFAULT_MODEL)
        self._client = None

    @property
    @abstractmethod
    def provider_type(self) -> ProviderType:
        """Return the provider type"""
        pass

    @property
    def provider_name(self) -> str:
        return self.provider_type.value

    @property
    def supports_streaming(self) -> bool:
        return False

    @abstractmethod
    async def translate(
        self,
        content: str,
        source_hint: str,
        target_language: str,
        prompt: str,
    ) -> str:
        """
        Translate formatted request content.

        Args:
            content: Formatted batch (and optional context section)
            source_hint: Source language hint ("detected" when unknown)
            target_language: Target language
            prompt: Instructions for the backend

        Returns:
            Raw response text
        """
        pass

    async def stream_translate(
        self,
        content: str,
        source_hint: str,
        target_language: str,
        prompt: str,
        on_partial: Optional[PartialCallback] = None,
    ) -> str:
        """
        Stream a translation, calling on_partial with the cumulative output.

        Backends without streaming translate in one call and report the
        full result as a single partial.
        """
        result = await self.translate(content, source_hint, target_language, prompt)
        await notify_partial(on_partial, result)
        return result

    async def count_tokens(self, content: str, target_language: str, prompt: str) -> Optional[int]:
        """Exact token count for a request, or None when unsupported"""
        return None

    def estimate_token_count(self, text: str) -> int:
        """Heuristic token count (~4 chars per token, +10%)"""
        if not text:
            return 0
        return math.ceil(math.ceil(len(text) / 4) * 1.1)

    def with_credential(self, credential) -> "BaseTranslationBackend":
        """Independent copy of this backend bound to another API key"""
        if credential is None or credential.value == self.config.api_key:
            return self
        return type(self)(replace(self.config, api_key=credential.value))

    async def aclose(self) -> None:
        """Release the underlying client"""
        client, self._client = self._client, None
        if client is not None and hasattr(client, "close"):
            result = client.close()
            if inspect.isawaitable(result):
                await result

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} model={self.config.model}>"
