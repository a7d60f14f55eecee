"""
OpenAI Provider - GPT-4o, GPT-4o-mini, etc.
Subtitle Translator - Multi-Provider Support
"""

from typing import Any, Dict, List, Optional

import openai
from openai import AsyncOpenAI

from config.logging_config import get_logger
from core.errors import (
    BackendError,
    ContentPolicyError,
    NetworkError,
    TokenLimitExceededError,
    classify_error,
)

from .base import (
    BaseTranslationBackend,
    PartialCallback,
    ProviderType,
    notify_partial,
)

logger = get_logger(__name__)


class OpenAIProvider(BaseTranslationBackend):
    """
    OpenAI chat-completions backend.

    Supports:
    - GPT-4o (recommended)
    - GPT-4o-mini (fast, cost-effective)
    - Streaming
    """

    MODELS = {
        "gpt-4o": "GPT-4o",
        "gpt-4o-mini": "GPT-4o Mini (Fast)",
        "gpt-4.1": "GPT-4.1",
        "gpt-4.1-mini": "GPT-4.1 Mini",
    }

    DEFAULT_MODEL = "gpt-4o-mini"
    BASE_URL: Optional[str] = None

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.OPENAI

    @property
    def supports_streaming(self) -> bool:
        return True

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.config.api_key,
                base_url=self.config.base_url or self.BASE_URL,
                timeout=self.config.timeout,
                max_retries=0,  # retries are handled by the engine
            )
        return self._client

    def _build_messages(self, content: str, prompt: str) -> List[Dict[str, Any]]:
        messages = []
        if prompt:
            messages.append({"role": "system", "content": prompt})
        messages.append({"role": "user", "content": content})
        return messages

    def _wrap_error(self, error: Exception) -> BackendError:
        if isinstance(error, openai.APIConnectionError):
            return NetworkError(str(error) or "Connection error", provider=self.provider_name)
        return classify_error(error, self.provider_name)

    def _check_finish(self, finish_reason: Optional[str], text: str) -> None:
        if finish_reason == "content_filter":
            raise ContentPolicyError("Response blocked by content filter", provider=self.provider_name)
        if finish_reason == "length":
            raise TokenLimitExceededError(
                f"Output truncated at max_tokens ({len(text)} chars returned)",
                provider=self.provider_name,
            )

    async def translate(
        self,
        content: str,
        source_hint: str,
        target_language: str,
        prompt: str,
    ) -> str:
        """Translate using a single chat completion"""
        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=self.config.model,
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
                messages=self._build_messages(content, prompt),
            )
        except openai.OpenAIError as e:
            raise self._wrap_error(e) from e

        if not response.choices:
            raise BackendError("Empty response (no choices)", provider=self.provider_name)

        choice = response.choices[0]
        text = choice.message.content or ""
        self._check_finish(choice.finish_reason, text)
        if response.usage:
            logger.debug(
                f"{self.provider_name} usage: {response.usage.prompt_tokens} in / "
                f"{response.usage.completion_tokens} out"
            )
        return text

    async def stream_translate(
        self,
        content: str,
        source_hint: str,
        target_language: str,
        prompt: str,
        on_partial: Optional[PartialCallback] = None,
    ) -> str:
        """Stream a chat completion, reporting cumulative output at line breaks"""
        client = self._get_client()
        accumulated = ""
        finish_reason = None
        try:
            stream = await client.chat.completions.create(
                model=self.config.model,
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
                messages=self._build_messages(content, prompt),
                stream=True,
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content or ""
                finish_reason = chunk.choices[0].finish_reason or finish_reason
                if not delta:
                    continue
                accumulated += delta
                if "\n" in delta:
                    await notify_partial(on_partial, accumulated)
        except openai.OpenAIError as e:
            raise self._wrap_error(e) from e

        self._check_finish(finish_reason, accumulated)
        await notify_partial(on_partial, accumulated)
        return accumulated
