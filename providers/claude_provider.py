"""
Claude Provider - Anthropic
Subtitle Translator - Multi-Provider Support
"""

import math
from typing import Any, Dict, List, Optional

import anthropic

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


class ClaudeProvider(BaseTranslationBackend):
    """
    Anthropic Claude backend

    Supports:
    - Claude Sonnet / Haiku models
    - Streaming (text deltas)
    - Exact token counting
    """

    MODELS = {
        "claude-sonnet-4-20250514": "Claude Sonnet 4",
        "claude-3-5-haiku-20241022": "Claude 3.5 Haiku",
    }

    DEFAULT_MODEL = "claude-sonnet-4-20250514"

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.CLAUDE

    @property
    def supports_streaming(self) -> bool:
        return True

    def _get_client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(
                api_key=self.config.api_key,
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                max_retries=0,  # retries are handled by the engine
            )
        return self._client

    @staticmethod
    def _build_messages(content: str) -> List[Dict[str, Any]]:
        return [{"role": "user", "content": content}]

    def _wrap_error(self, error: Exception) -> BackendError:
        if isinstance(error, anthropic.APIConnectionError):
            return NetworkError(str(error) or "Connection error", provider=self.provider_name)
        return classify_error(error, self.provider_name)

    def _check_stop(self, stop_reason: Optional[str], text: str) -> None:
        if stop_reason == "refusal":
            raise ContentPolicyError("Model refused the content", provider=self.provider_name)
        if stop_reason == "max_tokens":
            raise TokenLimitExceededError(
                f"Translation exceeded max_tokens ({len(text)} chars returned)",
                provider=self.provider_name,
            )

    async def translate(
        self,
        content: str,
        source_hint: str,
        target_language: str,
        prompt: str,
    ) -> str:
        """Translate using a single Messages API call"""
        client = self._get_client()
        try:
            response = await client.messages.create(
                model=self.config.model,
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
                system=prompt or "",
                messages=self._build_messages(content),
            )
        except anthropic.AnthropicError as e:
            raise self._wrap_error(e) from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        self._check_stop(response.stop_reason, text)
        logger.debug(
            f"claude usage: {response.usage.input_tokens} in / {response.usage.output_tokens} out"
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
        """Stream text deltas, reporting cumulative output at line breaks"""
        client = self._get_client()
        accumulated = ""
        try:
            async with client.messages.stream(
                model=self.config.model,
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
                system=prompt or "",
                messages=self._build_messages(content),
            ) as stream:
                async for text in stream.text_stream:
                    accumulated += text
                    if "\n" in text:
                        await notify_partial(on_partial, accumulated)
                final = await stream.get_final_message()
        except anthropic.AnthropicError as e:
            raise self._wrap_error(e) from e

        self._check_stop(final.stop_reason, accumulated)
        await notify_partial(on_partial, accumulated)
        return accumulated

    async def count_tokens(self, content: str, target_language: str, prompt: str) -> Optional[int]:
        """Exact input token count via the token counting endpoint"""
        client = self._get_client()
        try:
            result = await client.messages.count_tokens(
                model=self.config.model,
                system=prompt or "",
                messages=self._build_messages(content),
            )
        except anthropic.AnthropicError as e:
            logger.debug(f"Token counting unavailable: {e}")
            return None
        return result.input_tokens

    def estimate_token_count(self, text: str) -> int:
        """Claude tokenizes denser than 4 chars/token; use 3 (+10%)"""
        if not text:
            return 0
        return math.ceil(math.ceil(len(text) / 3) * 1.1)
