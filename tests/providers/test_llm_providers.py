"""
Tests for the LLM providers with mocked SDK clients
"""
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import anthropic
import httpx
import pytest

from core.credentials import Credential
from core.errors import ContentPolicyError, RateLimitError, TokenLimitExceededError
from providers.base import BackendConfig
from providers.claude_provider import ClaudeProvider
from providers.deepseek_provider import DeepSeekProvider
from providers.openai_provider import OpenAIProvider


def openai_response(text, finish_reason="stop"):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text), finish_reason=finish_reason)],
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5),
    )


def claude_response(text, stop_reason="end_turn"):
    return SimpleNamespace(
        content=[SimpleNamespace(type="text", text=text)],
        stop_reason=stop_reason,
        usage=SimpleNamespace(input_tokens=10, output_tokens=5),
    )


class FakeOpenAIStream:
    """Async iterator of chat-completion chunks"""

    def __init__(self, deltas, finish_reason="stop"):
        self._chunks = [
            SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=d), finish_reason=None)])
            for d in deltas
        ]
        self._chunks.append(
            SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=None),
                                                     finish_reason=finish_reason)])
        )

    def __aiter__(self):
        self._iter = iter(self._chunks)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


@pytest.fixture
def openai_provider():
    provider = OpenAIProvider(BackendConfig(api_key="sk-test-openai"))
    provider._client = Mock()
    provider._client.chat.completions.create = AsyncMock()
    return provider


class TestOpenAIProvider:
    """Test OpenAIProvider."""

    def test_defaults(self):
        provider = OpenAIProvider(BackendConfig(api_key="sk-test"))
        assert provider.config.model == OpenAIProvider.DEFAULT_MODEL
        assert provider.supports_streaming
        assert "sk-test" not in repr(provider)

    def test_with_credential_clones(self):
        provider = OpenAIProvider(BackendConfig(api_key="sk-one", model="gpt-4o"))
        clone = provider.with_credential(Credential("sk-two"))

        assert clone is not provider
        assert clone.config.api_key == "sk-two"
        assert clone.config.model == "gpt-4o"
        assert provider.with_credential(Credential("sk-one")) is provider

    @pytest.mark.asyncio
    async def test_translate(self, openai_provider):
        openai_provider._client.chat.completions.create.return_value = openai_response("1. Bonjour")

        raw = await openai_provider.translate("1. Hello", "detected", "French", "PROMPT")

        assert raw == "1. Bonjour"
        kwargs = openai_provider._client.chat.completions.create.await_args.kwargs
        assert kwargs["messages"][0] == {"role": "system", "content": "PROMPT"}
        assert kwargs["messages"][1] == {"role": "user", "content": "1. Hello"}

    @pytest.mark.asyncio
    async def test_content_filter(self, openai_provider):
        openai_provider._client.chat.completions.create.return_value = openai_response("", "content_filter")
        with pytest.raises(ContentPolicyError):
            await openai_provider.translate("1. Hello", "detected", "French", "")

    @pytest.mark.asyncio
    async def test_truncated_output(self, openai_provider):
        openai_provider._client.chat.completions.create.return_value = openai_response("1. Bon", "length")
        with pytest.raises(TokenLimitExceededError):
            await openai_provider.translate("1. Hello", "detected", "French", "")

    @pytest.mark.asyncio
    async def test_stream_reports_cumulative_output(self, openai_provider):
        openai_provider._client.chat.completions.create.return_value = FakeOpenAIStream(
            ["1. Bon", "jour\n", "\n2. Salut"]
        )
        partials = []

        raw = await openai_provider.stream_translate(
            "1. Hello\n\n2. Hi", "detected", "French", "", partials.append
        )

        assert raw == "1. Bonjour\n\n2. Salut"
        assert partials == ["1. Bonjour\n", "1. Bonjour\n\n2. Salut", "1. Bonjour\n\n2. Salut"]


class TestDeepSeekProvider:
    """Test DeepSeekProvider."""

    def test_uses_deepseek_endpoint(self):
        provider = DeepSeekProvider(BackendConfig(api_key="sk-ds"))
        assert provider.provider_name == "deepseek"
        assert provider._get_client().base_url.host == "api.deepseek.com"


class TestClaudeProvider:
    """Test ClaudeProvider."""

    @pytest.fixture
    def provider(self):
        provider = ClaudeProvider(BackendConfig(api_key="sk-ant-test"))
        provider._client = Mock()
        provider._client.messages.create = AsyncMock()
        provider._client.messages.count_tokens = AsyncMock()
        return provider

    @pytest.mark.asyncio
    async def test_translate(self, provider):
        provider._client.messages.create.return_value = claude_response("1. Hallo")

        raw = await provider.translate("1. Hello", "detected", "German", "PROMPT")

        assert raw == "1. Hallo"
        kwargs = provider._client.messages.create.await_args.kwargs
        assert kwargs["system"] == "PROMPT"
        assert kwargs["messages"][0]["role"] == "user"

    @pytest.mark.asyncio
    async def test_refusal(self, provider):
        provider._client.messages.create.return_value = claude_response("", "refusal")
        with pytest.raises(ContentPolicyError):
            await provider.translate("1. Hello", "detected", "German", "")

    @pytest.mark.asyncio
    async def test_max_tokens(self, provider):
        provider._client.messages.create.return_value = claude_response("1. Ha", "max_tokens")
        with pytest.raises(TokenLimitExceededError):
            await provider.translate("1. Hello", "detected", "German", "")

    @pytest.mark.asyncio
    async def test_rate_limit_status_is_classified(self, provider):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        provider._client.messages.create.side_effect = anthropic.RateLimitError(
            "rate_limit_error: slow down",
            response=httpx.Response(429, request=request),
            body=None,
        )
        with pytest.raises(RateLimitError):
            await provider.translate("1. Hello", "detected", "German", "")

    @pytest.mark.asyncio
    async def test_count_tokens(self, provider):
        provider._client.messages.count_tokens.return_value = SimpleNamespace(input_tokens=321)
        assert await provider.count_tokens("1. Hello", "German", "PROMPT") == 321

    def test_estimate_is_denser(self):
        provider = ClaudeProvider(BackendConfig(api_key="sk-ant-test"))
        # ~3 chars per token plus 10%
        assert 110 <= provider.estimate_token_count("a" * 300) <= 111
