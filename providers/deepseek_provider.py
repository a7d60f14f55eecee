"""
DeepSeek Provider
Subtitle Translator - Multi-Provider Support

DeepSeek uses the OpenAI-compatible API format.
"""

from .base import ProviderType
from .openai_provider import OpenAIProvider


class DeepSeekProvider(OpenAIProvider):
    """
    DeepSeek chat backend (OpenAI-compatible endpoint).

    Supports:
    - DeepSeek-V3 (deepseek-chat)
    - DeepSeek-R1 (deepseek-reasoner)
    - Streaming
    """

    MODELS = {
        "deepseek-chat": "DeepSeek Chat (V3)",
        "deepseek-reasoner": "DeepSeek Reasoner (R1)",
    }

    DEFAULT_MODEL = "deepseek-chat"
    BASE_URL = "https://api.deepseek.com"

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.DEEPSEEK
