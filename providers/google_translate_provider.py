"""
Google Translate Provider (keyless web endpoint)
Subtitle Translator - Multi-Provider Support

Native bulk translation: the entries of a request are joined with a
delimiter, translated in one GET request and split back. The endpoint does
not follow prompts and is treated as deterministic, so the engine never
re-requests on a count mismatch (RetryPolicy.NONE).
"""

import re
from typing import List, Optional

import httpx

from config.constants import GOOGLE_TRANSLATE_DELIMITER, GOOGLE_TRANSLATE_URL
from config.logging_config import get_logger
from core.errors import BackendError, classify_error
from core.formatting import clean_translated_text, detect_formatter
from core.recovery import RetryPolicy

from .base import BackendConfig, BaseTranslationBackend, ProviderType

logger = get_logger(__name__)

LANGUAGE_CODE = re.compile(r"^[a-z]{2,3}(-[a-z]{2,4})?$", re.IGNORECASE)


class GoogleTranslateProvider(BaseTranslationBackend):
    """Keyless Google Translate web endpoint"""

    retry_policy = RetryPolicy.NONE
    DEFAULT_MODEL = "gtx"

    def __init__(
        self,
        config: Optional[BackendConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(config)
        self.base_url = self.config.base_url or GOOGLE_TRANSLATE_URL
        self._transport = transport

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.GOOGLE_TRANSLATE

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout),
                headers={"User-Agent": "subtitle-translator/1.0"},
                transport=self._transport,
            )
        return self._client

    def with_credential(self, credential) -> "GoogleTranslateProvider":
        # Keyless endpoint
        return self

    async def aclose(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            await client.aclose()

    @staticmethod
    def normalize_language(target_language: str) -> str:
        """Pass language codes through; anything else is sent lowercased"""
        raw = (target_language or "").strip()
        if not raw:
            raise BackendError("Target language is required for Google Translate", provider="google")
        return raw if LANGUAGE_CODE.match(raw) else raw.lower()

    def split_result(self, joined: str, expected: int) -> List[str]:
        """Split the joined translation; extras are dropped, shortfalls kept short"""
        parts = [part.strip() for part in joined.split(GOOGLE_TRANSLATE_DELIMITER.strip())]
        if len(parts) != expected:
            logger.warning(f"Google Translate returned {len(parts)} segments for {expected} entries")
        return parts[:expected]

    async def _call_translate(self, text: str, target_code: str) -> str:
        client = self._get_client()
        params = {
            "client": "gtx",
            "sl": "auto",
            "tl": target_code,
            "dt": "t",
            "q": text,
        }
        try:
            response = await client.get(self.base_url, params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise classify_error(e, self.provider_name) from e
        except ValueError as e:
            raise BackendError(f"Unexpected Google Translate response: {e}",
                               provider=self.provider_name) from e

        if not isinstance(data, list) or not data:
            raise BackendError("Unexpected Google Translate response", provider=self.provider_name)

        # data[0] is a list of segments: [[translated, original, ...], ...]
        segments = data[0] if isinstance(data[0], list) else []
        translated = "".join(
            seg[0] for seg in segments if isinstance(seg, list) and seg and isinstance(seg[0], str)
        )
        if not translated:
            raise BackendError("Empty translation from Google Translate", provider=self.provider_name)
        return translated

    async def translate(
        self,
        content: str,
        source_hint: str,
        target_language: str,
        prompt: str,
    ) -> str:
        """Translate all entries of the request in one call; prompt is ignored"""
        target_code = self.normalize_language(target_language)
        formatter = detect_formatter(content)
        entries = formatter.parse(content)
        if not entries:
            raise BackendError("No subtitle entries to translate", provider=self.provider_name)

        joined = GOOGLE_TRANSLATE_DELIMITER.join(entry.text.replace("\n", " ") for entry in entries)
        translated = await self._call_translate(joined, target_code)
        parts = self.split_result(translated, len(entries))

        items = [
            (entry.index + 1, clean_translated_text(text), entry.timecode)
            for entry, text in zip(entries, parts)
            if text
        ]
        return formatter.render(items)
