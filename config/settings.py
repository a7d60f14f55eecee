#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Settings - Centralized configuration management
"""

from pathlib import Path
from typing import List, Optional
from pydantic_settings import BaseSettings

from .constants import (
    DEFAULT_CONCURRENCY,
    DEFAULT_CONTEXT_SIZE,
    DEFAULT_MISMATCH_RETRIES,
    ENTRY_CACHE_SIZE,
    GOOGLE_TRANSLATE_URL,
    LOG_FILE,
    LOG_LEVEL,
    MAX_TOKENS_PER_BATCH,
    STREAM_EMIT_INTERVAL,
    TRANSLATION_MAX_RETRIES,
    TRANSLATION_RETRY_DELAY,
    TRANSLATION_TIMEOUT,
)


# Base directory
BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings"""

    # ========== API Keys ==========
    # Single key per provider, plus optional comma-separated pools for rotation
    openai_api_key: str = ""
    openai_api_keys: str = ""
    anthropic_api_key: str = ""
    anthropic_api_keys: str = ""
    deepseek_api_key: str = ""
    deepseek_api_keys: str = ""

    # ========== Provider & Model ==========
    provider: str = "openai"  # openai | anthropic | deepseek | google
    model: str = ""  # empty -> provider default
    fallback_provider: Optional[str] = None
    fallback_model: str = ""
    google_translate_url: str = GOOGLE_TRANSLATE_URL

    # ========== Languages ==========
    target_lang: str = "en"
    source_lang: str = "detected"

    # ========== Batching ==========
    batch_size: Optional[int] = None  # None -> per format mode default
    single_batch_mode: bool = False
    max_tokens_per_batch: int = MAX_TOKENS_PER_BATCH
    format_mode: str = "plain"  # plain | timestamp | tagged

    # ========== Performance ==========
    concurrency: int = DEFAULT_CONCURRENCY
    max_retries: int = TRANSLATION_MAX_RETRIES
    retry_delay: float = TRANSLATION_RETRY_DELAY
    translation_timeout: float = TRANSLATION_TIMEOUT
    mismatch_retries: int = DEFAULT_MISMATCH_RETRIES
    context_size: int = DEFAULT_CONTEXT_SIZE

    # ========== Credentials ==========
    rotation_mode: str = "per_batch"  # per_batch | none

    # ========== Streaming ==========
    streaming_enabled: bool = False
    stream_emit_interval: int = STREAM_EMIT_INTERVAL

    # ========== Cache ==========
    # Off by default: translations of identical lines can differ by context
    cache_enabled: bool = False
    cache_max_size: int = ENTRY_CACHE_SIZE

    # ========== Logging ==========
    log_level: str = LOG_LEVEL
    log_file: str = LOG_FILE  # empty -> console only

    class Config:
        env_file = str(BASE_DIR / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Allow extra fields from .env that aren't defined in model

    def get_api_keys(self, provider: Optional[str] = None) -> List[str]:
        """Get the ordered, de-duplicated key pool for a provider"""
        provider = (provider or self.provider).lower()
        if provider == "google":
            return []

        pools = {
            "openai": (self.openai_api_key, self.openai_api_keys),
            "anthropic": (self.anthropic_api_key, self.anthropic_api_keys),
            "claude": (self.anthropic_api_key, self.anthropic_api_keys),
            "deepseek": (self.deepseek_api_key, self.deepseek_api_keys),
        }
        if provider not in pools:
            raise ValueError(f"Unsupported provider: {provider}")

        single, pool = pools[provider]
        keys: List[str] = []
        for key in [single] + pool.split(","):
            key = key.strip()
            if key and key not in keys:
                keys.append(key)
        return keys

    def get_api_key(self, provider: Optional[str] = None) -> str:
        """Get the first API key for a provider"""
        keys = self.get_api_keys(provider)
        if not keys:
            name = (provider or self.provider).upper()
            raise ValueError(f"{name}_API_KEY not set in .env")
        return keys[0]
