#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Error hierarchy for backend calls and batch execution.

Backends translate provider-specific failures into BackendError subclasses
so the engine can decide between retrying, rotating credentials, softening
the prompt, splitting the batch, or falling back to a secondary provider.
"""

import asyncio
from enum import Enum
from typing import Any, List, Optional

import httpx


class ErrorKind(Enum):
    """Error categories"""
    NETWORK = "network"
    RATE_LIMIT = "rate_limit"
    CONTENT_POLICY = "content_policy"
    TOKEN_LIMIT = "token_limit"
    SCHEMA_MISMATCH = "schema_mismatch"
    AUTHENTICATION = "authentication"
    BILLING = "billing"
    CLIENT_ERROR = "client_error"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


class BackendError(Exception):
    """Base class for failures reported by a translation backend"""

    kind: ErrorKind = ErrorKind.UNKNOWN
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        provider: str = "",
        status_code: Optional[int] = None,
        retryable: Optional[bool] = None,
        kind: Optional[ErrorKind] = None,
    ):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.status_code = status_code
        if kind is not None:
            self.kind = kind
        self.retryable = self.default_retryable if retryable is None else retryable

    def __str__(self) -> str:
        prefix = f"[{self.provider}] " if self.provider else ""
        status = f" (HTTP {self.status_code})" if self.status_code else ""
        return f"{prefix}{self.message}{status}"


class NetworkError(BackendError):
    """Transport failure, timeout or 5xx response"""
    kind = ErrorKind.NETWORK
    default_retryable = True


class RateLimitError(BackendError):
    """Backend asked us to slow down (429 / quota window)"""
    kind = ErrorKind.RATE_LIMIT
    default_retryable = True


class ContentPolicyError(BackendError):
    """Backend refused the content"""
    kind = ErrorKind.CONTENT_POLICY


class TokenLimitExceededError(BackendError):
    """Request or response exceeded the backend token window"""
    kind = ErrorKind.TOKEN_LIMIT


class AuthenticationError(BackendError):
    """Invalid, revoked or unfunded credential"""
    kind = ErrorKind.AUTHENTICATION


class SchemaMismatchError(BackendError):
    """Response entry count does not match the request"""
    kind = ErrorKind.SCHEMA_MISMATCH

    def __init__(self, expected: int, received: int, provider: str = ""):
        super().__init__(
            f"Expected {expected} entries, received {received}",
            provider=provider,
        )
        self.expected = expected
        self.received = received


class ProviderUnavailableError(BackendError):
    """Both primary and secondary backends failed"""
    kind = ErrorKind.UNAVAILABLE

    def __init__(self, causes: List[BaseException], providers: List[str]):
        self.causes = list(causes)
        self.providers = list(providers)
        details = "; ".join(
            f"{name}: {cause}" for name, cause in zip(self.providers, self.causes)
        )
        super().__init__(f"All providers failed ({details})")

    @property
    def primary_error(self) -> Optional[BaseException]:
        return self.causes[0] if self.causes else None

    @property
    def secondary_error(self) -> Optional[BaseException]:
        return self.causes[1] if len(self.causes) > 1 else None


class BatchTranslationError(Exception):
    """A batch could not be completed; aborts the whole job"""

    def __init__(self, batch_index: int, cause: BaseException, stats: Optional[Any] = None):
        self.batch_index = batch_index
        self.cause = cause
        self.stats = stats
        super().__init__(f"Batch {batch_index + 1} failed: {cause}")


# Message patterns used when a provider SDK gives us nothing better than text
RATE_LIMIT_PATTERNS = [
    "rate_limit",
    "rate limit",
    "too many requests",
    "resource_exhausted",
    "429",
]

BILLING_ERROR_PATTERNS = [
    "credit balance is too low",
    "insufficient_quota",
    "exceeded your current quota",
    "payment required",
    "billing_hard_limit_reached",
]

INVALID_KEY_PATTERNS = [
    "invalid api key",
    "invalid_api_key",
    "authentication",
    "unauthorized",
    "incorrect api key",
    "permission denied",
]

CONTENT_POLICY_PATTERNS = [
    "content_filter",
    "content policy",
    "prohibited_content",
    "safety",
    "blocked",
]

TOKEN_LIMIT_PATTERNS = [
    "maximum context length",
    "context_length_exceeded",
    "max_tokens",
    "too many tokens",
    "prompt is too long",
]

NETWORK_PATTERNS = [
    "econnreset",
    "econnrefused",
    "connection reset",
    "connection refused",
    "timed out",
    "timeout",
    "overloaded",
    "service unavailable",
]


def _status_code_of(error: BaseException) -> Optional[int]:
    """Pull an HTTP status code out of httpx / SDK exceptions"""
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        return status
    response = getattr(error, "response", None)
    status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def classify_error(error: BaseException, provider: str = "") -> BackendError:
    """
    Map an arbitrary exception raised while talking to a backend onto the
    BackendError hierarchy.

    Status codes win over message patterns:
        429            -> RateLimitError
        401 / 403      -> AuthenticationError
        402            -> AuthenticationError (billing)
        413            -> TokenLimitExceededError
        5xx            -> NetworkError
        other 4xx      -> BackendError (client error, not retryable)
    """
    if isinstance(error, BackendError):
        return error

    message = str(error) or type(error).__name__
    lowered = message.lower()
    status = _status_code_of(error)

    if isinstance(error, (asyncio.TimeoutError, httpx.TimeoutException)):
        return NetworkError(f"Request timed out: {message}", provider=provider)
    if isinstance(error, httpx.TransportError):
        return NetworkError(f"Transport error: {message}", provider=provider)

    if status is not None:
        if status == 429:
            if any(p in lowered for p in BILLING_ERROR_PATTERNS):
                return AuthenticationError(message, provider=provider, status_code=status,
                                           kind=ErrorKind.BILLING)
            return RateLimitError(message, provider=provider, status_code=status)
        if status in (401, 403):
            return AuthenticationError(message, provider=provider, status_code=status)
        if status == 402:
            return AuthenticationError(message, provider=provider, status_code=status,
                                       kind=ErrorKind.BILLING)
        if status == 413:
            return TokenLimitExceededError(message, provider=provider, status_code=status)
        if status >= 500:
            return NetworkError(message, provider=provider, status_code=status)
        if 400 <= status < 500:
            if any(p in lowered for p in TOKEN_LIMIT_PATTERNS):
                return TokenLimitExceededError(message, provider=provider, status_code=status)
            if any(p in lowered for p in CONTENT_POLICY_PATTERNS):
                return ContentPolicyError(message, provider=provider, status_code=status)
            return BackendError(message, provider=provider, status_code=status,
                                kind=ErrorKind.CLIENT_ERROR)

    if any(p in lowered for p in BILLING_ERROR_PATTERNS):
        return AuthenticationError(message, provider=provider, kind=ErrorKind.BILLING)
    if any(p in lowered for p in RATE_LIMIT_PATTERNS):
        return RateLimitError(message, provider=provider)
    if any(p in lowered for p in INVALID_KEY_PATTERNS):
        return AuthenticationError(message, provider=provider)
    if any(p in lowered for p in TOKEN_LIMIT_PATTERNS):
        return TokenLimitExceededError(message, provider=provider)
    if any(p in lowered for p in CONTENT_POLICY_PATTERNS):
        return ContentPolicyError(message, provider=provider)
    if any(p in lowered for p in NETWORK_PATTERNS):
        return NetworkError(message, provider=provider)

    return BackendError(message, provider=provider)
