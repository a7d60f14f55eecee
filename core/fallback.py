#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
FallbackChain - Primary backend first, secondary once on failure.
"""

from typing import Any, Awaitable, Callable, Optional, Tuple, Type

from config.logging_config import get_logger
from .errors import BackendError, ProviderUnavailableError, classify_error

logger = get_logger(__name__)


class FallbackChain:
    """
    Runs a call against the primary backend and, if it fails with an
    unrecoverable error, exactly once against the secondary.

    Usage:
        chain = FallbackChain(primary, secondary)
        raw = await chain.run(lambda backend: backend.translate(...))
    """

    def __init__(self, primary, secondary=None):
        self.primary = primary
        self.secondary = secondary
        self.used_secondary = False

    @property
    def has_secondary(self) -> bool:
        return self.secondary is not None

    async def run(
        self,
        primary_call: Callable[[Any], Awaitable[Any]],
        secondary_call: Optional[Callable[[Any], Awaitable[Any]]] = None,
        passthrough: Tuple[Type[BaseException], ...] = (),
    ) -> Any:
        """
        Args:
            primary_call: Coroutine factory taking the primary backend
            secondary_call: Coroutine factory for the secondary (defaults
                            to primary_call)
            passthrough: Error types the caller recovers from itself; they
                         propagate without trying the secondary

        Raises:
            BackendError: primary failed and no secondary is configured
            ProviderUnavailableError: both backends failed
        """
        primary_name = getattr(self.primary, "provider_name", "primary")
        try:
            return await primary_call(self.primary)
        except BackendError as e:
            if passthrough and isinstance(e, passthrough):
                raise
            primary_error = e
        except Exception as e:
            primary_error = classify_error(e, primary_name)

        if self.secondary is None:
            raise primary_error

        secondary_name = getattr(self.secondary, "provider_name", "secondary")
        logger.warning(f"{primary_name} failed ({primary_error}); falling back to {secondary_name}")
        call = secondary_call or primary_call
        try:
            result = await call(self.secondary)
        except Exception as e:
            secondary_error = e if isinstance(e, BackendError) else classify_error(e, secondary_name)
            logger.error(f"Fallback {secondary_name} also failed: {secondary_error}")
            raise ProviderUnavailableError(
                causes=[primary_error, secondary_error],
                providers=[primary_name, secondary_name],
            ) from secondary_error

        self.used_secondary = True
        return result
