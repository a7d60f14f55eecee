#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
BatchPlanner - Split a subtitle sequence into bounded batches.

Batches are contiguous, non-overlapping and cover the whole sequence.
A batch whose estimated token count exceeds the ceiling is halved at its
midpoint until every part fits (or is a single entry). Splitting is
iterative with an explicit stack, so recursion depth never depends on
input size.

Usage:
    planner = BatchPlanner(format_mode=FormatMode.PLAIN)
    batches = planner.plan(entries)
    parts = await planner.split_oversized(batches[0], estimator)
"""

import inspect
import math
from typing import Awaitable, Callable, List, Optional, Sequence, Union

from config.constants import (
    BATCH_SIZE_PLAIN,
    BATCH_SIZE_TAGGED,
    BATCH_SIZE_TIMESTAMP,
    MAX_TOKENS_PER_BATCH,
    TOKEN_ESTIMATE_CHARS_PER_TOKEN,
    TOKEN_ESTIMATE_SAFETY_FACTOR,
)
from config.logging_config import get_logger
from .models import Batch, Entry, FormatMode

logger = get_logger(__name__)


DEFAULT_BATCH_SIZES = {
    FormatMode.PLAIN: BATCH_SIZE_PLAIN,
    FormatMode.TIMESTAMP: BATCH_SIZE_TIMESTAMP,
    FormatMode.TAGGED: BATCH_SIZE_TAGGED,
}

Estimator = Callable[[Batch], Union[int, Awaitable[int]]]


def heuristic_token_estimate(text: str) -> int:
    """Rough token count: ~4 chars per token plus a 10% safety margin"""
    if not text:
        return 0
    base = math.ceil(len(text) / TOKEN_ESTIMATE_CHARS_PER_TOKEN)
    return math.ceil(base * TOKEN_ESTIMATE_SAFETY_FACTOR)


async def estimate_tokens(
    content: str,
    prompt: str = "",
    backend=None,
    target_language: str = "",
) -> int:
    """
    Token estimate for a request.

    Prefers the backend's exact counter, then its own estimator, then the
    character heuristic. Counter failures are logged and fall through.
    """
    if backend is not None:
        try:
            exact = await backend.count_tokens(content, target_language, prompt)
        except Exception as e:
            logger.debug(f"Exact token count failed ({type(e).__name__}: {e}), estimating")
            exact = None
        if isinstance(exact, int) and exact > 0:
            return exact
        return backend.estimate_token_count(f"{prompt}\n\n{content}" if prompt else content)

    return heuristic_token_estimate(f"{prompt}\n\n{content}" if prompt else content)


class BatchPlanner:
    """Plans batches for a job"""

    def __init__(
        self,
        format_mode: FormatMode = FormatMode.PLAIN,
        batch_size: Optional[int] = None,
        max_tokens_per_batch: int = MAX_TOKENS_PER_BATCH,
        single_batch_mode: bool = False,
    ):
        if batch_size is not None and batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.format_mode = format_mode
        self.batch_size = batch_size or DEFAULT_BATCH_SIZES[format_mode]
        self.max_tokens_per_batch = max_tokens_per_batch
        self.single_batch_mode = single_batch_mode

    def plan(self, entries: Sequence[Entry], size_hint: Optional[int] = None) -> List[Batch]:
        """
        Split entries into contiguous batches.

        Args:
            entries: Ordered entries (ids 1..N)
            size_hint: Override for the per-batch entry count

        Returns:
            List of batches; empty input yields an empty list.
        """
        entries = list(entries)
        if not entries:
            return []

        if self.single_batch_mode:
            logger.debug(f"Single-batch mode: {len(entries)} entries in one batch")
            return [Batch.from_entries(entries)]

        size = size_hint or self.batch_size
        if size < 1:
            raise ValueError(f"Batch size must be >= 1, got {size}")

        batches = [
            Batch.from_entries(entries[i:i + size])
            for i in range(0, len(entries), size)
        ]
        logger.info(f"Planned {len(batches)} batches of up to {size} entries ({len(entries)} total)")
        return batches

    async def split_oversized(self, batch: Batch, estimator: Estimator) -> List[Batch]:
        """
        Halve a batch until every part fits under the token ceiling.

        Args:
            batch: Batch to check
            estimator: Callable returning the token estimate for a batch
                       (sync or async)

        Returns:
            Ordered list of batches covering the input exactly.
        """
        max_depth = math.ceil(math.log2(len(batch))) if len(batch) > 1 else 0
        result: List[Batch] = []
        # Stack of (batch, depth); right half pushed first so left pops first
        stack = [(batch, 0)]

        while stack:
            current, depth = stack.pop()
            tokens = estimator(current)
            if inspect.isawaitable(tokens):
                tokens = await tokens

            if tokens <= self.max_tokens_per_batch or len(current) <= 1:
                if tokens > self.max_tokens_per_batch:
                    logger.warning(
                        f"Entry {current.start_id} alone is ~{tokens} tokens "
                        f"(limit {self.max_tokens_per_batch}), sending anyway"
                    )
                result.append(current)
                continue

            if depth >= max_depth:
                # Unreachable for a halving split; guards against a bad estimator
                raise RuntimeError(
                    f"Split depth {depth} exceeded bound {max_depth} for batch at {batch.start_id}"
                )

            midpoint = len(current) // 2
            logger.debug(
                f"Batch {current.start_id}-{current.end_id} too large (~{tokens} tokens), "
                f"splitting at {current.start_id + midpoint}"
            )
            stack.append((current.slice(midpoint, len(current)), depth + 1))
            stack.append((current.slice(0, midpoint), depth + 1))

        return result
