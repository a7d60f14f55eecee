#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
MismatchRecovery - Repair responses whose entry count does not match.

    ALIGNED -> OK | PARTIAL_MISSING | HEAVY_MISSING
    PARTIAL_MISSING -> one targeted request with only the missing entries
    HEAVY_MISSING   -> up to `mismatch_retries` full-batch requests
    anything still missing -> DEGRADED (sentinel-marked original text)

Backends with RetryPolicy.NONE never get a follow-up request; their
responses are padded with sentinel entries and truncated once.
"""

import asyncio
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional

from config.constants import (
    DEGRADED_ENTRY_MARKER,
    MISMATCH_RETRY_DELAY,
    PARTIAL_MISSING_RATIO,
)
from config.logging_config import get_logger
from .errors import BackendError
from .models import Batch, TranslatedEntry
from .validator import ParseReport, ResponseValidator

logger = get_logger(__name__)


class RetryPolicy(Enum):
    """How a backend is treated when its response is misaligned"""
    MISMATCH_RETRY = "mismatch_retry"  # LLM backends: targeted / full retries
    NONE = "none"                      # deterministic backends: pad / truncate only


class RecoveryState(Enum):
    OK = "ok"
    PARTIAL_MISSING = "partial_missing"
    HEAVY_MISSING = "heavy_missing"
    DEGRADED = "degraded"


@dataclass
class RecoveryOutcome:
    """Final aligned entries for a batch plus what it took to get them"""
    state: RecoveryState
    entries: List[TranslatedEntry]
    initial_missing: int = 0
    recovered_count: int = 0
    degraded_count: int = 0
    targeted_retries: int = 0
    full_retries: int = 0
    degraded_indices: List[int] = field(default_factory=list)


class AlignmentMap:
    """Position -> translated entry for one batch"""

    def __init__(self, size: int):
        self.size = size
        self._slots: Dict[int, TranslatedEntry] = {}

    def __len__(self) -> int:
        return len(self._slots)

    @property
    def missing(self) -> List[int]:
        return [i for i in range(self.size) if i not in self._slots]

    def fill(self, entries: Dict[int, TranslatedEntry]) -> int:
        """Fill empty positions only; returns how many holes were filled"""
        filled = 0
        for index, entry in entries.items():
            if 0 <= index < self.size and index not in self._slots:
                self._slots[index] = entry
                filled += 1
        return filled

    def replace_all(self, entries: Dict[int, TranslatedEntry]) -> None:
        self._slots = {i: e for i, e in entries.items() if 0 <= i < self.size}

    def finalize(self, batch: Batch) -> List[int]:
        """Fill remaining holes with sentinel-marked originals; returns their indices"""
        degraded = self.missing
        for index in degraded:
            self._slots[index] = TranslatedEntry(
                index=index,
                text=f"{DEGRADED_ENTRY_MARKER}{batch.entries[index].text}",
            )
        return degraded

    def to_list(self) -> List[TranslatedEntry]:
        return [self._slots[i] for i in sorted(self._slots)]


# Called with a (sub-)batch; returns the raw backend response for it
RequestFn = Callable[[Batch], Awaitable[str]]


def partial_threshold(batch_size: int) -> int:
    return math.ceil(PARTIAL_MISSING_RATIO * batch_size)


class MismatchRecovery:
    """Drives the recovery state machine for one batch"""

    def __init__(
        self,
        validator: ResponseValidator,
        mismatch_retries: int = 1,
        retry_policy: RetryPolicy = RetryPolicy.MISMATCH_RETRY,
        retry_delay: float = MISMATCH_RETRY_DELAY,
    ):
        self.validator = validator
        self.mismatch_retries = mismatch_retries
        self.retry_policy = retry_policy
        self.retry_delay = retry_delay

    async def recover(
        self,
        batch: Batch,
        report: ParseReport,
        request_fn: Optional[RequestFn] = None,
    ) -> RecoveryOutcome:
        """
        Align a parsed response with its batch, issuing follow-up requests
        when allowed.

        Args:
            batch: The batch that was sent
            report: Parse report of the first response
            request_fn: Coroutine issuing a request for a (sub-)batch

        Returns:
            RecoveryOutcome whose entries cover every position exactly once
        """
        size = len(batch)
        alignment = AlignmentMap(size)
        alignment.fill(report.entries)
        initial_missing = len(alignment.missing)

        if initial_missing == 0:
            if report.received > size:
                logger.debug(f"Truncated {report.received - size} extra entries")
            return RecoveryOutcome(state=RecoveryState.OK, entries=alignment.to_list())

        outcome = RecoveryOutcome(state=RecoveryState.OK, entries=[], initial_missing=initial_missing)

        if self.retry_policy == RetryPolicy.NONE or request_fn is None:
            logger.info(f"Padding {initial_missing} missing entries without retry")
        elif initial_missing <= partial_threshold(size):
            outcome.state = RecoveryState.PARTIAL_MISSING
            await self._targeted_retry(batch, alignment, request_fn, outcome)
        else:
            outcome.state = RecoveryState.HEAVY_MISSING
            await self._full_retries(batch, alignment, request_fn, outcome)

        outcome.recovered_count = initial_missing - len(alignment.missing)
        outcome.degraded_indices = alignment.finalize(batch)
        outcome.degraded_count = len(outcome.degraded_indices)
        if outcome.degraded_count:
            outcome.state = RecoveryState.DEGRADED
            logger.warning(
                f"Batch {batch.start_id}-{batch.end_id}: {outcome.degraded_count} entries "
                f"left untranslated after recovery"
            )
        outcome.entries = alignment.to_list()
        return outcome

    async def _targeted_retry(
        self,
        batch: Batch,
        alignment: AlignmentMap,
        request_fn: RequestFn,
        outcome: RecoveryOutcome,
    ) -> None:
        missing = alignment.missing
        sub_batch = Batch(
            entries=tuple(batch.entries[i] for i in missing),
            start_id=batch.entries[missing[0]].id,
        )
        logger.info(f"Targeted retry for {len(missing)} missing entries: ids {[batch.entries[i].id for i in missing]}")
        outcome.targeted_retries += 1

        try:
            raw = await request_fn(sub_batch)
        except BackendError as e:
            logger.warning(f"Targeted retry failed: {e}")
            return

        sub_report = self.validator.parse(raw, len(sub_batch))
        remapped = {
            missing[local]: TranslatedEntry(index=missing[local], text=entry.text, timecode=entry.timecode)
            for local, entry in sub_report.entries.items()
        }
        filled = alignment.fill(remapped)
        logger.info(f"Targeted retry recovered {filled}/{len(missing)} entries")

    async def _full_retries(
        self,
        batch: Batch,
        alignment: AlignmentMap,
        request_fn: RequestFn,
        outcome: RecoveryOutcome,
    ) -> None:
        size = len(batch)
        for attempt in range(1, self.mismatch_retries + 1):
            if not alignment.missing:
                return

            await asyncio.sleep(self.retry_delay * attempt)
            outcome.full_retries += 1
            logger.info(
                f"Full retry {attempt}/{self.mismatch_retries} for batch "
                f"{batch.start_id}-{batch.end_id} ({len(alignment.missing)} missing)"
            )

            try:
                raw = await request_fn(batch)
            except BackendError as e:
                logger.warning(f"Full retry {attempt} failed: {e}")
                continue

            retry_report = self.validator.parse(raw, size)
            if len(retry_report.entries) == size:
                alignment.replace_all(retry_report.entries)
                logger.info(f"Full retry {attempt} returned all {size} entries")
                return

            filled = alignment.fill(retry_report.entries)
            logger.debug(f"Full retry {attempt} filled {filled} holes")
