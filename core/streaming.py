#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Progress snapshots and streaming aggregation.

ProgressEmitter owns the job-scoped sequence counter; every snapshot it
sends carries a strictly increasing sequence_number so consumers can drop
stale updates. StreamingAggregator turns cumulative partial responses of
one streaming batch into snapshots, keyed by absolute entry id.
"""

import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from config.constants import STREAM_EMIT_INTERVAL
from config.logging_config import get_logger
from .formatting import BaseFormatter
from .models import Batch, Entry

logger = get_logger(__name__)

ProgressCallback = Callable[["ProgressSnapshot"], Any]


@dataclass
class ProgressSnapshot:
    """One progress update delivered to the caller"""
    partial_result: List[Entry]
    completed_count: int
    total_count: int
    sequence_number: int
    streaming: bool = False
    current_batch: int = 0
    total_batches: int = 0

    @property
    def progress_percent(self) -> float:
        if self.total_count <= 0:
            return 100.0
        return round(self.completed_count / self.total_count * 100, 1)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "completed_count": self.completed_count,
            "total_count": self.total_count,
            "sequence_number": self.sequence_number,
            "streaming": self.streaming,
            "current_batch": self.current_batch,
            "total_batches": self.total_batches,
            "progress_percent": self.progress_percent,
        }


class ProgressEmitter:
    """
    Delivers snapshots to a progress callback.

    Callback errors are logged and never abort the job.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None, total_count: int = 0,
                 total_batches: int = 0):
        self.callback = callback
        self.total_count = total_count
        self.total_batches = total_batches
        self._sequence = 0
        self.last_snapshot: Optional[ProgressSnapshot] = None

    @property
    def sequence(self) -> int:
        return self._sequence

    async def emit(
        self,
        partial_result: Sequence[Entry],
        completed_count: int,
        streaming: bool = False,
        current_batch: int = 0,
    ) -> Optional[ProgressSnapshot]:
        self._sequence += 1
        snapshot = ProgressSnapshot(
            partial_result=list(partial_result),
            completed_count=completed_count,
            total_count=self.total_count,
            sequence_number=self._sequence,
            streaming=streaming,
            current_batch=current_batch,
            total_batches=self.total_batches,
        )
        self.last_snapshot = snapshot

        if self.callback is None:
            return snapshot

        try:
            result = self.callback(snapshot)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning(f"Progress callback error: {type(e).__name__}: {e}")
        return snapshot


@dataclass
class StreamingAggregator:
    """Builds snapshots from the cumulative partial output of one batch"""
    batch: Batch
    formatter: BaseFormatter
    emitter: ProgressEmitter
    committed: Sequence[Entry] = ()
    batch_index: int = 0
    emit_interval: int = STREAM_EMIT_INTERVAL
    use_timecodes: bool = False
    entries: Dict[int, Entry] = field(default_factory=dict)
    _last_emitted_count: int = 0
    partial_updates: int = 0

    async def on_partial(self, partial_text: str) -> None:
        """Parse a cumulative partial response and emit when enough is new"""
        self.partial_updates += 1
        size = len(self.batch)
        for parsed in self.formatter.parse(partial_text):
            if parsed.index < 0 or parsed.index >= size:
                continue
            source = self.batch.entries[parsed.index]
            timecode = parsed.timecode if (self.use_timecodes and parsed.timecode) else source.timecode
            self.entries[source.id] = source.with_text(parsed.text, timecode)

        count = len(self.entries)
        if count - self._last_emitted_count >= self.emit_interval or count >= size:
            if count > self._last_emitted_count:
                await self._emit(count)

    async def flush(self) -> None:
        """Emit whatever arrived since the last snapshot"""
        if len(self.entries) > self._last_emitted_count:
            await self._emit(len(self.entries))

    async def _emit(self, count: int) -> None:
        self._last_emitted_count = count
        streamed = [self.entries[i] for i in sorted(self.entries)]
        await self.emitter.emit(
            partial_result=list(self.committed) + streamed,
            completed_count=len(self.committed) + count,
            streaming=True,
            current_batch=self.batch_index + 1,
        )
