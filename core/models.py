#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Core data models for subtitle translation
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from config.constants import (
    DEFAULT_MISMATCH_RETRIES,
    MAX_CONCURRENCY,
    MAX_MISMATCH_RETRIES,
    MIN_CONCURRENCY,
)


class FormatMode(Enum):
    """How a batch is rendered into a backend request"""
    PLAIN = "plain"          # numbered list
    TIMESTAMP = "timestamp"  # SRT-like blocks with timing
    TAGGED = "tagged"        # <seg id="N">...</seg> segments


@dataclass(frozen=True)
class Entry:
    """One timed subtitle segment. id is 1-based and equals its position."""
    id: int
    timecode: str
    text: str

    def with_text(self, text: str, timecode: Optional[str] = None) -> "Entry":
        return replace(self, text=text, timecode=timecode or self.timecode)


@dataclass(frozen=True)
class Batch:
    """A contiguous slice of the entry sequence submitted as one request"""
    entries: Tuple[Entry, ...]
    start_id: int

    def __post_init__(self):
        # Accept lists from callers while keeping the batch immutable
        if not isinstance(self.entries, tuple):
            object.__setattr__(self, "entries", tuple(self.entries))

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def end_id(self) -> int:
        return self.start_id + len(self.entries) - 1

    def slice(self, start: int, stop: int) -> "Batch":
        """Sub-batch by position, keeping absolute ids"""
        return Batch(entries=self.entries[start:stop], start_id=self.start_id + start)

    @classmethod
    def from_entries(cls, entries) -> "Batch":
        entries = tuple(entries)
        return cls(entries=entries, start_id=entries[0].id if entries else 1)


@dataclass
class TranslatedEntry:
    """Parsed entry from a backend response. index is 0-based within the batch."""
    index: int
    text: str
    timecode: Optional[str] = None


class TranslationJob(BaseModel):
    """Immutable description of one translation run"""

    model_config = ConfigDict(frozen=True)

    target_language: str = Field(..., min_length=1)
    source_language: str = "detected"
    instructions: Optional[str] = None
    format_mode: FormatMode = FormatMode.PLAIN
    concurrency_limit: int = Field(default=1, ge=MIN_CONCURRENCY, le=MAX_CONCURRENCY)
    streaming_enabled: bool = False
    context_size: int = Field(default=0, ge=0)
    mismatch_retries: int = Field(default=DEFAULT_MISMATCH_RETRIES, ge=0, le=MAX_MISMATCH_RETRIES)
