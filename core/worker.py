#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Per-batch worker state.

A WorkerContext holds only what a batch mutates while it runs: its own
credential binding and its own stats. Shared configuration is referenced
read-only. Stats are merged into the job totals once the batch is done.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .credentials import CredentialBinding, CredentialRotator


@dataclass
class TranslationStats:
    """Counters for one batch or, after merging, for a whole job"""
    batches: int = 0
    requests: int = 0
    rate_limit_errors: int = 0
    key_rotation_retries: int = 0
    transient_retries: int = 0
    mismatch_detected: int = 0
    missing_entries: int = 0
    recovered_entries: int = 0
    degraded_entries: int = 0
    targeted_retries: int = 0
    full_retries: int = 0
    content_policy_retries: int = 0
    token_limit_splits: int = 0
    cache_hits: int = 0
    used_secondary_provider: bool = False
    secondary_provider_name: Optional[str] = None
    error_types: Dict[str, int] = field(default_factory=dict)

    def record_error(self, error: BaseException) -> None:
        kind = getattr(getattr(error, "kind", None), "value", type(error).__name__)
        self.error_types[kind] = self.error_types.get(kind, 0) + 1

    def merge(self, other: "TranslationStats") -> None:
        """Add another stats block into this one"""
        for name in (
            "batches", "requests", "rate_limit_errors", "key_rotation_retries",
            "transient_retries", "mismatch_detected", "missing_entries",
            "recovered_entries", "degraded_entries", "targeted_retries",
            "full_retries", "content_policy_retries", "token_limit_splits",
            "cache_hits",
        ):
            setattr(self, name, getattr(self, name) + getattr(other, name))
        if other.used_secondary_provider:
            self.used_secondary_provider = True
            self.secondary_provider_name = other.secondary_provider_name
        for kind, count in other.error_types.items():
            self.error_types[kind] = self.error_types.get(kind, 0) + count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batches": self.batches,
            "requests": self.requests,
            "rate_limit_errors": self.rate_limit_errors,
            "key_rotation_retries": self.key_rotation_retries,
            "transient_retries": self.transient_retries,
            "mismatch_detected": self.mismatch_detected,
            "missing_entries": self.missing_entries,
            "recovered_entries": self.recovered_entries,
            "degraded_entries": self.degraded_entries,
            "targeted_retries": self.targeted_retries,
            "full_retries": self.full_retries,
            "content_policy_retries": self.content_policy_retries,
            "token_limit_splits": self.token_limit_splits,
            "cache_hits": self.cache_hits,
            "used_secondary_provider": self.used_secondary_provider,
            "secondary_provider_name": self.secondary_provider_name,
            "error_types": dict(self.error_types),
        }


@dataclass
class WorkerContext:
    """Mutable state owned by exactly one in-flight batch"""
    batch_index: int
    binding: CredentialBinding
    config: Any
    stats: TranslationStats = field(default_factory=TranslationStats)
    streaming: bool = False

    @classmethod
    def create(
        cls,
        batch_index: int,
        rotator: CredentialRotator,
        config: Any,
        streaming: bool = False,
    ) -> "WorkerContext":
        return cls(
            batch_index=batch_index,
            binding=rotator.binding_for_batch(batch_index),
            config=config,
            stats=TranslationStats(),
            streaming=streaming,
        )

    def rotate_credential(self) -> bool:
        """Move this worker to the next credential; False when there is none"""
        if len(self.binding.store) <= 1:
            return False
        self.binding.rotate()
        self.stats.key_rotation_retries += 1
        return True
