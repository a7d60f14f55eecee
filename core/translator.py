#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Subtitle Translation Engine.

This module ties the batch pipeline together:
- Batch planning with token-budget splitting
- Request formatting per format mode (plain / timestamp / tagged)
- Backend calls with retry, credential rotation, prompt softening and fallback
- Response validation and mismatch recovery
- Optional streaming of the first in-flight batch
- Sequential or bounded-concurrency execution with in-order commit
- Optional entry-level cache

Usage:
    from core.translator import TranslationEngine
    from core.models import TranslationJob

    engine = TranslationEngine(backend, fallback_backend=None, cache=EntryCache())
    job = TranslationJob(target_language="French", concurrency_limit=3)
    outcome = await engine.translate_subtitle(srt_text, job, on_progress=print)
    print(outcome.srt)

Classes:
    EngineConfig: Tunables read from settings.
    TranslationOutcome: Result of a job.
    TranslationEngine: Main orchestration engine.
"""

import asyncio
import random
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from config.constants import (
    MAX_TOKENS_PER_BATCH,
    MISMATCH_RETRY_DELAY,
    RATE_LIMIT_MAX_DELAY,
    RETRY_MAX_DELAY,
    STREAM_EMIT_INTERVAL,
    TRANSLATION_MAX_RETRIES,
    TRANSLATION_RETRY_DELAY,
)
from config.logging_config import get_logger
from .cache import CacheInterface
from .credentials import CredentialRotator, CredentialStore
from .errors import (
    AuthenticationError,
    BackendError,
    BatchTranslationError,
    ContentPolicyError,
    NetworkError,
    ProviderUnavailableError,
    RateLimitError,
    TokenLimitExceededError,
    classify_error,
)
from .fallback import FallbackChain
from .formatting import BaseFormatter, ContextLine, get_formatter
from .models import Batch, Entry, FormatMode, TranslationJob
from .parallel import ConcurrencyScheduler
from .planner import BatchPlanner, estimate_tokens, heuristic_token_estimate
from .recovery import MismatchRecovery
from .streaming import ProgressCallback, ProgressEmitter, StreamingAggregator
from .subtitle import is_valid_timecode, parse_sequence, serialize_sequence
from .validator import ResponseValidator
from .worker import TranslationStats, WorkerContext

logger = get_logger(__name__)

PromptBuilder = Callable[[bool], str]


@dataclass(frozen=True)
class EngineConfig:
    """Engine tunables; shared read-only by every worker"""
    batch_size: Optional[int] = None
    single_batch_mode: bool = False
    max_tokens_per_batch: int = MAX_TOKENS_PER_BATCH
    max_retries: int = TRANSLATION_MAX_RETRIES
    retry_delay: float = TRANSLATION_RETRY_DELAY
    mismatch_retry_delay: float = MISMATCH_RETRY_DELAY
    stream_emit_interval: int = STREAM_EMIT_INTERVAL

    @classmethod
    def from_settings(cls, settings) -> "EngineConfig":
        return cls(
            batch_size=settings.batch_size,
            single_batch_mode=settings.single_batch_mode,
            max_tokens_per_batch=settings.max_tokens_per_batch,
            max_retries=settings.max_retries,
            retry_delay=settings.retry_delay,
            stream_emit_interval=settings.stream_emit_interval,
        )


@dataclass
class TranslationOutcome:
    """Result of one job"""
    srt: str
    entries: List[Entry]
    stats: TranslationStats = field(default_factory=TranslationStats)
    batch_count: int = 0

    @property
    def degraded_count(self) -> int:
        return self.stats.degraded_entries


class TranslationEngine:
    """
    Batch translation engine.

    Shared state (backend, cache, credential pool, config) is read-only
    while a job runs; everything a batch mutates lives in its
    WorkerContext.
    """

    def __init__(
        self,
        backend,
        fallback_backend=None,
        cache: Optional[CacheInterface] = None,
        credentials: Optional[CredentialStore] = None,
        config: Optional[EngineConfig] = None,
    ):
        """
        Args:
            backend: Primary translation backend
            fallback_backend: Optional secondary backend, tried once per request
            cache: Optional entry cache (None disables caching)
            credentials: Credential pool of the primary backend
            config: Engine tunables
        """
        self.backend = backend
        self.fallback_backend = fallback_backend
        self.cache = cache
        self.config = config or EngineConfig()
        self.rotator = CredentialRotator(credentials)
        self.last_stats = TranslationStats()
        self._bound_backends: Dict[int, object] = {}

    async def aclose(self) -> None:
        """Close per-credential backend copies created during jobs"""
        bound, self._bound_backends = self._bound_backends, {}
        for backend in bound.values():
            if backend is not self.backend:
                await backend.aclose()

    # ------------------------------------------------------------------
    # Job entry points
    # ------------------------------------------------------------------

    async def translate_subtitle(
        self,
        raw: str,
        job: TranslationJob,
        on_progress: Optional[ProgressCallback] = None,
    ) -> TranslationOutcome:
        """Translate SRT text and return the reconstituted SRT"""
        entries = parse_sequence(raw)
        if not entries:
            logger.warning("No subtitle entries found in input")
            return TranslationOutcome(srt="", entries=[], stats=TranslationStats())

        translated = await self.translate_entries(entries, job, on_progress)
        return TranslationOutcome(
            srt=serialize_sequence(translated),
            entries=translated,
            stats=self.last_stats,
            batch_count=self.last_stats.batches,
        )

    async def translate_entries(
        self,
        entries: Sequence[Entry],
        job: TranslationJob,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[Entry]:
        """
        Translate an ordered entry sequence.

        Returns a list with exactly one entry per input entry, in order.

        Raises:
            BatchTranslationError: a batch could not be completed
        """
        entries = list(entries)
        formatter = get_formatter(job.format_mode)
        planner = BatchPlanner(
            format_mode=job.format_mode,
            batch_size=self.config.batch_size,
            max_tokens_per_batch=self.config.max_tokens_per_batch,
            single_batch_mode=self.config.single_batch_mode,
        )
        batches = planner.plan(entries)
        emitter = ProgressEmitter(on_progress, total_count=len(entries), total_batches=len(batches))
        job_stats = TranslationStats()
        self.last_stats = job_stats

        logger.info(
            f"Translating {len(entries)} entries to {job.target_language} "
            f"({len(batches)} batches, mode={job.format_mode.value}, "
            f"concurrency={job.concurrency_limit}, streaming={job.streaming_enabled})"
        )

        if job.concurrency_limit <= 1 or len(batches) <= 1:
            output = await self._run_sequential(batches, entries, job, formatter, planner, emitter, job_stats)
        else:
            output = await self._run_parallel(batches, entries, job, formatter, planner, emitter, job_stats)

        if len(output) != len(entries):
            # Recovery guarantees one entry per position; this is a bug
            raise RuntimeError(f"Output has {len(output)} entries for {len(entries)} inputs")

        self._log_summary(job_stats, len(entries))
        return output

    async def _run_sequential(self, batches, entries, job, formatter, planner, emitter, job_stats):
        output: List[Entry] = []
        for index, batch in enumerate(batches):
            worker = WorkerContext.create(index, self.rotator, self.config, streaming=job.streaming_enabled)
            context = self._build_context(entries, output, batch, job.context_size)
            try:
                result = await self.translate_batch(
                    batch, job, worker,
                    formatter=formatter, planner=planner, context=context,
                    emitter=emitter, committed=output,
                )
            except Exception as e:
                logger.error(f"Error in batch {index + 1}: {e}")
                raise BatchTranslationError(index, e, worker.stats) from e
            finally:
                job_stats.merge(worker.stats)

            output.extend(result)
            await emitter.emit(output, len(output), current_batch=index + 1)
            self._log_progress(index, len(batches), len(output), len(entries))
        return output

    async def _run_parallel(self, batches, entries, job, formatter, planner, emitter, job_stats):
        output: List[Entry] = []
        scheduler = ConcurrencyScheduler(job.concurrency_limit)

        async def worker_fn(index: int, batch: Batch) -> List[Entry]:
            # Only the first batch may stream; concurrent partials would interleave
            worker = WorkerContext.create(
                index, self.rotator, self.config,
                streaming=job.streaming_enabled and index == 0,
            )
            context = self._build_context(entries, output, batch, job.context_size)
            try:
                return await self.translate_batch(
                    batch, job, worker,
                    formatter=formatter, planner=planner, context=context,
                    emitter=emitter, committed=(),
                )
            except Exception as e:
                raise BatchTranslationError(index, e, worker.stats) from e
            finally:
                job_stats.merge(worker.stats)

        async def on_commit(index: int, result: List[Entry], committed) -> None:
            output.extend(result)
            await emitter.emit(output, len(output), current_batch=index + 1)
            self._log_progress(index, len(batches), len(output), len(entries))

        await scheduler.run(batches, worker_fn, on_commit)
        return output

    # ------------------------------------------------------------------
    # Batch pipeline
    # ------------------------------------------------------------------

    async def translate_batch(
        self,
        batch: Batch,
        job: TranslationJob,
        worker: WorkerContext,
        formatter: Optional[BaseFormatter] = None,
        planner: Optional[BatchPlanner] = None,
        context: Optional[List[ContextLine]] = None,
        emitter: Optional[ProgressEmitter] = None,
        committed: Sequence[Entry] = (),
    ) -> List[Entry]:
        """
        Translate one batch: cache lookup, token-budget split, request,
        validation and recovery.

        Returns one Entry per batch entry, in order.
        """
        formatter = formatter or get_formatter(job.format_mode)
        planner = planner or BatchPlanner(
            format_mode=job.format_mode,
            max_tokens_per_batch=self.config.max_tokens_per_batch,
        )
        worker.stats.batches += 1

        cached = self._lookup_cache(batch, job)
        if cached is not None:
            worker.stats.cache_hits += len(cached)
            logger.debug(f"Batch {batch.start_id}-{batch.end_id} served from cache")
            return cached

        # Empty subtitles have nothing to translate and never come back in a
        # response; they keep their position without being sent
        pending = Batch.from_entries(e for e in batch.entries if e.text.strip())
        if len(pending) == len(batch):
            return await self._translate_pending(
                batch, job, worker, formatter, planner, context, emitter, committed
            )

        logger.debug(
            f"Batch {batch.start_id}-{batch.end_id}: {len(batch) - len(pending)} empty entries passed through"
        )
        if not pending.entries:
            return list(batch.entries)
        translated = iter(await self._translate_pending(
            pending, job, worker, formatter, planner, context, emitter, committed
        ))
        return [next(translated) if e.text.strip() else e for e in batch.entries]

    async def _translate_pending(
        self,
        batch: Batch,
        job: TranslationJob,
        worker: WorkerContext,
        formatter: BaseFormatter,
        planner: BatchPlanner,
        context: Optional[List[ContextLine]],
        emitter: Optional[ProgressEmitter],
        committed: Sequence[Entry],
    ) -> List[Entry]:
        """Token-budget split, then request and recovery per part"""

        async def estimator(part: Batch) -> int:
            content = formatter.format(part, context)
            prompt = formatter.build_instructions(job.target_language, len(part), job.instructions)
            # Skip the exact counter when the heuristic is nowhere near the ceiling
            if heuristic_token_estimate(prompt + content) < planner.max_tokens_per_batch // 2:
                return heuristic_token_estimate(prompt + content)
            return await estimate_tokens(content, prompt, self.backend, job.target_language)

        parts = await planner.split_oversized(batch, estimator)
        if len(parts) > 1:
            worker.stats.token_limit_splits += len(parts) - 1
            logger.info(f"Batch {batch.start_id}-{batch.end_id} split into {len(parts)} parts by token budget")

        results: List[Entry] = []
        for position, part in enumerate(parts):
            part_context = context if position == 0 else self._context_from_results(
                batch, results, job.context_size
            )
            aggregator = None
            if (worker.streaming and emitter is not None and len(parts) == 1
                    and self.backend.supports_streaming):
                aggregator = StreamingAggregator(
                    batch=part,
                    formatter=formatter,
                    emitter=emitter,
                    committed=committed,
                    batch_index=worker.batch_index,
                    emit_interval=self.config.stream_emit_interval,
                    use_timecodes=job.format_mode == FormatMode.TIMESTAMP,
                )
            results.extend(
                await self._translate_unit(part, job, worker, formatter, part_context, aggregator)
            )
        return results

    async def _translate_unit(
        self,
        unit: Batch,
        job: TranslationJob,
        worker: WorkerContext,
        formatter: BaseFormatter,
        context: Optional[List[ContextLine]],
        aggregator: Optional[StreamingAggregator] = None,
    ) -> List[Entry]:
        content = formatter.format(unit, context)

        def prompt_for(size: int) -> PromptBuilder:
            return lambda softened: formatter.build_instructions(
                job.target_language, size, job.instructions, softened=softened
            )

        try:
            raw, used_backend = await self._request(
                content, prompt_for(len(unit)), job, worker, aggregator,
                passthrough=(TokenLimitExceededError,),
            )
        except TokenLimitExceededError as e:
            worker.stats.record_error(e)
            if len(unit) > 1:
                # Response window too small: halve and translate each half
                worker.stats.token_limit_splits += 1
                mid = len(unit) // 2
                logger.warning(f"{e}; splitting entries {unit.start_id}-{unit.end_id} at {unit.start_id + mid}")
                left = await self._translate_unit(unit.slice(0, mid), job, worker, formatter, context)
                right = await self._translate_unit(unit.slice(mid, len(unit)), job, worker, formatter, None)
                return left + right
            logger.warning(f"{e}; retrying single entry {unit.start_id} once")
            raw, used_backend = await self._request(content, prompt_for(1), job, worker, None)

        if aggregator is not None:
            await aggregator.flush()

        validator = ResponseValidator(formatter)
        report = validator.parse(raw, len(unit))
        if report.mismatch:
            worker.stats.mismatch_detected += 1
            worker.stats.missing_entries += report.missing_count

        async def request_fn(sub: Batch) -> str:
            sub_content = formatter.format(sub, context)
            sub_raw, _ = await self._request(sub_content, prompt_for(len(sub)), job, worker, None)
            return sub_raw

        recovery = MismatchRecovery(
            validator,
            mismatch_retries=job.mismatch_retries,
            retry_policy=used_backend.retry_policy,
            retry_delay=self.config.mismatch_retry_delay,
        )
        outcome = await recovery.recover(unit, report, request_fn)
        worker.stats.recovered_entries += outcome.recovered_count
        worker.stats.degraded_entries += outcome.degraded_count
        worker.stats.targeted_retries += outcome.targeted_retries
        worker.stats.full_retries += outcome.full_retries

        degraded = set(outcome.degraded_indices)
        results = []
        for translated in outcome.entries:
            source = unit.entries[translated.index]
            timecode = source.timecode
            if (job.format_mode == FormatMode.TIMESTAMP and translated.timecode
                    and is_valid_timecode(translated.timecode)):
                timecode = translated.timecode
            results.append(source.with_text(translated.text, timecode))
            if translated.index not in degraded:
                self._store_cache(source.text, translated.text, job)
        return results

    # ------------------------------------------------------------------
    # Backend calls
    # ------------------------------------------------------------------

    def _bind(self, worker: WorkerContext):
        """Primary backend bound to the worker's current credential"""
        credential = worker.binding.credential
        if credential is None:
            return self.backend
        bound = self._bound_backends.get(credential.slot)
        if bound is None:
            bound = self.backend.with_credential(credential)
            self._bound_backends[credential.slot] = bound
        return bound

    async def _request(
        self,
        content: str,
        prompt_builder: PromptBuilder,
        job: TranslationJob,
        worker: WorkerContext,
        aggregator: Optional[StreamingAggregator],
        passthrough: Tuple[type, ...] = (),
    ):
        """Primary (with retries) then, once, the fallback. Returns (raw, backend)."""
        chain = FallbackChain(self._bind(worker), self.fallback_backend)

        async def primary_call(_backend):
            return await self._call_with_retries(content, prompt_builder, job, worker, aggregator)

        async def secondary_call(backend):
            worker.stats.requests += 1
            raw = await self._invoke(backend, content, prompt_builder(False), job, None)
            return raw, backend

        try:
            result = await chain.run(primary_call, secondary_call, passthrough=passthrough)
        except ProviderUnavailableError as e:
            worker.stats.record_error(e)
            raise

        if chain.used_secondary:
            worker.stats.used_secondary_provider = True
            worker.stats.secondary_provider_name = self.fallback_backend.provider_name
        return result

    async def _invoke(self, backend, content: str, prompt: str, job: TranslationJob,
                      aggregator: Optional[StreamingAggregator]) -> str:
        """One backend call; foreign exceptions are mapped onto BackendError"""
        try:
            if aggregator is not None:
                return await backend.stream_translate(
                    content, job.source_language, job.target_language, prompt, aggregator.on_partial
                )
            return await backend.translate(content, job.source_language, job.target_language, prompt)
        except BackendError:
            raise
        except Exception as e:
            raise classify_error(e, getattr(backend, "provider_name", "")) from e

    async def _call_with_retries(
        self,
        content: str,
        prompt_builder: PromptBuilder,
        job: TranslationJob,
        worker: WorkerContext,
        aggregator: Optional[StreamingAggregator],
    ):
        """
        Call the primary backend with:
        - exponential backoff + jitter on network errors
        - longer backoff and credential rotation on rate limits
        - credential rotation on invalid keys when the pool has more
        - one retry with a softened prompt on content refusals
        """
        softened = False
        attempt = 0
        backend = self._bind(worker)

        while True:
            worker.stats.requests += 1
            try:
                raw = await self._invoke(backend, content, prompt_builder(softened), job, aggregator)
                return raw, backend

            except ContentPolicyError as e:
                worker.stats.record_error(e)
                if softened:
                    raise
                softened = True
                worker.stats.content_policy_retries += 1
                logger.warning(f"Content refused by {backend.provider_name}, retrying with softened prompt")

            except RateLimitError as e:
                worker.stats.record_error(e)
                worker.stats.rate_limit_errors += 1
                attempt += 1
                if attempt > self.config.max_retries:
                    raise
                if worker.rotate_credential():
                    backend = self._bind(worker)
                base_delay = self.config.retry_delay * min(2 ** (attempt + 1), RATE_LIMIT_MAX_DELAY)
                jitter = random.uniform(0, base_delay * 0.3)
                logger.warning(
                    f"Rate limited by {backend.provider_name} "
                    f"(retry {attempt}/{self.config.max_retries} in {base_delay + jitter:.1f}s)"
                )
                await asyncio.sleep(base_delay + jitter)

            except NetworkError as e:
                worker.stats.record_error(e)
                worker.stats.transient_retries += 1
                attempt += 1
                if attempt > self.config.max_retries:
                    raise
                base_delay = self.config.retry_delay * min(2 ** attempt, RETRY_MAX_DELAY)
                jitter = random.uniform(0, base_delay * 0.1)  # 10% jitter
                logger.warning(f"{e} (retry {attempt}/{self.config.max_retries})")
                await asyncio.sleep(base_delay + jitter)

            except AuthenticationError as e:
                worker.stats.record_error(e)
                attempt += 1
                if attempt > self.config.max_retries or not worker.rotate_credential():
                    raise
                logger.warning(f"{e}; switching credential")
                backend = self._bind(worker)

    # ------------------------------------------------------------------
    # Context and cache
    # ------------------------------------------------------------------

    @staticmethod
    def _build_context(
        entries: Sequence[Entry],
        translated: Sequence[Entry],
        batch: Batch,
        size: int,
    ) -> Optional[List[ContextLine]]:
        """Preceding source entries, with translations where already committed"""
        if size <= 0 or batch.start_id <= 1:
            return None
        start = max(0, batch.start_id - 1 - size)
        stop = batch.start_id - 1
        lines = []
        for position in range(start, stop):
            translation = translated[position].text if position < len(translated) else None
            lines.append(ContextLine(source=entries[position].text, translation=translation))
        return lines

    @staticmethod
    def _context_from_results(batch: Batch, results: Sequence[Entry], size: int) -> Optional[List[ContextLine]]:
        if size <= 0 or not results:
            return None
        done = len(results)
        start = max(0, done - size)
        return [
            ContextLine(source=batch.entries[i].text, translation=results[i].text)
            for i in range(start, done)
        ]

    def _lookup_cache(self, batch: Batch, job: TranslationJob) -> Optional[List[Entry]]:
        """Cached entries when every non-empty entry of the batch is cached, else None"""
        if self.cache is None:
            return None
        found = []
        for entry in batch.entries:
            if not entry.text.strip():
                found.append(entry)
                continue
            text = self.cache.lookup(entry.text, job.target_language, job.instructions)
            if text is None:
                return None
            found.append(entry.with_text(text))
        return found

    def _store_cache(self, source_text: str, translated_text: str, job: TranslationJob) -> None:
        if self.cache is None:
            return
        self.cache.store(source_text, job.target_language, translated_text, job.instructions)

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------

    @staticmethod
    def _log_progress(batch_index: int, total_batches: int, done: int, total: int) -> None:
        progress = int(done / max(total, 1) * 100)
        if batch_index == 0 or batch_index == total_batches - 1 or progress % 25 == 0:
            logger.info(
                f"Progress: {progress}% ({done}/{total} entries, batch {batch_index + 1}/{total_batches})"
            )

    @staticmethod
    def _log_summary(stats: TranslationStats, total: int) -> None:
        logger.info("=" * 50)
        logger.info("TRANSLATION SUMMARY")
        logger.info("=" * 50)
        logger.info(f"Entries: {total} in {stats.batches} batches ({stats.requests} requests)")
        if stats.cache_hits:
            logger.info(f"Cache hits: {stats.cache_hits}")
        if stats.mismatch_detected:
            logger.info(
                f"Mismatches: {stats.mismatch_detected} "
                f"(missing {stats.missing_entries}, recovered {stats.recovered_entries})"
            )
        if stats.degraded_entries:
            logger.warning(f"Untranslated entries: {stats.degraded_entries}")
        if stats.rate_limit_errors:
            logger.info(
                f"Rate limits: {stats.rate_limit_errors} (key rotations: {stats.key_rotation_retries})"
            )
        if stats.used_secondary_provider:
            logger.info(f"Fallback used: {stats.secondary_provider_name}")
        logger.info("=" * 50)
