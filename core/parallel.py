#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
ConcurrencyScheduler - Bounded parallel batch execution with in-order commit
"""

import asyncio
import inspect
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from config.constants import MAX_CONCURRENCY, MIN_CONCURRENCY
from config.logging_config import get_logger
from .errors import BatchTranslationError

logger = get_logger(__name__)


class TaskStatus(Enum):
    """Task status"""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    COMMITTED = "committed"


@dataclass
class Task:
    """One batch of work"""
    id: int
    data: Any  # Batch
    status: TaskStatus = TaskStatus.PENDING
    result: Optional[Any] = None
    error: Optional[BaseException] = None
    start_time: Optional[float] = None
    end_time: Optional[float] = None

    @property
    def elapsed(self) -> float:
        if self.start_time is None or self.end_time is None:
            return 0.0
        return self.end_time - self.start_time


@dataclass
class ProcessingStats:
    """Scheduler-level statistics"""
    total_tasks: int = 0
    completed: int = 0
    failed: int = 0
    committed: int = 0
    max_buffered: int = 0
    total_time: float = 0.0
    avg_time_per_task: float = 0.0

    def update(self, task: Task):
        """Update stats from a finished task"""
        if task.status == TaskStatus.COMPLETED:
            self.completed += 1
            self.total_time += task.elapsed
        elif task.status == TaskStatus.FAILED:
            self.failed += 1

        if self.completed > 0:
            self.avg_time_per_task = self.total_time / self.completed


Worker = Callable[[int, Any], Awaitable[Any]]
CommitCallback = Callable[[int, Any, List[Any]], Any]


def clamp_concurrency(limit: int) -> int:
    return max(MIN_CONCURRENCY, min(MAX_CONCURRENCY, int(limit or MIN_CONCURRENCY)))


class ConcurrencyScheduler:
    """
    Runs batches with at most `concurrency_limit` in flight and commits
    their results strictly in batch order.

    Each finished result lands in its slot; the commit cursor then drains
    every contiguous completed slot, so observers only ever see a prefix
    of the final in-order output.
    """

    def __init__(self, concurrency_limit: int = 3):
        self.concurrency_limit = clamp_concurrency(concurrency_limit)
        self.stats = ProcessingStats()
        self.tasks: List[Task] = []

    async def _run_task(self, task: Task, worker: Worker) -> Task:
        task.status = TaskStatus.RUNNING
        task.start_time = time.time()
        try:
            task.result = await worker(task.id, task.data)
            task.status = TaskStatus.COMPLETED
        except Exception as e:
            task.error = e
            task.status = TaskStatus.FAILED
            logger.error(f"Batch {task.id + 1} failed: {type(e).__name__}: {e}")
        finally:
            task.end_time = time.time()
        return task

    async def run(
        self,
        batches: Sequence[Any],
        worker: Worker,
        on_commit: Optional[CommitCallback] = None,
    ) -> List[Any]:
        """
        Process all batches.

        Args:
            batches: Work items in output order
            worker: async worker(batch_index, batch) -> batch result
            on_commit: callback(batch_index, batch_result, committed_results)
                       fired once per batch, in order, when it is committed

        Returns:
            Batch results in input order

        Raises:
            BatchTranslationError: a batch failed; nothing new is dispatched
                after the failure and in-flight batches are allowed to finish
        """
        self.tasks = [Task(id=i, data=batch) for i, batch in enumerate(batches)]
        self.stats = ProcessingStats(total_tasks=len(self.tasks))
        results: List[Optional[Task]] = [None] * len(self.tasks)
        committed: List[Any] = []
        next_commit = 0
        next_dispatch = 0
        active: Dict[asyncio.Task, Task] = {}
        failure: Optional[Task] = None
        start_time = time.time()

        logger.info(
            f"Scheduling {len(self.tasks)} batches with concurrency {self.concurrency_limit}"
        )

        while next_commit < len(self.tasks):
            while (
                failure is None
                and next_dispatch < len(self.tasks)
                and len(active) < self.concurrency_limit
            ):
                task = self.tasks[next_dispatch]
                active[asyncio.ensure_future(self._run_task(task, worker))] = task
                next_dispatch += 1

            if not active:
                break

            done, _ = await asyncio.wait(active.keys(), return_when=asyncio.FIRST_COMPLETED)
            for future in done:
                task = active.pop(future)
                self.stats.update(task)
                if task.status == TaskStatus.FAILED:
                    if failure is None or task.id < failure.id:
                        failure = task
                    continue
                results[task.id] = task

            # Drain the contiguous prefix of finished batches (never past a failure)
            buffered = sum(1 for slot in results[next_commit:] if slot is not None)
            self.stats.max_buffered = max(self.stats.max_buffered, buffered)
            while (
                next_commit < len(results)
                and results[next_commit] is not None
                and (failure is None or next_commit < failure.id)
            ):
                task = results[next_commit]
                task.status = TaskStatus.COMMITTED
                committed.append(task.result)
                self.stats.committed += 1
                if on_commit is not None:
                    outcome = on_commit(task.id, task.result, committed)
                    if inspect.isawaitable(outcome):
                        await outcome
                next_commit += 1

        self.stats.total_time = time.time() - start_time

        if failure is not None:
            if isinstance(failure.error, BatchTranslationError):
                raise failure.error
            raise BatchTranslationError(
                failure.id,
                failure.error,
                stats=getattr(failure.error, "stats", None),
            ) from failure.error

        return committed
