import asyncio
import logging
from asyncio import TaskGroup
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, NamedTuple

from ..report.outcome import ComparisonOutcome, OutcomeKind
from ..report.writer import ReportWriter
from ..utils.processor import Processor, FileUnreadable
from ..utils.throttler import Throttler
from ..utils.timestamps import StalenessThreshold, TimestampUnsupported
from ..utils.walker import ComparisonTask, WalkAborted, WalkPolicy, iter_comparison_tasks

logger = logging.getLogger(__name__)


class CompareArgs(NamedTuple):
    """Arguments for a source/backup comparison."""
    processor: Processor  # Pool doing the hashing and stat calls
    source_root: Path
    backup_root: Path
    threshold: StalenessThreshold
    hash_algorithm: str
    walk_policy: WalkPolicy = WalkPolicy()
    progress: Callable[[Path], None] | None = None  # Called as each file starts


@dataclass
class ComparisonSummary:
    """Counts for a finished run. Every checked file is either fresh or has one outcome."""
    files_checked: int = 0
    fresh: int = 0
    outcomes: Counter = field(default_factory=Counter)

    @property
    def reported(self) -> int:
        return sum(self.outcomes.values())

    def count(self, kind: OutcomeKind) -> int:
        return self.outcomes[kind]

    def describe(self) -> str:
        parts = [f"checked={self.files_checked}", f"fresh={self.fresh}"]
        parts += [f"{kind.value}={self.outcomes[kind]}" for kind in OutcomeKind]
        return ", ".join(parts)


class CompareProcessor:
    """Walks the source tree and classifies each file against its backup."""

    def __init__(self, writer: ReportWriter, args: CompareArgs):
        self._writer = writer
        self._args = args
        self._processor = args.processor
        self._summary = ComparisonSummary()
        self._queue: asyncio.Queue[ComparisonOutcome | None] = asyncio.Queue()

    async def run(self) -> ComparisonSummary:
        """Compare every file, waiting for all scheduled work before returning.

        Raises:
            WalkAborted: traversal failed; raised only after the comparisons
                already scheduled have finished and been written
        """
        aborted: WalkAborted | None = None
        writer_task = asyncio.create_task(self._writer.consume(self._queue))
        try:
            async with TaskGroup() as tg:
                throttler = Throttler(tg, self._processor.concurrency * 2)
                try:
                    for task in iter_comparison_tasks(self._args.source_root, self._args.backup_root,
                                                      self._args.walk_policy):
                        await throttler.schedule(self._compare(task))
                except WalkAborted as e:
                    logger.error(f"Walk aborted: {e}")
                    aborted = e
        finally:
            await self._queue.put(None)
            await writer_task

        if aborted is not None:
            raise aborted
        return self._summary

    async def _compare(self, task: ComparisonTask):
        self._summary.files_checked += 1
        if self._args.progress is not None:
            self._args.progress(task.source_path)
        logger.info(f"Checking: {task.source_path}")

        outcome = await self._classify(task)
        if outcome is None:
            self._summary.fresh += 1
        else:
            self._summary.outcomes[outcome.kind] += 1
            await self._queue.put(outcome)

    async def _classify(self, task: ComparisonTask) -> ComparisonOutcome | None:
        algorithm = self._args.hash_algorithm

        try:
            source_digest = await self._processor.digest(task.source_path, algorithm)
        except FileUnreadable as e:
            return ComparisonOutcome(OutcomeKind.SOURCE_HASH_ERROR, task.source_path, task.backup_path, e.reason)

        try:
            backup_digest = await self._processor.digest(task.backup_path, algorithm)
        except FileUnreadable as e:
            return ComparisonOutcome(OutcomeKind.MISSING_IN_BACKUP, task.source_path, task.backup_path, e.reason)

        if source_digest != backup_digest:
            return ComparisonOutcome(OutcomeKind.MISMATCH, task.source_path, task.backup_path)

        try:
            times = await self._processor.file_times(task.source_path)
        except OSError as e:
            return ComparisonOutcome(OutcomeKind.STAT_ERROR, task.source_path, task.backup_path, e.strerror or str(e))

        try:
            stale = self._args.threshold.is_stale(times.with_access_time_of(task.source_times))
        except TimestampUnsupported as e:
            return ComparisonOutcome(OutcomeKind.TIMESTAMP_UNSUPPORTED, task.source_path, task.backup_path, str(e))

        if stale:
            return ComparisonOutcome(OutcomeKind.STALE, task.source_path, task.backup_path)
        return None


async def do_compare(writer: ReportWriter, args: CompareArgs) -> ComparisonSummary:
    """Async implementation of a full source/backup comparison."""
    processor = CompareProcessor(writer, args)
    return await processor.run()
