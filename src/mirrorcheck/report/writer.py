"""Append-only report sinks for comparison outcomes."""
import asyncio
import logging
import threading
from collections import Counter
from pathlib import Path
from typing import TextIO

from .outcome import ComparisonOutcome, OutcomeKind

logger = logging.getLogger(__name__)

DEFAULT_RESULTS_PATH = Path('res.txt')
DEFAULT_ERRORS_PATH = Path('error.txt')


class ReportWriter:
    """Owns the results and errors files for one run.

    Both files are opened in append mode so repeated runs accumulate history.
    Each outcome is written with a single ``write`` call under a lock and then
    flushed, so a line is never split or interleaved with another one, and
    lines already written survive an aborted run.

    Within an async run, outcomes reach the writer through a queue drained by
    :meth:`consume`, which makes the writer task the only code touching the
    files.
    """

    def __init__(self, results_path: Path = DEFAULT_RESULTS_PATH, errors_path: Path = DEFAULT_ERRORS_PATH):
        self._results_path = Path(results_path)
        self._errors_path = Path(errors_path)
        self._results: TextIO | None = None
        self._errors: TextIO | None = None
        self._lock = threading.Lock()
        self._counts: Counter[OutcomeKind] = Counter()

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @property
    def results_path(self) -> Path:
        return self._results_path

    @property
    def errors_path(self) -> Path:
        return self._errors_path

    @property
    def counts(self) -> dict[OutcomeKind, int]:
        with self._lock:
            return dict(self._counts)

    def open(self):
        """Open both sinks for appending.

        Raises:
            OSError: either file cannot be opened; nothing is left open
        """
        results = self._open_sink(self._results_path)
        try:
            errors = self._open_sink(self._errors_path)
        except OSError:
            results.close()
            raise
        self._results, self._errors = results, errors

    def close(self):
        with self._lock:
            for sink in (self._results, self._errors):
                if sink is not None:
                    sink.close()
            self._results = self._errors = None

    def write(self, outcome: ComparisonOutcome):
        line = outcome.report_line()
        with self._lock:
            sink = self._results if outcome.is_stale else self._errors
            if sink is None:
                raise RuntimeError("Report writer is not open")
            sink.write(line)
            sink.flush()
            self._counts[outcome.kind] += 1

        logger.info(f"Reported {outcome.kind.value}: {outcome.reported_path}")

    async def consume(self, queue: asyncio.Queue):
        """Write queued outcomes until a ``None`` sentinel arrives."""
        while True:
            outcome = await queue.get()
            try:
                if outcome is None:
                    return
                self.write(outcome)
            finally:
                queue.task_done()

    @staticmethod
    def _open_sink(path: Path) -> TextIO:
        return open(path, 'a', encoding='utf-8', errors='surrogateescape')
