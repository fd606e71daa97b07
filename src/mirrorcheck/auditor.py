import asyncio
import logging
import os
from pathlib import Path
from typing import Callable

from .commands.compare_dirs import CompareArgs, ComparisonSummary, do_compare
from .report.writer import ReportWriter, DEFAULT_RESULTS_PATH, DEFAULT_ERRORS_PATH
from .settings import (
    AuditSettings,
    SETTING_ERRORS_PATH,
    SETTING_HASH_ALGORITHM,
    SETTING_LOG_LEVEL,
    SETTING_LOG_PATH,
    SETTING_RESULTS_PATH,
)
from .utils.processor import Processor, DEFAULT_HASH_ALGORITHM, HASH_ALGORITHMS
from .utils.timestamps import AccessTimeTracking, StalenessThreshold, TimeBasis, probe_access_time_tracking
from .utils.walker import WalkPolicy, excluded_relative_paths

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class Auditor:
    """Workflow layer for auditing a backup tree against its source.

    An Auditor resolves where reports go and which digest to use (explicit
    arguments first, then settings, then defaults), validates the roots, and
    runs one comparison pass per :meth:`audit` call. The heavy lifting is in
    :func:`mirrorcheck.commands.compare_dirs.do_compare`.
    """

    def __init__(self, processor: Processor, settings: AuditSettings | None = None, *,
                 results_path: str | os.PathLike | None = None,
                 errors_path: str | os.PathLike | None = None,
                 hash_algorithm: str | None = None):
        """
        Args:
            processor: Worker pool used for hashing and stat calls
            settings: Optional settings; missing keys fall back to defaults
            results_path: Stale-file report, overrides ``report.results``
            errors_path: Diagnostics report, overrides ``report.errors``
            hash_algorithm: One of HASH_ALGORITHMS, overrides ``hash.algorithm``

        Raises:
            ValueError: the hash algorithm is not supported
        """
        if settings is None:
            settings = AuditSettings()

        self._processor = processor
        self._settings = settings
        self._results_path = Path(results_path or settings.get(SETTING_RESULTS_PATH, DEFAULT_RESULTS_PATH))
        self._errors_path = Path(errors_path or settings.get(SETTING_ERRORS_PATH, DEFAULT_ERRORS_PATH))
        self._hash_algorithm = hash_algorithm or settings.get(SETTING_HASH_ALGORITHM, DEFAULT_HASH_ALGORITHM)

        if self._hash_algorithm not in HASH_ALGORITHMS:
            raise ValueError(f"Unknown hash algorithm: {self._hash_algorithm}")

    @property
    def results_path(self) -> Path:
        return self._results_path

    @property
    def errors_path(self) -> Path:
        return self._errors_path

    @property
    def hash_algorithm(self) -> str:
        return self._hash_algorithm

    def configure_logging_from_settings(self, level: str | None = None) -> bool:
        """Send logs to ``logging.path`` if the settings name one.

        A level already configured on the root logger is kept when no level is
        given; otherwise ``logging.level`` or INFO is used.

        Args:
            level: Level name overriding ``logging.level`` (e.g. from --log-level)

        Returns:
            True if logging was configured, False otherwise
        """
        log_path_setting = self._settings.get(SETTING_LOG_PATH)
        if not log_path_setting:
            return False

        if level is not None:
            level = getattr(logging, level.upper())
        elif logging.root.level != logging.NOTSET and logging.root.handlers:
            level = logging.root.level
        else:
            level = getattr(logging, str(self._settings.get(SETTING_LOG_LEVEL, 'INFO')).upper())

        for handler in logging.root.handlers[:]:
            logging.root.removeHandler(handler)

        logging.basicConfig(filename=str(log_path_setting), level=level, format=LOG_FORMAT)
        return True

    def audit(self, source_root: str | os.PathLike, backup_root: str | os.PathLike,
              threshold: StalenessThreshold,
              progress: Callable[[Path], None] | None = None) -> ComparisonSummary:
        """Compare every file under source_root with its copy under backup_root.

        Stale source paths are appended to the results file, every other
        finding to the errors file. Both files are opened before the first
        comparison and closed after the last one.

        Args:
            source_root: Directory being audited
            backup_root: Directory expected to mirror source_root
            threshold: Staleness threshold and timestamp basis
            progress: Called with each source path as its check begins

        Returns:
            Counts for the pass

        Raises:
            NotADirectoryError: source_root is not a directory (no report file is touched)
            OSError: a report file cannot be opened
            WalkAborted: traversal failed part way; findings so far are kept
        """
        source_root = Path(source_root)
        backup_root = Path(backup_root)

        if not source_root.is_dir():
            raise NotADirectoryError(f"Source directory does not exist or is not a directory: {source_root}")

        if not backup_root.is_dir():
            logger.warning(f"Backup directory does not exist or is not a directory: {backup_root}")

        if threshold.basis == TimeBasis.ACCESS:
            self._warn_about_access_time(source_root)

        policy = WalkPolicy(excluded_relative_paths(
            source_root, [backup_root, self._results_path, self._errors_path]))

        logger.info(f"Auditing {source_root} against {backup_root} "
                    f"(threshold={threshold.minutes} minutes, basis={threshold.basis}, "
                    f"hash={self._hash_algorithm}, workers={self._processor.concurrency})")

        with ReportWriter(self._results_path, self._errors_path) as writer:
            summary = asyncio.run(do_compare(writer, CompareArgs(
                self._processor,
                source_root,
                backup_root,
                threshold,
                self._hash_algorithm,
                policy,
                progress
            )))

        logger.info(f"Completed: {summary.describe()}")
        return summary

    @staticmethod
    def _warn_about_access_time(source_root: Path):
        tracking = probe_access_time_tracking(source_root)
        if tracking == AccessTimeTracking.DISABLED:
            logger.warning(f"{source_root} is mounted with noatime; access times are not updated "
                           f"and every file may look stale")
        elif tracking == AccessTimeTracking.RELATIME:
            logger.warning(f"{source_root} is mounted with relatime; access times are updated at most "
                           f"once a day unless the file was modified")
        elif tracking == AccessTimeTracking.UNKNOWN:
            logger.info(f"Cannot tell whether access times are tracked for {source_root}")
