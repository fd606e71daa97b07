"""Classification results for a single source file."""
from enum import Enum
from pathlib import Path
from typing import NamedTuple


class OutcomeKind(Enum):
    """What was found for a file. Fresh, verified files have no outcome."""
    STALE = "stale"  # Content verified, timestamp older than the threshold
    MISMATCH = "mismatch"  # Both hashed, digests differ
    MISSING_IN_BACKUP = "missing"  # Backup file could not be hashed
    SOURCE_HASH_ERROR = "source_error"  # Source file could not be hashed
    STAT_ERROR = "stat_error"  # Timestamps unreadable after a match
    TIMESTAMP_UNSUPPORTED = "timestamp_unsupported"  # Access time not exposed


# Labels for lines in the errors report
ERROR_LABELS = {
    OutcomeKind.SOURCE_HASH_ERROR: "Error hashing source file",
    OutcomeKind.MISSING_IN_BACKUP: "File missing in backup",
    OutcomeKind.MISMATCH: "Content mismatch",
    OutcomeKind.STAT_ERROR: "Error getting file info",
    OutcomeKind.TIMESTAMP_UNSUPPORTED: "Access time unsupported",
}

# Which path each error line names
_REPORTS_BACKUP_PATH = {OutcomeKind.MISSING_IN_BACKUP, OutcomeKind.MISMATCH}


class ComparisonOutcome(NamedTuple):
    kind: OutcomeKind
    source_path: Path
    backup_path: Path
    detail: str | None = None

    @property
    def is_stale(self) -> bool:
        return self.kind is OutcomeKind.STALE

    @property
    def reported_path(self) -> Path:
        if self.kind in _REPORTS_BACKUP_PATH:
            return self.backup_path
        return self.source_path

    def report_line(self) -> str:
        """Render as one report line, including the trailing newline.

        Stale outcomes render as the bare source path; everything else as
        ``<label>: <path>`` with the reason in parentheses when known.
        """
        if self.is_stale:
            return f"{self.source_path}\n"

        line = f"{ERROR_LABELS[self.kind]}: {self.reported_path}"
        if self.detail:
            line += f" ({self.detail})"
        return line + "\n"
