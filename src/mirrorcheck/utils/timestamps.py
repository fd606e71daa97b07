"""Portable access to file timestamps and the staleness rule.

Modification time is available everywhere. Access time is less reliable:
some platforms and filesystems report 0, and filesystems mounted with
``noatime`` or ``relatime`` do not update it on every read. A zero access time
is surfaced as :class:`TimestampUnsupported` rather than being treated as a
very old file.
"""
import logging
import os
import time
from enum import StrEnum
from pathlib import Path
from typing import NamedTuple

logger = logging.getLogger(__name__)

NANOSECONDS_PER_MINUTE = 60 * 1_000_000_000


class TimeBasis(StrEnum):
    MODIFY = 'modify'
    ACCESS = 'access'


class TimestampUnsupported(Exception):
    """The requested timestamp is not exposed for this file on this platform."""


class FileTimes(NamedTuple):
    mtime_ns: int
    atime_ns: int | None

    @classmethod
    def from_stat(cls, st: os.stat_result) -> 'FileTimes':
        atime_ns = st.st_atime_ns if st.st_atime_ns > 0 else None
        return cls(st.st_mtime_ns, atime_ns)

    def with_access_time_of(self, earlier: 'FileTimes | None') -> 'FileTimes':
        """Replace the access time with one observed before the file was read.

        Hashing reads the file and may bump its access time, so the value
        seen during the walk is the meaningful one.
        """
        if earlier is None:
            return self
        return self._replace(atime_ns=earlier.atime_ns)

    def modification_time(self) -> int:
        return self.mtime_ns

    def access_time(self) -> int:
        if self.atime_ns is None:
            raise TimestampUnsupported("access time is not available")
        return self.atime_ns

    def select(self, basis: TimeBasis) -> int:
        if basis == TimeBasis.ACCESS:
            return self.access_time()
        return self.modification_time()


def minutes_since(timestamp_ns: int, now_ns: int | None = None) -> float:
    if now_ns is None:
        now_ns = time.time_ns()
    return (now_ns - timestamp_ns) / NANOSECONDS_PER_MINUTE


class StalenessThreshold(NamedTuple):
    """Files whose basis timestamp is more than ``minutes`` old are stale."""
    minutes: int
    basis: TimeBasis = TimeBasis.MODIFY

    def is_stale(self, times: FileTimes, now_ns: int | None = None) -> bool:
        """:raises TimestampUnsupported: when the basis timestamp is unavailable"""
        return minutes_since(times.select(self.basis), now_ns) > self.minutes


class AccessTimeTracking(StrEnum):
    ENABLED = 'enabled'
    RELATIME = 'relatime'
    DISABLED = 'disabled'
    UNKNOWN = 'unknown'


def probe_access_time_tracking(path: Path) -> AccessTimeTracking:
    """Inspect mount flags of the filesystem holding path.

    Only POSIX systems that expose ``ST_NOATIME``/``ST_RELATIME`` can answer;
    everything else reports UNKNOWN.
    """
    statvfs = getattr(os, 'statvfs', None)
    noatime = getattr(os, 'ST_NOATIME', 0)
    relatime = getattr(os, 'ST_RELATIME', 0)
    if statvfs is None or not (noatime or relatime):
        return AccessTimeTracking.UNKNOWN

    try:
        flags = statvfs(path).f_flag
    except OSError as e:
        logger.debug(f"Cannot read mount flags for {path}: {e}")
        return AccessTimeTracking.UNKNOWN

    if noatime and flags & noatime:
        return AccessTimeTracking.DISABLED
    if relatime and flags & relatime:
        return AccessTimeTracking.RELATIME
    return AccessTimeTracking.ENABLED
