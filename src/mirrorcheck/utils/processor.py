import asyncio
import hashlib
import logging
import multiprocessing
import os
from multiprocessing.pool import Pool
import pathlib
from typing import Awaitable

import mmh3

from .profiling import profile_worker
from .timestamps import FileTimes

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

HASH_ALGORITHMS = ('md5', 'sha256', 'murmur3')
DEFAULT_HASH_ALGORITHM = 'md5'


class FileUnreadable(Exception):
    """Raised when a file cannot be opened or read for hashing."""

    def __init__(self, path: str, reason: str):
        super().__init__(path, reason)
        self.path = path
        self.reason = reason

    def __str__(self):
        return f"{self.path}: {self.reason}"


def _murmur3_digest(f, chunk_size: int) -> bytes:
    hasher = mmh3.mmh3_x64_128()
    for chunk in iter(lambda: f.read(chunk_size), b''):
        hasher.update(chunk)
    return hasher.digest()


@profile_worker
def compute_digest_for_path(path: pathlib.Path, algorithm: str, chunk_size: int = CHUNK_SIZE) -> str:
    try:
        with open(path, "rb") as f:
            if algorithm == 'murmur3':
                return _murmur3_digest(f, chunk_size).hex()
            # noinspection PyTypeChecker
            return hashlib.file_digest(f, algorithm).hexdigest()
    except OSError as e:
        raise FileUnreadable(str(path), e.strerror or str(e)) from None


@profile_worker
def read_file_times(path: pathlib.Path) -> FileTimes:
    st = os.stat(path)
    return FileTimes.from_stat(st)


class Processor:
    """Pool of worker processes for the blocking parts of a comparison.

    Hashing and stat calls run in the pool; callers await the results from the
    event loop. The pool size is the upper bound on concurrent file I/O.
    """

    def __init__(self, concurrency: int | None = None):
        if concurrency is None:
            concurrency = multiprocessing.cpu_count()
        if concurrency < 1:
            raise ValueError(f"concurrency must be positive, got {concurrency}")

        self._concurrency = concurrency
        self._pool: Pool = Pool(self._concurrency)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        self._pool.close()
        self._pool.join()

    @property
    def concurrency(self):
        return self._concurrency

    def digest(self, path: pathlib.Path, algorithm: str = DEFAULT_HASH_ALGORITHM) -> Awaitable[str]:
        """Hash a file in the pool.

        :return: lowercase hex digest
        :raises FileUnreadable: when the file cannot be opened or read"""
        if algorithm not in HASH_ALGORITHMS:
            raise ValueError(f"Unknown hash algorithm: {algorithm}")

        logger.debug(f"Starting {algorithm} computation for: {path}")

        async def log_and_compute():
            result = await self._evaluate(compute_digest_for_path, path, algorithm)
            logger.debug(f"Completed {algorithm} computation for: {path}")
            return result

        return log_and_compute()

    def file_times(self, path: pathlib.Path) -> Awaitable[FileTimes]:
        return self._evaluate(read_file_times, path)

    def _evaluate(self, func, *args):
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        self._pool.apply_async(func, args=args,
                               callback=lambda v: loop.call_soon_threadsafe(_set_result, future, v),
                               error_callback=lambda e: loop.call_soon_threadsafe(_set_exception, future, e))

        return future


# A future cancelled by its task group may still receive a late result from the pool
def _set_result(future: asyncio.Future, value):
    if not future.done():
        future.set_result(value)


def _set_exception(future: asyncio.Future, exc: BaseException):
    if not future.done():
        future.set_exception(exc)
