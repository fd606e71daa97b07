import functools
import logging
import os
import stat
from pathlib import Path
from typing import Callable, Generator, Iterator, NamedTuple

from .timestamps import FileTimes

logger = logging.getLogger(__name__)


class WalkAborted(Exception):
    """Traversal of the source tree could not continue."""

    def __init__(self, path: Path, reason: str):
        super().__init__(path, reason)
        self.path = path
        self.reason = reason

    def __str__(self):
        return f"cannot traverse {self.path}: {self.reason}"


class FileContext:
    """A file or directory met during traversal.

    ``relative_path`` is built from the chain of parents, so the root context
    (which has no name) contributes nothing to it.
    """
    def __init__(self, parent, name: str | None, path: Path | None = None, st: os.stat_result | None = None):
        self._parent: FileContext | None = parent
        self._name: str | None = name
        self._stat: os.stat_result | None = st
        self._path: Path | None = path

    @property
    def name(self) -> str | None:
        return self._name

    @property
    def parent(self) -> 'FileContext':
        if self._parent is None:
            raise LookupError("no parent")

        return self._parent

    @property
    def stat(self) -> os.stat_result:
        if self._stat is None:
            if self._path is None:
                raise LookupError("stat not available and path not provided")
            self._stat = self._path.stat(follow_symlinks=False)
        return self._stat

    @functools.cached_property
    def relative_path(self) -> Path | None:
        if self._name is None:
            return None

        parent_path = None if self._parent is None else self._parent.relative_path
        if parent_path is None:
            return Path(self._name)

        return parent_path / self._name

    def is_file(self):
        return stat.S_ISREG(self.stat.st_mode)

    def is_dir(self):
        return stat.S_ISDIR(self.stat.st_mode)

    def is_symlink(self):
        return stat.S_ISLNK(self.stat.st_mode)


def walk(path: Path, parent: FileContext) -> Generator[tuple[Path, FileContext], None | bool, None]:
    """Recursively traverse a directory, yielding every entry before descending.

    Sending ``False`` back for a directory prunes it. Any OSError raised while
    listing a directory or reading an entry's metadata becomes WalkAborted.
    """
    try:
        children = sorted(path.iterdir())
    except OSError as e:
        raise WalkAborted(path, e.strerror or str(e)) from e

    for child in children:
        context = FileContext(parent, child.name, path=child)
        try:
            is_dir = context.is_dir()
        except OSError as e:
            raise WalkAborted(child, e.strerror or str(e)) from e

        descend = yield child, context
        if descend is False:
            continue

        if is_dir:
            yield from walk(child, context)


def follow_symlink(file_path: Path, context: FileContext) -> FileContext | None:
    """Substitute a symlink with a context carrying its target's metadata.

    Returns None for anything that is not a symlink, and for links whose
    target cannot be reached (broken links, loops). Symlinked directories are
    never descended into because the walker decides that from the link itself.
    """
    if not context.is_symlink():
        return None

    try:
        target_stat = file_path.stat()
    except OSError as e:
        logger.debug(f"Cannot follow symlink {file_path}: {e}")
        return None

    return FileContext(context.parent, context.name, file_path, target_stat)


class WalkPolicy(NamedTuple):
    """Policy controlling filesystem traversal behavior.

    Attributes:
        excluded_paths: relative paths (files or directories) to leave out of the walk
        should_follow_symlink: takes (absolute_path, file_context) and returns a substitute
                               FileContext if the symlink should be followed, or None
    """
    excluded_paths: frozenset[Path] = frozenset()
    should_follow_symlink: Callable[[Path, FileContext], FileContext | None] = follow_symlink


def walk_with_policy(path: Path, policy: WalkPolicy) -> Iterator[tuple[Path, FileContext]]:
    """Walk the tree under path, skipping everything in policy.excluded_paths.

    Symlinks the policy follows are yielded with the substitute context.
    """
    gen = walk(path, FileContext(None, None, path))
    pending = None

    try:
        while True:
            file_path, file_context = gen.send(pending)
            pending = None

            if file_context.relative_path in policy.excluded_paths:
                logger.debug(f"Excluded from walk: {file_path}")
                pending = False
                continue

            substitute = policy.should_follow_symlink(file_path, file_context)
            if substitute is not None:
                file_context = substitute

            yield file_path, file_context
    except StopIteration:
        pass


class ComparisonTask(NamedTuple):
    source_path: Path
    backup_path: Path
    relative_path: Path
    source_times: FileTimes | None = None  # Observed during the walk, before any read


def excluded_relative_paths(source_root: Path, candidates: list[Path]) -> frozenset[Path]:
    """Relative form of every candidate located inside source_root."""
    root = Path(os.path.abspath(source_root))
    excluded = set()
    for candidate in candidates:
        try:
            relative = Path(os.path.abspath(candidate)).relative_to(root)
        except ValueError:
            continue
        if relative != Path('.'):
            excluded.add(relative)
    return frozenset(excluded)


def iter_comparison_tasks(source_root: Path, backup_root: Path,
                          policy: WalkPolicy | None = None) -> Iterator[ComparisonTask]:
    """Lazily pair every regular file under source_root with its backup path.

    Directories (including symlinked ones) produce no task. Symlinks to regular
    files are followed; a symlink whose target cannot be reached still produces
    a task without timestamps, so that hashing reports it. Special files are
    skipped.

    Raises:
        WalkAborted: a directory or entry under source_root cannot be read
    """
    if policy is None:
        policy = WalkPolicy()

    for file_path, context in walk_with_policy(source_root, policy):
        if context.is_dir():
            continue

        relative_path = context.relative_path
        assert relative_path is not None, "File context must have a relative path"

        if context.is_file():
            yield ComparisonTask(file_path, backup_root / relative_path, relative_path,
                                 FileTimes.from_stat(context.stat))
        elif context.is_symlink():
            yield ComparisonTask(file_path, backup_root / relative_path, relative_path)
        else:
            logger.debug(f"Skipping special file: {file_path}")
