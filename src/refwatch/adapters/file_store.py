"""Append-only text file dedup store.

One commit id per line. Readers take a shared ``flock``; ``claim`` holds one
exclusive lock across the read and the append, so two hooks racing on the
same push cannot both see a commit as new.
"""

from __future__ import annotations

import fcntl
import logging
import os
from contextlib import contextmanager
from typing import IO, Iterable, Iterator, Sequence

from refwatch.core.errors import InvalidCommitIdError, StoreError
from refwatch.core.models import validate_commit_id

LOGGER = logging.getLogger(__name__)


class FileDedupStore:
    """Dedup store backed by a flat file, compatible with shell tooling."""

    def __init__(self, path: str, mode: int = 0o664) -> None:
        self._path = path
        self._mode = mode

    @property
    def path(self) -> str:
        return self._path

    def exists(self) -> bool:
        return os.path.exists(self._path)

    @contextmanager
    def _locked(self, exclusive: bool) -> Iterator[IO[str]]:
        """Open the store and hold an advisory lock for the block's duration."""

        created = not self.exists()
        flags = os.O_RDWR | os.O_CREAT if exclusive else os.O_RDONLY
        try:
            fd = os.open(self._path, flags, self._mode)
        except OSError as exc:
            raise StoreError(f"Cannot open dedup store {self._path}: {exc}") from exc

        with os.fdopen(fd, "r+" if exclusive else "r", encoding="ascii") as handle:
            try:
                if created and exclusive:
                    # os.open applies the umask; enforce the configured mode.
                    os.chmod(self._path, self._mode)
                fcntl.flock(handle.fileno(), fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)
            except OSError as exc:
                raise StoreError(f"Cannot lock dedup store {self._path}: {exc}") from exc
            try:
                yield handle
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)

    def _read(self, handle: IO[str]) -> set[str]:
        seen: set[str] = set()
        try:
            handle.seek(0)
            for number, line in enumerate(handle, start=1):
                value = line.strip()
                if not value:
                    continue
                try:
                    seen.add(validate_commit_id(value))
                except InvalidCommitIdError as exc:
                    raise StoreError(f"Corrupt dedup store {self._path}, line {number}: {exc}") from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise StoreError(f"Cannot read dedup store {self._path}: {exc}") from exc
        return seen

    def _append(self, handle: IO[str], commit_ids: Iterable[str]) -> None:
        try:
            handle.seek(0, os.SEEK_END)
            for commit_id in commit_ids:
                handle.write(f"{commit_id}\n")
            handle.flush()
            os.fsync(handle.fileno())
        except OSError as exc:
            raise StoreError(f"Cannot write dedup store {self._path}: {exc}") from exc

    def seed(self, commit_ids: Iterable[str]) -> None:
        """Create the store with commit_ids, tolerating a concurrent seeder."""

        with self._locked(exclusive=True) as handle:
            existing = self._read(handle)
            self._append(handle, _unique(commit_ids, existing))

    def seen(self) -> set[str]:
        if not self.exists():
            return set()
        with self._locked(exclusive=False) as handle:
            return self._read(handle)

    def claim(self, commit_ids: Sequence[str]) -> set[str]:
        """Record commit_ids; return those that were already recorded."""

        with self._locked(exclusive=True) as handle:
            existing = self._read(handle)
            self._append(handle, _unique(commit_ids, existing))
        LOGGER.debug("Recorded %s commit ids in %s", len(commit_ids), self._path)
        return existing.intersection(commit_ids)


def _unique(commit_ids: Iterable[str], existing: set[str]) -> list[str]:
    """Ids not yet stored, in order, without repeats."""

    fresh: list[str] = []
    pending: set[str] = set()
    for commit_id in commit_ids:
        if commit_id in existing or commit_id in pending:
            continue
        pending.add(commit_id)
        fresh.append(commit_id)
    return fresh
