"""Ports (interfaces) used by the core engine.

Ports define the minimal contracts for the version-control backend, the
dedup store and the delivery channels so that the core can be exercised
against in-memory fakes.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Protocol, Sequence

from refwatch.core.models import CommitInfo, FileChange, Notice


class BackendPort(Protocol):
    """Queries the engine needs from the version-control backend."""

    def resolve_range(
        self,
        excluded_refs: Sequence[str],
        include_from: str,
        exclude_to: Optional[str],
        no_merges: bool = False,
    ) -> List[str]:
        """Return ids reachable from include_from but not from exclude_to or
        excluded_refs, oldest first by committer date."""
        ...

    def object_type(self, ref_or_id: str) -> str:
        ...

    def object_info(self, object_id: str) -> CommitInfo:
        ...

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        ...

    def diff_stat(self, commit_id: str) -> str:
        ...

    def diff_patch(self, commit_id: str) -> str:
        ...

    def name_status(self, commit_id: str) -> List[FileChange]:
        ...

    def short_id(self, object_id: str) -> str:
        ...

    def all_commits(self) -> List[str]:
        """Every commit reachable from any ref, used to seed a new store."""
        ...

    def list_refs(self) -> List[str]:
        ...


class DedupStorePort(Protocol):
    """Persisted, append-only record of reported commit ids."""

    def exists(self) -> bool:
        ...

    def seed(self, commit_ids: Iterable[str]) -> None:
        """Create the store holding commit_ids."""
        ...

    def seen(self) -> set[str]:
        ...

    def claim(self, commit_ids: Sequence[str]) -> set[str]:
        """Record commit_ids and return the subset recorded before this call.

        The check and the append happen under one lock or transaction.
        """
        ...


class ChannelPort(Protocol):
    """A delivery channel. Failures raise DeliveryError."""

    name: str

    def send(self, notice: Notice) -> None:
        ...
