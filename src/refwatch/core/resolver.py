"""Commit range resolution with cross-invocation deduplication (core domain)."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from refwatch.core.models import RefUpdate, is_zero, validate_commit_id
from refwatch.core.ports import BackendPort, DedupStorePort
from refwatch.core.refs import matches_any

LOGGER = logging.getLogger(__name__)


def prime_store(store: DedupStorePort, backend: BackendPort) -> bool:
    """Create and seed the store on first use; return True if it was seeded.

    Seeding records the whole known history, so a freshly configured
    repository only notifies about commits pushed afterwards.
    """

    if store.exists():
        return False
    history = [validate_commit_id(commit_id) for commit_id in backend.all_commits()]
    store.seed(history)
    LOGGER.info("Seeded dedup store with %s known commits", len(history))
    return True


class CommitRangeResolver:
    """Computes the commits an update introduces, oldest first."""

    def __init__(
        self,
        backend: BackendPort,
        store: Optional[DedupStorePort],
        exclude_patterns: Sequence[str] = (),
        ignore_merges: bool = False,
    ) -> None:
        self._backend = backend
        self._store = store
        self._exclude_patterns = tuple(exclude_patterns)
        self._ignore_merges = ignore_merges

    def excluded_refs(self, ref_name: str) -> List[str]:
        """Expand exclude patterns to concrete refs, never the updated ref."""

        if not self._exclude_patterns:
            return []
        return [
            ref
            for ref in self._backend.list_refs()
            if ref != ref_name and matches_any(ref, self._exclude_patterns)
        ]

    def resolve(self, update: RefUpdate) -> List[str]:
        """Return new commit ids for the update, minus already-reported ones.

        The full raw range is recorded in the store before anything is
        delivered. A crash after this point skips those commits rather than
        reporting them twice.
        """

        exclude_to = None if is_zero(update.old_id) else update.old_id
        raw = self._backend.resolve_range(
            self.excluded_refs(update.ref_name),
            update.new_id,
            exclude_to,
            no_merges=self._ignore_merges,
        )
        raw = [validate_commit_id(commit_id) for commit_id in raw]

        if self._store is None:
            return raw

        already_seen = self._store.claim(raw)
        fresh = [commit_id for commit_id in raw if commit_id not in already_seen]
        if already_seen:
            LOGGER.info(
                "Dedup skip for %s: %s of %s commits already reported",
                update.ref_name,
                len(raw) - len(fresh),
                len(raw),
            )
        return fresh
