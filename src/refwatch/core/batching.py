"""Batching policy: one notice per commit, or one collapsed notice."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

from refwatch.core.models import UpdateAction


@dataclass(frozen=True)
class BatchPlan:
    """Which notices to compose for one resolved range."""

    individual: Tuple[str, ...] = ()
    collapsed: Tuple[str, ...] = ()
    bare_modified: bool = False


def plan_batch(commits: Sequence[str], max_commit_notices: int, action: UpdateAction) -> BatchPlan:
    """Decide how a resolved range is reported.

    More than max_commit_notices commits collapse into one global notice; a
    non-positive limit collapses every non-empty range.
    """

    if not commits:
        return BatchPlan(
            bare_modified=action in (UpdateAction.UPDATED, UpdateAction.MODIFIED_NO_NEW_COMMITS)
        )
    if max_commit_notices <= 0 or len(commits) > max_commit_notices:
        return BatchPlan(collapsed=tuple(commits))
    return BatchPlan(individual=tuple(commits))
