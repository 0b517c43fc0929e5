"""Ref transition classification (core domain)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from refwatch.core.errors import InvalidRefError
from refwatch.core.models import RefKind, RefUpdate, UpdateAction
from refwatch.core.ports import BackendPort
from refwatch.core.refs import split_ref_name


@dataclass(frozen=True)
class Classification:
    """Kind of the ref and the action the update performed on it."""

    kind: RefKind
    action: UpdateAction

    @property
    def wants_commits(self) -> bool:
        """Whether the update is decomposed into individual commits.

        Branches always are, except on removal. Lightweight tags only on
        creation. Annotated tags never are.
        """

        if self.action is UpdateAction.REMOVED:
            return False
        if self.kind is RefKind.BRANCH:
            return True
        return self.kind is RefKind.LIGHTWEIGHT_TAG and self.action is UpdateAction.CREATED


def ref_kind(update: RefUpdate, backend: BackendPort) -> RefKind:
    """Derive the kind from the namespace and, for tags, the object type."""

    namespace, _ = split_ref_name(update.ref_name)
    if namespace is None:
        raise InvalidRefError(update.ref_name)
    if namespace == "heads":
        return RefKind.BRANCH
    target = update.old_id if update.is_delete else update.new_id
    if backend.object_type(target) == "tag":
        return RefKind.ANNOTATED_TAG
    return RefKind.LIGHTWEIGHT_TAG


def classify(update: RefUpdate, backend: BackendPort) -> Classification:
    """Apply the transition rules in order; no side effects."""

    kind = ref_kind(update, backend)

    if update.is_delete:
        return Classification(kind, UpdateAction.REMOVED)
    if update.is_create:
        return Classification(kind, UpdateAction.CREATED)
    if kind.is_tag:
        # Tags are never diffed commit by commit; only old/new are reported.
        return Classification(kind, UpdateAction.UPDATED)
    if not backend.is_ancestor(update.old_id, update.new_id):
        return Classification(kind, UpdateAction.REWRITTEN)
    return Classification(kind, UpdateAction.UPDATED)


def settle_action(classification: Classification, commits: Sequence[str]) -> Classification:
    """Turn an Updated branch without new commits into ModifiedNoNewCommits."""

    if classification.action is UpdateAction.UPDATED and not classification.kind.is_tag and not commits:
        return Classification(classification.kind, UpdateAction.MODIFIED_NO_NEW_COMMITS)
    return classification
