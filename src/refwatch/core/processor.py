"""Core ref-update dispatch loop.

This module is backend-agnostic. It only relies on ports for git queries,
the dedup store and delivery channels, enabling tests against in-memory
fakes and other frontends without changes here.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

from refwatch.core.batching import plan_batch
from refwatch.core.classifier import classify, settle_action
from refwatch.core.composer import NoticeComposer
from refwatch.core.config import NotifierConfig
from refwatch.core.errors import DeliveryError
from refwatch.core.models import Notice, RefKind, RefUpdate, UpdateAction
from refwatch.core.ports import BackendPort, ChannelPort, DedupStorePort
from refwatch.core.refs import is_remote_tracking, matches_any
from refwatch.core.resolver import CommitRangeResolver, prime_store

LOGGER = logging.getLogger(__name__)

_REF_NOTICE_ACTIONS = (UpdateAction.CREATED, UpdateAction.REMOVED, UpdateAction.REWRITTEN)


class UpdateProcessor:
    """Orchestrates classification, resolution, batching and delivery."""

    def __init__(
        self,
        backend: BackendPort,
        store: Optional[DedupStorePort],
        channels: Sequence[ChannelPort],
        config: NotifierConfig,
        update_only: bool = False,
    ) -> None:
        self._backend = backend
        self._store = store
        self._channels = list(channels)
        self._config = config
        self._update_only = update_only
        self._resolver = CommitRangeResolver(
            backend,
            store,
            exclude_patterns=config.filters.exclude_refs,
            ignore_merges=config.filters.ignore_merges,
        )
        self._composer = NoticeComposer(backend, config)
        self._store_ready = False

    def is_tracked(self, ref_name: str) -> bool:
        """Remote-tracking, non-included and excluded refs are skipped."""

        filters = self._config.filters
        if is_remote_tracking(ref_name):
            return False
        if filters.include_refs and not matches_any(ref_name, filters.include_refs):
            return False
        if filters.exclude_refs and matches_any(ref_name, filters.exclude_refs):
            return False
        return True

    def handle(self, update: RefUpdate) -> List[Notice]:
        """Process one ref update and return the notices handed to channels."""

        if not self.is_tracked(update.ref_name):
            LOGGER.debug("Skipping untracked ref %s", update.ref_name)
            return []

        self._ensure_store()
        classification = classify(update, self._backend)
        LOGGER.info(
            "%s %s: %s",
            classification.kind.label,
            update.ref_name,
            classification.action.value,
        )

        if self._update_only:
            if classification.wants_commits:
                self._resolver.resolve(update)
            return []

        notices: List[Notice] = []
        if classification.kind is RefKind.ANNOTATED_TAG and classification.action is UpdateAction.CREATED:
            notices.append(self._composer.tag_notice(update))
        else:
            commits = self._resolver.resolve(update) if classification.wants_commits else []
            classification = settle_action(classification, commits)
            plan = plan_batch(commits, self._config.notices.max_commit_notices, classification.action)

            # Ref-level and commit-level notices are independent; both go out.
            if plan.bare_modified or classification.action in _REF_NOTICE_ACTIONS:
                notices.append(self._composer.ref_notice(update, classification))
            for commit_id in plan.individual:
                notices.append(self._composer.commit_notice(update, classification, commit_id))
            if plan.collapsed:
                notices.append(self._composer.global_notice(update, classification, plan.collapsed))

        for notice in notices:
            self._deliver(notice)
        return notices

    def handle_all(self, updates: Iterable[RefUpdate]) -> int:
        """Process updates in order and return the number of notices.

        The first fatal error propagates and stops the rest of the batch.
        """

        count = 0
        for update in updates:
            count += len(self.handle(update))
        return count

    def _ensure_store(self) -> None:
        if self._store_ready or self._store is None:
            return
        prime_store(self._store, self._backend)
        self._store_ready = True

    def _deliver(self, notice: Notice) -> None:
        for channel in self._channels:
            try:
                channel.send(notice)
            except DeliveryError as exc:
                LOGGER.warning("Delivery via %s failed for '%s': %s", channel.name, notice.subject, exc)
            else:
                LOGGER.debug("Delivered '%s' via %s", notice.subject, channel.name)
