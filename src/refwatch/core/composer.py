"""Notice composition (core domain).

Centralized composition keeps notices consistent across channels: every
channel receives the same subject and text lines and only decides how to
render or wrap them.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from refwatch.core.classifier import Classification
from refwatch.core.config import DIFF_SIZE_UNLIMITED, LinkConfig, NotifierConfig
from refwatch.core.models import (
    ChangeStatus,
    CommitInfo,
    FileChange,
    Notice,
    NoticeKind,
    Person,
    RefUpdate,
    is_zero,
)
from refwatch.core.ports import BackendPort
from refwatch.core.refs import short_ref_name

LOGGER = logging.getLogger(__name__)

SUBJECT_WIDTH = 50
ELLIPSIS = "..."
SEPARATOR = "---"

# A row is either a (key, value) pair or a line passed through as is.
# Pairs with a None value are omitted.
Row = Union[Tuple[str, Optional[str]], str]


def align_table(rows: Iterable[Row]) -> List[str]:
    """Render rows as "Key:   value" lines padded to the longest kept key."""

    kept = [row for row in rows if isinstance(row, str) or row[1] is not None]
    width = max((len(row[0]) for row in kept if not isinstance(row, str)), default=0)

    lines: List[str] = []
    for row in kept:
        if isinstance(row, str):
            lines.append(row)
            continue
        key, value = row
        lines.append(f"{key + ':':<{width + 1}} {value}")
    return lines


def shorten(text: str, width: int = SUBJECT_WIDTH) -> str:
    """Truncate at the last word boundary within width, marking the cut."""

    text = text.strip()
    if len(text) <= width:
        return text
    cut = text[:width]
    # A word ending exactly at the width is kept whole.
    if not text[width].isspace():
        space = cut.rfind(" ")
        if space > 0:
            cut = cut[:space]
    return cut.rstrip() + ELLIPSIS


def format_date(person: Person) -> str:
    """Civil time in the person's own offset, followed by that offset."""

    return f"{person.local_time().strftime('%Y-%m-%d %H:%M:%S')} {person.offset}"


def format_change(change: FileChange) -> str:
    if change.status in (ChangeStatus.RENAMED, ChangeStatus.COPIED) and change.old_path:
        return f"{change.status.value}  {change.old_path} -> {change.path}"
    return f"{change.status.value}  {change.path}"


class BrowseLinks:
    """Builds browse URLs from a template containing ``{rev}``."""

    def __init__(self, config: LinkConfig, backend: BackendPort) -> None:
        self._config = config
        self._backend = backend

    def link(self, object_id: str) -> Optional[str]:
        if not self._config.template or is_zero(object_id):
            return None
        if self._config.sourceforge:
            # Allura wants the full id and a trailing slash.
            rev = f"{object_id}/"
        elif self._config.abbreviate:
            rev = self._backend.short_id(object_id)
        else:
            rev = object_id
        return self._config.template.replace("{rev}", rev)


class NoticeComposer:
    """Turns classified updates and resolved commits into notices."""

    def __init__(self, backend: BackendPort, config: NotifierConfig) -> None:
        self._backend = backend
        self._config = config
        self._links = BrowseLinks(config.links, backend)

    def ref_notice(self, update: RefUpdate, classification: Classification) -> Notice:
        """Small table plus a one-line summary of what happened to the ref."""

        name = short_ref_name(update.ref_name)
        label = classification.kind.label
        verb = classification.action.verb
        link = None if update.is_delete else self._links.link(update.new_id)

        lines = align_table(
            [
                ("Repository", self._config.repo_name),
                (label.capitalize(), name),
                ("Old", None if update.is_create else update.old_id),
                ("New", None if update.is_delete else update.new_id),
                ("Link", link),
                "",
                f"The {name} {label} has been {verb}.",
            ]
        )
        return Notice(
            kind=NoticeKind.REF,
            subject=f"{label.capitalize()} {name} {verb}",
            lines=tuple(lines),
            ref_name=update.ref_name,
        )

    def commit_notice(self, update: RefUpdate, classification: Classification, commit_id: str) -> Notice:
        info = self._backend.object_info(commit_id)
        if info.is_tag:
            return self._tag_notice(update, info)

        notices = self._config.notices
        author = info.author
        committer = info.committer
        show_committer = (
            notices.show_committer
            and committer is not None
            and author is not None
            and committer.ident != author.ident
        )
        link = self._links.link(commit_id)
        changes = tuple(self._backend.name_status(commit_id))

        rows: List[Row] = [
            ("Repository", self._config.repo_name),
            (classification.kind.label.capitalize(), short_ref_name(update.ref_name)),
            ("Commit", commit_id),
            ("Author", author.ident if author else None),
            ("Committer", committer.ident if show_committer and committer else None),
            ("Date", format_date(author) if author else None),
            ("Link", link),
            "",
        ]
        rows.extend(info.message)
        rows.extend(["", SEPARATOR, ""])
        rows.extend(format_change(change) for change in changes)

        stat = self._backend.diff_stat(commit_id).rstrip()
        if stat:
            rows.extend(["", *stat.splitlines()])
        rows.extend(self._diff_section(commit_id, link))

        prefix = "" if notices.hide_author or author is None else f"{author.name}: "
        return Notice(
            kind=NoticeKind.COMMIT,
            subject=prefix + shorten(info.subject),
            lines=tuple(align_table(rows)),
            ref_name=update.ref_name,
            commit=info,
            changes=changes,
            link=link,
        )

    def tag_notice(self, update: RefUpdate) -> Notice:
        """Single notice for an annotated tag; never decomposed into commits."""

        return self._tag_notice(update, self._backend.object_info(update.new_id))

    def _tag_notice(self, update: RefUpdate, info: CommitInfo) -> Notice:
        tag_name = info.tag_name or short_ref_name(update.ref_name)
        tagger = info.tagger
        link = self._links.link(info.tagged_id) if info.tagged_id else None
        rows: List[Row] = [
            ("Repository", self._config.repo_name),
            ("Tag", tag_name),
            ("Object", info.tagged_id),
            ("Tagger", tagger.ident if tagger else None),
            ("Date", format_date(tagger) if tagger else None),
            ("Link", link),
            "",
        ]
        rows.extend(info.message)
        return Notice(
            kind=NoticeKind.TAG,
            subject=f"Tag {tag_name}: {shorten(info.subject)}",
            lines=tuple(align_table(rows)),
            ref_name=update.ref_name,
            commit=info,
            link=link,
        )

    def global_notice(
        self,
        update: RefUpdate,
        classification: Classification,
        commit_ids: Sequence[str],
    ) -> Notice:
        """One flattened log line per commit for a collapsed range."""

        name = short_ref_name(update.ref_name)
        label = classification.kind.label
        rows: List[Row] = [
            ("Repository", self._config.repo_name),
            (label.capitalize(), name),
            ("Old", None if update.is_create else update.old_id),
            ("New", update.new_id),
            ("Commits", str(len(commit_ids))),
            "",
        ]
        for commit_id in commit_ids:
            info = self._backend.object_info(commit_id)
            where = self._links.link(commit_id) or self._backend.short_id(commit_id)
            who = f"{info.author.name}: " if info.author else ""
            rows.append(f"{where}  {who}{info.subject}")

        return Notice(
            kind=NoticeKind.GLOBAL,
            subject=f"{label.capitalize()} {name}: {len(commit_ids)} new commits",
            lines=tuple(align_table(rows)),
            ref_name=update.ref_name,
        )

    def _diff_section(self, commit_id: str, link: Optional[str]) -> List[str]:
        patch = self._backend.diff_patch(commit_id).rstrip("\n")
        if not patch:
            return []
        limit = self._config.notices.max_diff_size
        size = len(patch.encode("utf-8"))
        if limit == DIFF_SIZE_UNLIMITED or size < limit:
            return ["", *patch.split("\n")]

        LOGGER.debug("Diff of %s suppressed (%s bytes, limit %s)", commit_id, size, limit)
        note = f"Diff suppressed because of its size ({size} bytes)."
        if link:
            note = f"{note} See {link}"
        return ["", note]
