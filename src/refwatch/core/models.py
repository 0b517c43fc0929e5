"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to git output or to any delivery channel.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Tuple

from refwatch.core.errors import InvalidCommitIdError, MalformedUpdateError

ZERO_ID = "0" * 40

_COMMIT_ID_RE = re.compile(r"^[0-9a-f]{40}$")


def validate_commit_id(value: str) -> str:
    """Return value unchanged if it is a canonical commit id, else raise."""

    if not _COMMIT_ID_RE.match(value):
        raise InvalidCommitIdError(value)
    return value


def is_zero(commit_id: str) -> bool:
    return commit_id == ZERO_ID


class RefKind(str, Enum):
    BRANCH = "branch"
    LIGHTWEIGHT_TAG = "lightweight-tag"
    ANNOTATED_TAG = "annotated-tag"

    @property
    def is_tag(self) -> bool:
        return self is not RefKind.BRANCH

    @property
    def label(self) -> str:
        """Word used in notices ("branch" or "tag")."""

        return "tag" if self.is_tag else "branch"


class UpdateAction(str, Enum):
    CREATED = "created"
    REMOVED = "removed"
    UPDATED = "updated"
    REWRITTEN = "rewritten"
    MODIFIED_NO_NEW_COMMITS = "modified"

    @property
    def verb(self) -> str:
        if self is UpdateAction.REMOVED:
            return "deleted"
        return self.value


class NoticeKind(str, Enum):
    REF = "ref"
    COMMIT = "commit"
    TAG = "tag"
    GLOBAL = "global"


class ChangeStatus(str, Enum):
    ADDED = "A"
    MODIFIED = "M"
    DELETED = "D"
    RENAMED = "R"
    COPIED = "C"
    TYPE_CHANGED = "T"


@dataclass(frozen=True)
class RefUpdate:
    """One (old, new, ref) triple as handed to a post-receive hook."""

    old_id: str
    new_id: str
    ref_name: str

    def __post_init__(self) -> None:
        validate_commit_id(self.old_id)
        validate_commit_id(self.new_id)
        if not self.ref_name:
            raise MalformedUpdateError("Empty ref name")

    @classmethod
    def from_line(cls, line: str) -> "RefUpdate":
        """Parse an "old new ref" line as written to a hook's stdin."""

        parts = line.split()
        if len(parts) != 3:
            raise MalformedUpdateError(f"Expected 'old new ref', got {line!r}")
        return cls(old_id=parts[0], new_id=parts[1], ref_name=parts[2])

    @property
    def is_create(self) -> bool:
        return is_zero(self.old_id)

    @property
    def is_delete(self) -> bool:
        return is_zero(self.new_id)


@dataclass(frozen=True)
class Person:
    """Identity line of a commit or tag (author, committer or tagger)."""

    name: str
    email: str
    timestamp: int
    offset: str

    @property
    def ident(self) -> str:
        return f"{self.name} <{self.email}>"

    def local_time(self) -> datetime:
        """Return the civil time in the person's own UTC offset."""

        sign = -1 if self.offset.startswith("-") else 1
        digits = self.offset.lstrip("+-")
        minutes = int(digits[:2]) * 60 + int(digits[2:4])
        tz = timezone(sign * timedelta(minutes=minutes))
        return datetime.fromtimestamp(self.timestamp, tz)


@dataclass(frozen=True)
class CommitInfo:
    """Metadata of one commit or annotated tag object."""

    object_id: str
    object_type: str
    message: Tuple[str, ...]
    encoding: str = "utf-8"
    author: Optional[Person] = None
    committer: Optional[Person] = None
    tagger: Optional[Person] = None
    parents: Tuple[str, ...] = ()
    tag_name: Optional[str] = None
    tagged_id: Optional[str] = None
    tagged_type: Optional[str] = None

    @property
    def subject(self) -> str:
        for line in self.message:
            if line.strip():
                return line.strip()
        return ""

    @property
    def is_merge(self) -> bool:
        return len(self.parents) > 1

    @property
    def is_tag(self) -> bool:
        return self.object_type == "tag"


@dataclass(frozen=True)
class FileChange:
    """One name-status entry of a commit."""

    status: ChangeStatus
    path: str
    old_path: Optional[str] = None


@dataclass(frozen=True)
class Notice:
    """A composed notification ready to be handed to delivery channels."""

    kind: NoticeKind
    subject: str
    lines: Tuple[str, ...]
    ref_name: str
    content_type: str = "text/plain"
    commit: Optional[CommitInfo] = None
    changes: Tuple[FileChange, ...] = field(default_factory=tuple)
    link: Optional[str] = None

    @property
    def body(self) -> str:
        return "\n".join(self.lines)
