from __future__ import annotations

from refwatch.adapters.notification_formatting import format_subject
from refwatch.core.models import Notice, NoticeKind


def _notice(subject: str = "Alice Example: Fix <b> handling") -> Notice:
    return Notice(kind=NoticeKind.COMMIT, subject=subject, lines=("x",), ref_name="refs/heads/main")


def test_subject_prefix_is_bracketed() -> None:
    assert format_subject(_notice(), "widgets") == "[widgets] Alice Example: Fix <b> handling"


def test_missing_or_empty_prefix_keeps_subject() -> None:
    notice = _notice()
    assert format_subject(notice, None) == notice.subject
    assert format_subject(notice, "") == notice.subject
