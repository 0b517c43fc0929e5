"""Core configuration dataclasses.

We keep config parsing outside the core (see ``refwatch.settings``), but
these dataclasses define the shape the core expects so adapters and the app
layer can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

DIFF_SIZE_UNLIMITED = -1
DEFAULT_MAX_DIFF_SIZE = 50 * 1024
DEFAULT_MAX_COMMIT_NOTICES = 100


@dataclass(frozen=True)
class StoreConfig:
    """Dedup store location. No path means deduplication is off."""

    path: Optional[str] = None
    backend: str = "file"
    mode: int = 0o664


@dataclass(frozen=True)
class LinkConfig:
    """Browse-URL settings; the template contains a ``{rev}`` placeholder."""

    template: Optional[str] = None
    abbreviate: bool = False
    sourceforge: bool = False


@dataclass(frozen=True)
class NoticeConfig:
    """Composition and batching settings."""

    max_diff_size: int = DEFAULT_MAX_DIFF_SIZE
    max_commit_notices: int = DEFAULT_MAX_COMMIT_NOTICES
    hide_author: bool = False
    show_committer: bool = True


@dataclass(frozen=True)
class FilterConfig:
    """Which refs and commits are reported at all."""

    include_refs: Tuple[str, ...] = ()
    exclude_refs: Tuple[str, ...] = ()
    ignore_merges: bool = False


@dataclass(frozen=True)
class DeliveryConfig:
    """Delivery channel settings consumed by the adapters."""

    recipients: Tuple[str, ...] = ()
    sender: Optional[str] = None
    subject_prefix: Optional[str] = None
    sendmail: Tuple[str, ...] = ("/usr/sbin/sendmail", "-t", "-oi")
    smtp_host: Optional[str] = None
    smtp_port: int = 25
    smtp_user: Optional[str] = None
    cia_address: Optional[str] = None
    cia_project: Optional[str] = None


@dataclass(frozen=True)
class NotifierConfig:
    """Everything the dispatch loop needs, built once at startup."""

    repo_name: str
    store: StoreConfig = field(default_factory=StoreConfig)
    links: LinkConfig = field(default_factory=LinkConfig)
    notices: NoticeConfig = field(default_factory=NoticeConfig)
    filters: FilterConfig = field(default_factory=FilterConfig)
    delivery: DeliveryConfig = field(default_factory=DeliveryConfig)
