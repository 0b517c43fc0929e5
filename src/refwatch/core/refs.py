"""Helpers for working with git ref names."""

from __future__ import annotations

from fnmatch import fnmatchcase
from typing import Iterable, Optional, Tuple

HEADS_PREFIX = "refs/heads/"
TAGS_PREFIX = "refs/tags/"
REMOTES_PREFIX = "refs/remotes/"


def split_ref_name(ref_name: str) -> Tuple[Optional[str], str]:
    """Split a ref into ("heads" | "tags" | None, short name)."""

    for namespace, prefix in (("heads", HEADS_PREFIX), ("tags", TAGS_PREFIX)):
        if ref_name.startswith(prefix) and len(ref_name) > len(prefix):
            return namespace, ref_name[len(prefix) :]
    return None, ref_name


def short_ref_name(ref_name: str) -> str:
    return split_ref_name(ref_name)[1]


def is_remote_tracking(ref_name: str) -> bool:
    return ref_name.startswith(REMOTES_PREFIX)


def ref_name_variants(ref_name: str) -> set[str]:
    """Return the spellings a user may use for a ref in config lists.

    "refs/heads/main" may be written as "main" or "heads/main".
    """

    namespace, short = split_ref_name(ref_name)
    if namespace is None:
        return {ref_name}
    return {ref_name, short, f"{namespace}/{short}"}


def matches_any(ref_name: str, patterns: Iterable[str]) -> bool:
    """Return True when any glob pattern matches one of the ref's spellings."""

    variants = ref_name_variants(ref_name)
    for pattern in patterns:
        if any(fnmatchcase(variant, pattern) for variant in variants):
            return True
    return False
