"""Line-oriented parsers for git plumbing output.

Ids, identities and name-status records are validated here, at the
boundary, so the rest of the engine only ever sees well-formed models.
"""

from __future__ import annotations

from typing import List, Optional

from refwatch.core.errors import MalformedObjectError
from refwatch.core.models import (
    ChangeStatus,
    CommitInfo,
    FileChange,
    Person,
    validate_commit_id,
)

DEFAULT_ENCODING = "utf-8"

SIGNATURE_MARKERS = (
    "-----BEGIN PGP SIGNATURE-----",
    "-----BEGIN PGP MESSAGE-----",
    "-----BEGIN SSH SIGNATURE-----",
    "-----BEGIN SIGNED MESSAGE-----",
)


def decode_text(raw: bytes, encoding: Optional[str]) -> str:
    """Decode raw object bytes with the declared encoding.

    Unknown codecs and undecodable bytes never abort a run: the payload is
    then treated as UTF-8 with replacement characters.
    """

    try:
        return raw.decode(encoding or DEFAULT_ENCODING)
    except (LookupError, UnicodeDecodeError):
        return raw.decode(DEFAULT_ENCODING, errors="replace")


def parse_id_list(output: str) -> List[str]:
    """Parse one commit id per line; blank lines are ignored."""

    return [validate_commit_id(line.strip()) for line in output.splitlines() if line.strip()]


def parse_person(value: str) -> Person:
    """Parse "Name <email> 1700000000 +0200"."""

    ident, closing, stamp = value.rpartition(">")
    if not closing:
        raise MalformedObjectError(f"Identity without email: {value!r}")
    name, _, email = ident.partition("<")
    fields = stamp.split()
    if len(fields) != 2:
        raise MalformedObjectError(f"Identity without timestamp: {value!r}")
    timestamp, offset = fields
    if not timestamp.isdigit() or len(offset) != 5 or offset[0] not in "+-" or not offset[1:].isdigit():
        raise MalformedObjectError(f"Bad identity timestamp: {value!r}")
    return Person(name=name.strip(), email=email.strip(), timestamp=int(timestamp), offset=offset)


def _message_lines(text: str) -> tuple[str, ...]:
    lines: List[str] = []
    for line in text.splitlines():
        if line.startswith(SIGNATURE_MARKERS):
            break
        lines.append(line.rstrip())
    while lines and not lines[-1]:
        lines.pop()
    return tuple(lines)


def parse_object(object_id: str, object_type: str, raw: bytes) -> CommitInfo:
    """Parse the raw body of a commit or tag object (``git cat-file``)."""

    validate_commit_id(object_id)
    if object_type not in ("commit", "tag"):
        raise MalformedObjectError(f"Cannot describe a {object_type} object: {object_id}")

    header_raw, _, message_raw = raw.partition(b"\n\n")

    # The encoding header governs every other field, so find it first.
    encoding = DEFAULT_ENCODING
    for raw_line in header_raw.split(b"\n"):
        if raw_line.startswith(b"encoding "):
            encoding = raw_line[len(b"encoding ") :].decode("ascii", errors="replace").strip()

    fields: dict[str, str] = {}
    parents: List[str] = []
    for line in decode_text(header_raw, encoding).split("\n"):
        # Continuation lines belong to multi-line headers (gpgsig, mergetag).
        if not line or line.startswith(" "):
            continue
        key, _, value = line.partition(" ")
        if key == "parent":
            parents.append(validate_commit_id(value))
        else:
            fields.setdefault(key, value)

    def person(key: str) -> Optional[Person]:
        value = fields.get(key)
        return parse_person(value) if value else None

    tagged_id = fields.get("object")
    if object_type == "tag" and tagged_id is None:
        raise MalformedObjectError(f"Tag object without target: {object_id}")

    return CommitInfo(
        object_id=object_id,
        object_type=object_type,
        message=_message_lines(decode_text(message_raw, encoding)),
        encoding=encoding,
        author=person("author"),
        committer=person("committer"),
        tagger=person("tagger"),
        parents=tuple(parents),
        tag_name=fields.get("tag"),
        tagged_id=validate_commit_id(tagged_id) if tagged_id else None,
        tagged_type=fields.get("type"),
    )


def parse_name_status(output: str) -> List[FileChange]:
    """Parse ``git diff-tree -z --name-status`` output.

    Records are NUL separated: a status token followed by one path, or two
    paths for renames and copies (the status carries a similarity score).
    """

    tokens = [token for token in output.split("\0") if token]
    changes: List[FileChange] = []
    index = 0
    while index < len(tokens):
        token = tokens[index].strip()
        try:
            status = ChangeStatus(token[:1])
        except ValueError:
            raise MalformedObjectError(f"Unknown name-status token: {token!r}") from None
        if status in (ChangeStatus.RENAMED, ChangeStatus.COPIED):
            if index + 2 >= len(tokens):
                raise MalformedObjectError(f"Truncated rename record: {token!r}")
            changes.append(FileChange(status, tokens[index + 2], old_path=tokens[index + 1]))
            index += 3
        else:
            if index + 1 >= len(tokens):
                raise MalformedObjectError(f"Truncated name-status record: {token!r}")
            changes.append(FileChange(status, tokens[index + 1]))
            index += 2
    return changes
