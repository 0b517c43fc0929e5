"""XML change-aggregation channel (CIA-style).

Only commit notices are relayed: the aggregator tracks commits, not ref
bookkeeping. The payload is mailed to a fixed aggregator address.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import Callable, Optional

from refwatch import __version__
from refwatch.adapters.mail_channel import MailTransport
from refwatch.core.models import ChangeStatus, Notice, NoticeKind
from refwatch.core.refs import short_ref_name

LOGGER = logging.getLogger(__name__)

CONTENT_TYPE = "text/xml"
SUBJECT = "DeliverXML"

_ACTIONS = {
    ChangeStatus.ADDED: "add",
    ChangeStatus.COPIED: "add",
    ChangeStatus.DELETED: "remove",
    ChangeStatus.MODIFIED: "modify",
    ChangeStatus.TYPE_CHANGED: "modify",
    ChangeStatus.RENAMED: "rename",
}


def _text(parent: ET.Element, tag: str, text: str) -> ET.Element:
    element = ET.SubElement(parent, tag)
    element.text = text
    return element


def build_payload(notice: Notice, project: str, revision: Optional[str] = None) -> str:
    """Serialize one commit notice as an aggregator message document."""

    commit = notice.commit
    if commit is None:
        raise ValueError("Aggregator payloads need a commit notice")

    root = ET.Element("message")
    generator = ET.SubElement(root, "generator")
    _text(generator, "name", "refwatch")
    _text(generator, "version", __version__)

    source = ET.SubElement(root, "source")
    _text(source, "project", project)
    _text(source, "branch", short_ref_name(notice.ref_name))

    if commit.committer is not None:
        _text(root, "timestamp", str(commit.committer.timestamp))

    body = ET.SubElement(root, "body")
    entry = ET.SubElement(body, "commit")
    if commit.author is not None:
        _text(entry, "author", commit.author.name)
    _text(entry, "revision", revision or commit.object_id)

    if notice.changes:
        files = ET.SubElement(entry, "files")
        for change in notice.changes:
            if change.status is ChangeStatus.RENAMED:
                item = _text(files, "file", change.old_path or change.path)
                item.set("to", change.path)
            else:
                item = _text(files, "file", change.path)
            item.set("action", _ACTIONS[change.status])

    _text(entry, "log", "\n".join(commit.message))
    if notice.link:
        _text(entry, "url", notice.link)

    return '<?xml version="1.0" encoding="UTF-8"?>\n' + ET.tostring(root, encoding="unicode")


class CiaChannel:
    """Relays commit notices to an XML change aggregator by mail."""

    name = "cia"

    def __init__(
        self,
        transport: MailTransport,
        address: str,
        project: str,
        short_id: Optional[Callable[[str], str]] = None,
    ) -> None:
        self._transport = transport
        self._address = address
        self._project = project
        self._short_id = short_id

    def send(self, notice: Notice) -> None:
        if notice.kind is not NoticeKind.COMMIT or notice.commit is None:
            return
        revision = self._short_id(notice.commit.object_id) if self._short_id else None
        payload = build_payload(notice, self._project, revision)
        self._transport.deliver(self._address, SUBJECT, CONTENT_TYPE, payload.splitlines())
        LOGGER.info("Relayed %s to %s", notice.commit.object_id, self._address)
