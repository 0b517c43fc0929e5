from __future__ import annotations

import io
import logging

import pytest

from fakes import cid, make_config

from refwatch.adapters.cia_channel import CiaChannel
from refwatch.adapters.console_channel import ConsoleChannel
from refwatch.adapters.file_store import FileDedupStore
from refwatch.adapters.mail_channel import MailingListChannel, SendmailTransport
from refwatch.adapters.sqlite_store import SQLiteDedupStore
from refwatch.app import _RedactingFormatter, build_channels, build_store, main, read_updates
from refwatch.core.config import DeliveryConfig, StoreConfig
from refwatch.core.errors import MalformedUpdateError
from refwatch.settings import AppSettings


class StubBackend:
    def short_id(self, object_id: str) -> str:
        return object_id[:7]


def _settings(**delivery) -> AppSettings:
    return AppSettings(
        notifier=make_config(delivery=DeliveryConfig(sender="git@example.org", **delivery)),
    )


def test_read_updates_skips_blank_lines() -> None:
    stream = io.StringIO(f"{cid(1)} {cid(2)} refs/heads/main\n\n{cid(2)} {cid(3)} refs/heads/main\n")

    updates = list(read_updates(stream))

    assert [update.new_id for update in updates] == [cid(2), cid(3)]


def test_read_updates_is_lazy() -> None:
    stream = io.StringIO(f"{cid(1)} {cid(2)} refs/heads/main\ngarbage\n")
    updates = read_updates(stream)

    assert next(updates).new_id == cid(2)
    with pytest.raises(MalformedUpdateError):
        next(updates)


def test_build_store_selects_backend(tmp_path) -> None:
    assert build_store(StoreConfig()) is None
    assert isinstance(build_store(StoreConfig(path=str(tmp_path / "ids"))), FileDedupStore)
    assert isinstance(build_store(StoreConfig(path=str(tmp_path / "ids.db"), backend="sqlite")), SQLiteDedupStore)


def test_dry_run_uses_only_the_console() -> None:
    channels = build_channels(_settings(recipients=("dev@example.org",)), StubBackend(), dry_run=True)

    assert len(channels) == 1
    assert isinstance(channels[0], ConsoleChannel)


def test_channels_follow_configuration() -> None:
    settings = _settings(
        recipients=("dev@example.org",),
        cia_address="cia@example.org",
    )

    channels = build_channels(settings, StubBackend())

    assert [type(channel) for channel in channels] == [MailingListChannel, CiaChannel]
    assert isinstance(channels[0]._transport, SendmailTransport)


def test_no_channels_is_allowed_but_logged(caplog) -> None:
    with caplog.at_level(logging.WARNING):
        assert build_channels(_settings(), StubBackend()) == []
    assert "No delivery channel configured" in caplog.text


def test_redacting_formatter_masks_secrets() -> None:
    formatter = _RedactingFormatter(["hunter2", ""], fmt="%(message)s")
    record = logging.LogRecord("refwatch", logging.INFO, __file__, 1, "login with %s", ("hunter2",), None)

    assert formatter.format(record) == "login with ***"


def test_wrong_positional_count_is_a_usage_error() -> None:
    with pytest.raises(SystemExit) as excinfo:
        main([cid(1), cid(2)])
    assert excinfo.value.code == 2
