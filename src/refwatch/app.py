"""Application entry point for the refwatch post-receive hook."""

from __future__ import annotations

import argparse
import getpass
import logging
import os
import socket
import sys
from logging.handlers import RotatingFileHandler
from typing import IO, Iterator, List, Optional

from refwatch import __version__
from refwatch.adapters.cia_channel import CiaChannel
from refwatch.adapters.console_channel import ConsoleChannel
from refwatch.adapters.file_store import FileDedupStore
from refwatch.adapters.git_backend import GitBackend
from refwatch.adapters.mail_channel import MailingListChannel, MailTransport, SendmailTransport, SMTPTransport
from refwatch.adapters.sqlite_store import SQLiteDedupStore
from refwatch.core.config import StoreConfig
from refwatch.core.errors import RefwatchError
from refwatch.core.models import RefUpdate
from refwatch.core.ports import ChannelPort, DedupStorePort
from refwatch.core.processor import UpdateProcessor
from refwatch.settings import SECRET_ENV_NAMES, AppSettings, load_settings

LOGGER = logging.getLogger(__name__)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", True):
        return []
    values = []
    for name in [*SECRET_ENV_NAMES, *redact_cfg.get("patterns", [])]:
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging(config: dict, verbose: bool = False) -> None:
    """Console logging to stderr by default; a rotating file on request.

    Hook output reaches the pushing user, so the console default is quiet.
    """

    if not config.get("enabled", True):
        return

    level_name = str(config.get("level", "WARNING")).upper()
    level = logging.DEBUG if verbose else getattr(logging, level_name, logging.WARNING)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    formatter = _RedactingFormatter(_collect_redaction_values(config), fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "refwatch.log")
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_level = getattr(logging, str(file_cfg.get("level", "INFO")).upper(), logging.INFO)
        file_handler.setLevel(logging.DEBUG if verbose else file_level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=min(handler.level for handler in handlers), handlers=handlers, force=True)


def build_store(config: StoreConfig) -> Optional[DedupStorePort]:
    """No store path means every invocation reports its full range."""

    if not config.path:
        return None
    if config.backend == "sqlite":
        return SQLiteDedupStore(config.path, mode=config.mode)
    return FileDedupStore(config.path, mode=config.mode)


def _build_transport(settings: AppSettings) -> MailTransport:
    delivery = settings.notifier.delivery
    sender = delivery.sender or f"{getpass.getuser()}@{socket.getfqdn()}"
    if delivery.smtp_host:
        return SMTPTransport(
            sender,
            delivery.smtp_host,
            port=delivery.smtp_port,
            user=delivery.smtp_user,
            password=settings.smtp_password,
        )
    return SendmailTransport(sender, delivery.sendmail)


def build_channels(settings: AppSettings, backend: GitBackend, dry_run: bool = False) -> List[ChannelPort]:
    """Select channels from configuration; the core never sees the choice."""

    notifier = settings.notifier
    delivery = notifier.delivery
    if dry_run:
        prefix = delivery.subject_prefix if delivery.subject_prefix is not None else notifier.repo_name
        return [ConsoleChannel(subject_prefix=prefix)]

    channels: List[ChannelPort] = []
    if delivery.recipients or delivery.cia_address:
        transport = _build_transport(settings)
        if delivery.recipients:
            channels.append(
                MailingListChannel(
                    transport,
                    delivery.recipients,
                    notifier.repo_name,
                    subject_prefix=delivery.subject_prefix,
                )
            )
        if delivery.cia_address:
            channels.append(
                CiaChannel(
                    transport,
                    delivery.cia_address,
                    delivery.cia_project or notifier.repo_name,
                    short_id=backend.short_id,
                )
            )

    if not channels:
        LOGGER.warning("No delivery channel configured; notices will be dropped")
    LOGGER.info("Selected channels: %s", ", ".join(channel.name for channel in channels) or "none")
    return channels


def read_updates(stream: IO[str]) -> Iterator[RefUpdate]:
    """Yield updates lazily so a fatal error stops the rest of the batch."""

    for line in stream:
        if line.strip():
            yield RefUpdate.from_line(line)


def _run(args: argparse.Namespace) -> int:
    backend = GitBackend(args.git_dir)
    git_dir = backend.git_dir()
    settings = load_settings(args.config, git_dir, backend.repository_name())
    _configure_logging(settings.logging, args.verbose)
    if settings.config_path:
        LOGGER.info("Loaded config from %s", settings.config_path)

    processor = UpdateProcessor(
        backend=backend,
        store=build_store(settings.notifier.store),
        channels=build_channels(settings, backend, dry_run=args.dry_run),
        config=settings.notifier,
        update_only=args.update_only,
    )

    if args.update:
        updates: Iterator[RefUpdate] = iter([RefUpdate(*args.update)])
    else:
        updates = read_updates(sys.stdin)
    count = processor.handle_all(updates)
    LOGGER.info("Done: %s notices", count)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="refwatch",
        description="Report git ref updates as notices. Reads 'old new ref' lines "
        "from stdin unless OLD NEW REF are given.",
    )
    parser.add_argument("--config", help="JSON config file (default: <git-dir>/refwatch.json)")
    parser.add_argument("--git-dir", help="Repository to inspect (default: git's own discovery)")
    parser.add_argument("--dry-run", action="store_true", help="Print notices instead of delivering them")
    parser.add_argument(
        "--update-only",
        action="store_true",
        help="Record new commits in the dedup store without sending anything",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output to stderr")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("update", nargs="*", metavar="OLD NEW REF")

    args = parser.parse_args(argv)
    if args.update and len(args.update) != 3:
        parser.error("expected exactly three positional arguments: OLD NEW REF")

    try:
        return _run(args)
    except RefwatchError as exc:
        LOGGER.error("refwatch aborted: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
