"""Configuration loading for refwatch.

All user-editable settings (store, links, notices, filters, delivery,
logging) live in a single JSON file for quick edits without touching
Python. Secrets stay in the environment, optionally loaded from a ``.env``
file via python-dotenv.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple

from dotenv import find_dotenv, load_dotenv

from refwatch.core.config import (
    DEFAULT_MAX_COMMIT_NOTICES,
    DEFAULT_MAX_DIFF_SIZE,
    DeliveryConfig,
    FilterConfig,
    LinkConfig,
    NoticeConfig,
    NotifierConfig,
    StoreConfig,
)
from refwatch.core.errors import ConfigError

CONFIG_ENV = "REFWATCH_CONFIG"
DEFAULT_CONFIG_NAME = "refwatch.json"

# Environment variables holding secrets; their values are redacted in logs.
SECRET_ENV_NAMES = ("SMTP_PASSWORD",)


@dataclass(frozen=True)
class AppSettings:
    """Engine config plus the app-level pieces the core never sees."""

    notifier: NotifierConfig
    config_path: Optional[str] = None
    logging: dict = field(default_factory=dict)
    smtp_password: Optional[str] = None


def resolve_config_path(explicit: Optional[str], git_dir: Optional[str]) -> Tuple[Optional[str], bool]:
    """Return (path, required). Only an explicitly named file is required."""

    if explicit:
        return explicit, True
    from_env = os.getenv(CONFIG_ENV)
    if from_env:
        return from_env, True
    if git_dir:
        return os.path.join(git_dir, DEFAULT_CONFIG_NAME), False
    return None, False


def _load_json_config(path: Optional[str], required: bool) -> dict:
    """Load the JSON config; a missing optional file means defaults."""

    if path is None or not os.path.exists(path):
        if required:
            raise ConfigError(f"Config file not found: {path}")
        return {}
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, ValueError) as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must hold a JSON object")
    return data


def _section(raw: dict, name: str) -> dict:
    value = raw.get(name, {})
    if not isinstance(value, dict):
        raise ConfigError(f"'{name}' must be an object")
    return value


def _str_list(section: dict, key: str, default: Tuple[str, ...] = ()) -> Tuple[str, ...]:
    value = section.get(key)
    if value is None:
        return default
    if isinstance(value, str):
        # Comma separated strings are accepted for short lists.
        return tuple(item.strip() for item in value.split(",") if item.strip())
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"'{key}' must be a list of strings")
    return tuple(value)


def _int(section: dict, key: str, default: int) -> int:
    value = section.get(key, default)
    if isinstance(value, bool):
        raise ConfigError(f"'{key}' must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'{key}' must be an integer") from exc


def _mode(value: Any) -> int:
    """File mode given as an int or an octal string such as "0664"."""

    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        try:
            return int(value, 8)
        except ValueError as exc:
            raise ConfigError(f"Invalid store mode: {value!r}") from exc
    raise ConfigError(f"Invalid store mode: {value!r}")


def build_notifier_config(raw: dict, default_repo_name: str, base_dir: Optional[str] = None) -> NotifierConfig:
    """Build the frozen engine config from the raw JSON mapping."""

    store_raw = _section(raw, "store")
    store_path = store_raw.get("path")
    if store_path and base_dir and not os.path.isabs(store_path):
        # Relative store paths live next to the repository's git dir.
        store_path = os.path.join(base_dir, store_path)
    backend = store_raw.get("backend", "file")
    if backend not in ("file", "sqlite"):
        raise ConfigError(f"Unsupported store backend: {backend}")

    links_raw = _section(raw, "links")
    notices_raw = _section(raw, "notices")
    filters_raw = _section(raw, "filters")
    mail_raw = _section(raw, "mail")
    smtp_raw = _section(mail_raw, "smtp")
    cia_raw = _section(raw, "cia")

    sendmail = _str_list(mail_raw, "sendmail", DeliveryConfig.sendmail)
    if not sendmail:
        raise ConfigError("'sendmail' must name a command")

    repo_name = raw.get("repo_name") or default_repo_name
    return NotifierConfig(
        repo_name=repo_name,
        store=StoreConfig(
            path=store_path or None,
            backend=backend,
            mode=_mode(store_raw.get("mode", StoreConfig.mode)),
        ),
        links=LinkConfig(
            template=links_raw.get("template") or None,
            abbreviate=bool(links_raw.get("abbreviate", False)),
            sourceforge=bool(links_raw.get("sourceforge", False)),
        ),
        notices=NoticeConfig(
            max_diff_size=_int(notices_raw, "max_diff_size", DEFAULT_MAX_DIFF_SIZE),
            max_commit_notices=_int(notices_raw, "max_commit_notices", DEFAULT_MAX_COMMIT_NOTICES),
            hide_author=bool(notices_raw.get("hide_author", False)),
            show_committer=bool(notices_raw.get("show_committer", True)),
        ),
        filters=FilterConfig(
            include_refs=_str_list(filters_raw, "include_refs"),
            exclude_refs=_str_list(filters_raw, "exclude_refs"),
            ignore_merges=bool(filters_raw.get("ignore_merges", False)),
        ),
        delivery=DeliveryConfig(
            recipients=_str_list(mail_raw, "recipients"),
            sender=mail_raw.get("sender") or None,
            subject_prefix=mail_raw.get("subject_prefix"),
            sendmail=sendmail,
            smtp_host=smtp_raw.get("host") or None,
            smtp_port=_int(smtp_raw, "port", 25),
            smtp_user=smtp_raw.get("user") or None,
            cia_address=cia_raw.get("address") or None,
            cia_project=cia_raw.get("project") or None,
        ),
    )


def load_settings(
    explicit_path: Optional[str],
    git_dir: Optional[str],
    default_repo_name: str,
) -> AppSettings:
    """Load config.json and secrets into one AppSettings value."""

    # Hooks run inside the git dir, so look for .env from the working directory.
    load_dotenv(find_dotenv(usecwd=True))
    path, required = resolve_config_path(explicit_path, git_dir)
    raw = _load_json_config(path, required)
    notifier = build_notifier_config(raw, default_repo_name, base_dir=git_dir)
    logging_raw = _section(raw, "logging")
    return AppSettings(
        notifier=notifier,
        config_path=path if raw else None,
        logging=logging_raw,
        smtp_password=os.getenv("SMTP_PASSWORD"),
    )
