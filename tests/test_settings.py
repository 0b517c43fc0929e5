from __future__ import annotations

import json
import os

import pytest

from refwatch.core.config import DEFAULT_MAX_COMMIT_NOTICES, DIFF_SIZE_UNLIMITED
from refwatch.core.errors import ConfigError
from refwatch.settings import CONFIG_ENV, build_notifier_config, load_settings, resolve_config_path


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path):
    # A private copy keeps values loaded from .env files out of other tests.
    environ = {key: value for key, value in os.environ.items() if key not in (CONFIG_ENV, "SMTP_PASSWORD")}
    monkeypatch.setattr(os, "environ", environ)
    # load_dotenv() looks for a .env next to the working directory.
    monkeypatch.chdir(tmp_path)


def _write(path, data) -> str:
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


def test_config_path_precedence(monkeypatch) -> None:
    assert resolve_config_path("/etc/x.json", "/srv/repo.git") == ("/etc/x.json", True)
    monkeypatch.setenv(CONFIG_ENV, "/etc/env.json")
    assert resolve_config_path(None, "/srv/repo.git") == ("/etc/env.json", True)
    monkeypatch.delenv(CONFIG_ENV)
    assert resolve_config_path(None, "/srv/repo.git") == (os.path.join("/srv/repo.git", "refwatch.json"), False)
    assert resolve_config_path(None, None) == (None, False)


def test_defaults_without_config_file(tmp_path) -> None:
    settings = load_settings(None, str(tmp_path), "widgets")

    notifier = settings.notifier
    assert settings.config_path is None
    assert notifier.repo_name == "widgets"
    assert notifier.store.path is None
    assert notifier.notices.max_commit_notices == DEFAULT_MAX_COMMIT_NOTICES
    assert notifier.delivery.recipients == ()


def test_missing_explicit_config_is_fatal(tmp_path) -> None:
    with pytest.raises(ConfigError):
        load_settings(str(tmp_path / "absent.json"), None, "widgets")


def test_full_config_file(tmp_path) -> None:
    path = _write(
        tmp_path / "refwatch.json",
        {
            "repo_name": "gadgets",
            "store": {"path": "refwatch-reported", "backend": "sqlite", "mode": "0640"},
            "links": {"template": "https://git.example.org/c/{rev}", "abbreviate": True},
            "notices": {"max_diff_size": DIFF_SIZE_UNLIMITED, "max_commit_notices": 20, "hide_author": True},
            "filters": {"include_refs": "main, release/*", "exclude_refs": ["vendor/*"], "ignore_merges": True},
            "mail": {
                "recipients": ["dev@example.org"],
                "sender": "git@example.org",
                "smtp": {"host": "smtp.example.org", "port": 587, "user": "git"},
            },
            "cia": {"address": "cia@example.org"},
            "logging": {"level": "INFO"},
        },
    )

    settings = load_settings(None, str(tmp_path), "widgets")

    notifier = settings.notifier
    assert settings.config_path == path
    assert settings.logging == {"level": "INFO"}
    assert notifier.repo_name == "gadgets"
    assert notifier.store.path == os.path.join(str(tmp_path), "refwatch-reported")
    assert notifier.store.backend == "sqlite"
    assert notifier.store.mode == 0o640
    assert notifier.links.abbreviate
    assert notifier.notices.max_diff_size == DIFF_SIZE_UNLIMITED
    assert notifier.notices.hide_author
    assert notifier.filters.include_refs == ("main", "release/*")
    assert notifier.filters.exclude_refs == ("vendor/*",)
    assert notifier.delivery.smtp_port == 587
    assert notifier.delivery.cia_address == "cia@example.org"


def test_dotenv_file_supplies_secrets(tmp_path) -> None:
    (tmp_path / ".env").write_text("SMTP_PASSWORD=hunter2\n", encoding="utf-8")

    settings = load_settings(None, None, "widgets")

    assert settings.smtp_password == "hunter2"


@pytest.mark.parametrize(
    "raw",
    [
        {"store": "reported"},
        {"store": {"backend": "redis"}},
        {"store": {"mode": "rw-r--r--"}},
        {"notices": {"max_commit_notices": "many"}},
        {"notices": {"max_diff_size": True}},
        {"filters": {"exclude_refs": [1, 2]}},
        {"mail": {"sendmail": []}},
    ],
)
def test_invalid_values_are_config_errors(raw) -> None:
    with pytest.raises(ConfigError):
        build_notifier_config(raw, "widgets")


def test_non_object_config_is_rejected(tmp_path) -> None:
    path = _write(tmp_path / "list.json", ["not", "an", "object"])
    with pytest.raises(ConfigError):
        load_settings(path, None, "widgets")
