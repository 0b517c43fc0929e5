from __future__ import annotations

import os
import shutil
import subprocess

import pytest

from refwatch.adapters.git_backend import GitBackend
from refwatch.core.errors import BackendError
from refwatch.core.models import ChangeStatus, FileChange

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")

GIT_ENV = {
    "GIT_AUTHOR_NAME": "Alice Example",
    "GIT_AUTHOR_EMAIL": "alice@example.org",
    "GIT_COMMITTER_NAME": "Alice Example",
    "GIT_COMMITTER_EMAIL": "alice@example.org",
    "GIT_CONFIG_NOSYSTEM": "1",
}


def _git(work, *args: str, stamp: int = 1700000000) -> str:
    env = dict(os.environ, **GIT_ENV)
    env["GIT_AUTHOR_DATE"] = env["GIT_COMMITTER_DATE"] = f"{stamp} +0200"
    env["HOME"] = str(work)
    proc = subprocess.run(["git", *args], cwd=work, env=env, capture_output=True, check=True)
    return proc.stdout.decode("utf-8").strip()


@pytest.fixture
def repo(tmp_path):
    work = tmp_path / "widgets"
    work.mkdir()
    _git(work, "init", "-q", "-b", "main")
    (work / "README").write_text("one\n", encoding="utf-8")
    _git(work, "add", "README")
    _git(work, "commit", "-q", "-m", "First commit", stamp=1700000000)
    (work / "README").write_text("two\n", encoding="utf-8")
    _git(work, "commit", "-q", "-am", "Second commit", stamp=1700000100)
    _git(work, "mv", "README", "README.md")
    _git(work, "commit", "-q", "-m", "Rename readme", stamp=1700000200)
    _git(work, "tag", "-a", "v1.0", "-m", "Version 1.0", stamp=1700000300)
    return work


def _ids(repo) -> list:
    return _git(repo, "rev-list", "--reverse", "main").split()


def test_range_is_oldest_first(repo) -> None:
    backend = GitBackend(str(repo / ".git"))
    first, second, third = _ids(repo)

    assert backend.resolve_range([], third, None) == [first, second, third]
    assert backend.resolve_range([], third, first) == [second, third]


def test_object_types_and_ancestry(repo) -> None:
    backend = GitBackend(str(repo / ".git"))
    first, _, third = _ids(repo)
    tag_id = _git(repo, "rev-parse", "refs/tags/v1.0")

    assert backend.object_type(third) == "commit"
    assert backend.object_type(tag_id) == "tag"
    assert backend.is_ancestor(first, third)
    assert not backend.is_ancestor(third, first)


def test_commit_and_tag_info(repo) -> None:
    backend = GitBackend(str(repo / ".git"))
    first, second, third = _ids(repo)
    tag_id = _git(repo, "rev-parse", "refs/tags/v1.0")

    commit = backend.object_info(second)
    tag = backend.object_info(tag_id)

    assert commit.subject == "Second commit"
    assert commit.parents == (first,)
    assert commit.author.ident == "Alice Example <alice@example.org>"
    assert commit.author.offset == "+0200"
    assert tag.tag_name == "v1.0"
    assert tag.tagged_id == third
    assert tag.subject == "Version 1.0"


def test_diffs_and_name_status(repo) -> None:
    backend = GitBackend(str(repo / ".git"))
    first, second, third = _ids(repo)

    assert backend.name_status(first) == [FileChange(ChangeStatus.ADDED, "README")]
    assert backend.name_status(third) == [FileChange(ChangeStatus.RENAMED, "README.md", old_path="README")]
    assert "+two" in backend.diff_patch(second).splitlines()
    assert "1 file changed" in backend.diff_stat(second)


def test_listing_helpers(repo) -> None:
    backend = GitBackend(str(repo / ".git"))

    assert sorted(backend.all_commits()) == sorted(_ids(repo))
    assert backend.list_refs() == ["refs/heads/main", "refs/tags/v1.0"]
    assert backend.repository_name() == "widgets"
    assert _ids(repo)[0].startswith(backend.short_id(_ids(repo)[0]))


def test_failing_command_raises_backend_error(repo) -> None:
    backend = GitBackend(str(repo / ".git"))

    with pytest.raises(BackendError):
        backend.object_type("f" * 40)
