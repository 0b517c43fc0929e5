"""Git subprocess backend.

Implements the core BackendPort with one ``git`` plumbing call per query.
Calls block until git exits; a failing call raises BackendError.
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import List, Optional, Sequence

from refwatch.core.errors import BackendError
from refwatch.core.models import CommitInfo, FileChange
from refwatch.core.parsing import decode_text, parse_id_list, parse_name_status, parse_object

LOGGER = logging.getLogger(__name__)

# Keep diffs and listings free of user colour and pager settings.
_DIFF_TREE = ["diff-tree", "--root", "--no-commit-id", "-r", "-M", "--no-color"]


@dataclass(frozen=True)
class CmdResult:
    code: int
    stdout: bytes
    stderr: str


class GitBackend:
    """Thin wrapper around git plumbing that satisfies the BackendPort."""

    def __init__(self, git_dir: Optional[str] = None, git: str = "git") -> None:
        self._git_dir = git_dir
        self._git = git

    def _run(self, args: Sequence[str], ok_codes: Sequence[int] = (0,)) -> CmdResult:
        cmd = [self._git]
        if self._git_dir:
            cmd.extend(["--git-dir", self._git_dir])
        cmd.extend(args)
        try:
            proc = subprocess.run(cmd, capture_output=True, check=False)
        except OSError as exc:
            raise BackendError(" ".join(cmd), -1, str(exc)) from exc
        stderr = proc.stderr.decode("utf-8", errors="replace").strip()
        if proc.returncode not in ok_codes:
            raise BackendError(" ".join(cmd), proc.returncode, stderr)
        return CmdResult(proc.returncode, proc.stdout, stderr)

    def _text(self, args: Sequence[str]) -> str:
        return decode_text(self._run(args).stdout, "utf-8")

    def resolve_range(
        self,
        excluded_refs: Sequence[str],
        include_from: str,
        exclude_to: Optional[str],
        no_merges: bool = False,
    ) -> List[str]:
        args = ["rev-list", "--reverse", "--date-order"]
        if no_merges:
            args.append("--no-merges")
        args.append(include_from)
        if exclude_to:
            args.append(f"^{exclude_to}")
        args.extend(f"^{ref}" for ref in excluded_refs)
        return parse_id_list(self._text(args))

    def object_type(self, ref_or_id: str) -> str:
        return self._text(["cat-file", "-t", ref_or_id]).strip()

    def object_info(self, object_id: str) -> CommitInfo:
        object_type = self.object_type(object_id)
        raw = self._run(["cat-file", object_type, object_id]).stdout
        return parse_object(object_id, object_type, raw)

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        result = self._run(["merge-base", "--is-ancestor", ancestor, descendant], ok_codes=(0, 1))
        return result.code == 0

    def diff_stat(self, commit_id: str) -> str:
        return self._text([*_DIFF_TREE, "--stat", commit_id])

    def diff_patch(self, commit_id: str) -> str:
        return self._text([*_DIFF_TREE, "-p", commit_id])

    def name_status(self, commit_id: str) -> List[FileChange]:
        return parse_name_status(self._text([*_DIFF_TREE, "-z", "--name-status", commit_id]))

    def short_id(self, object_id: str) -> str:
        return self._text(["rev-parse", "--short", object_id]).strip()

    def all_commits(self) -> List[str]:
        return parse_id_list(self._text(["rev-list", "--all"]))

    def list_refs(self) -> List[str]:
        output = self._text(["for-each-ref", "--format=%(refname)"])
        return [line.strip() for line in output.splitlines() if line.strip()]

    def git_dir(self) -> str:
        return self._text(["rev-parse", "--absolute-git-dir"]).strip()

    def repository_name(self) -> str:
        """Default display name: the repository directory without ".git"."""

        path = self.git_dir().rstrip(os.sep)
        name = os.path.basename(path)
        if name == ".git":
            name = os.path.basename(os.path.dirname(path))
        if name.endswith(".git"):
            name = name[: -len(".git")]
        return name or "repository"
