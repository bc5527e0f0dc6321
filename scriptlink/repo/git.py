"""`RepositoryQuery` implementation backed by the git command line."""
from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

from scriptlink import config
from scriptlink.errors import GitCommandError
from scriptlink.models import WorkingTreeStatus

logger = logging.getLogger("scriptlink.git")


@dataclass(frozen=True)
class GitCommit:
    id: str


class GitBlob:
    def __init__(self, repository: "GitRepository", object_id: str, name: str):
        self.repository = repository
        self.object_id = object_id
        self.name = name
        self._data: Optional[bytes] = None

    def data(self) -> bytes:
        if self._data is None:
            self._data = self.repository._git("cat-file", "blob", self.object_id).stdout
        return self._data


class GitTree:
    def __init__(self, repository: "GitRepository", tree_ish: str, name: Optional[str] = None):
        self.repository = repository
        self.tree_ish = tree_ish
        self.name = name
        self._entries: Optional[list[tuple[str, str, str]]] = None

    def _list(self) -> list[tuple[str, str, str]]:
        if self._entries is None:
            output = self.repository._git("ls-tree", "-z", self.tree_ish).stdout
            entries = []
            for raw in output.split(b"\0"):
                if not raw:
                    continue
                meta, _, raw_name = raw.partition(b"\t")
                parts = meta.split()
                if len(parts) != 3:
                    continue
                _mode, object_type, object_id = (p.decode("ascii") for p in parts)
                entries.append((object_type, object_id, raw_name.decode("utf-8", errors="surrogateescape")))
            self._entries = entries
        return self._entries

    def subtrees(self) -> Iterator["GitTree"]:
        for object_type, object_id, name in self._list():
            if object_type == "tree":
                yield GitTree(self.repository, object_id, name)

    def blobs(self) -> Iterator[GitBlob]:
        # submodule entries ("commit") are neither trees nor blobs here
        for object_type, object_id, name in self._list():
            if object_type == "blob":
                yield GitBlob(self.repository, object_id, name)


class GitRepository:
    """One tracked repository, addressed through its working directory."""

    def __init__(self, path: Path | str, git_binary: str | None = None):
        self.git_binary = git_binary or config.GIT_BINARY
        probe = subprocess.run(
            [self.git_binary, "-C", str(path), "rev-parse", "--show-toplevel"],
            capture_output=True,
            text=True,
            check=False,
        )
        if probe.returncode != 0:
            raise GitCommandError(["rev-parse", "--show-toplevel"], probe.returncode, probe.stderr)
        self.working_dir = Path(probe.stdout.strip())
        self.name = self.working_dir.name

    def __repr__(self) -> str:
        return f"GitRepository({str(self.working_dir)!r})"

    def _git(self, *args: str, check: bool = True) -> subprocess.CompletedProcess:
        result = subprocess.run(
            [self.git_binary, "-C", str(self.working_dir), *args],
            capture_output=True,
            check=False,
        )
        if check and result.returncode != 0:
            raise GitCommandError(args, result.returncode, result.stderr.decode("utf-8", errors="replace"))
        return result

    def resolve_commit(self, ref: str) -> Optional[GitCommit]:
        ref = (ref or "").strip()
        if not ref or ref.startswith("-"):
            return None
        result = self._git("rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}", check=False)
        if result.returncode != 0:
            return None
        return GitCommit(result.stdout.decode("ascii").strip())

    def tree(self, commit: GitCommit) -> GitTree:
        return GitTree(self, commit.id)

    def commits_between(self, from_id: str, to_id: str) -> list[GitCommit]:
        """Commits reachable from `to_id` but not from `from_id`, oldest first."""
        output = self._git("rev-list", "--reverse", f"{from_id}..{to_id}").stdout.decode("ascii")
        return [GitCommit(line.strip()) for line in output.splitlines() if line.strip()]

    def head_commit_id(self) -> str:
        return self._git("rev-parse", "--verify", "HEAD").stdout.decode("ascii").strip()

    def working_tree_status(self, relative_path: str) -> WorkingTreeStatus:
        # Script names may contain glob characters such as "[1]"
        result = self._git(
            "--literal-pathspecs",
            "status",
            "--porcelain",
            "-z",
            "--untracked-files=normal",
            "--",
            relative_path,
        )
        if result.stdout.strip(b"\0").strip():
            return WorkingTreeStatus.MODIFIED
        return WorkingTreeStatus.UNMODIFIED

    def refresh_index(self, relative_path: str) -> None:
        # Stat-only refresh of the whole index; passing paths would stage them
        result = self._git("update-index", "-q", "--refresh", check=False)
        if result.returncode != 0:
            logger.debug(f"Index refresh before checking {relative_path} reported changed entries")
