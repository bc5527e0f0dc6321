"""Capabilities the reconciliation core needs from a version-controlled repository.

The core never talks to git directly. It works against `RepositoryQuery`
(commit lookup, history enumeration, working-tree status) and walks commit
trees through the `TreeNode` capability, so any backend that can list
subtrees and named blobs can be searched.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Protocol, runtime_checkable

from scriptlink.models import WorkingTreeStatus


class Commit(Protocol):
    id: str


class TreeBlob(Protocol):
    name: str

    def data(self) -> bytes: ...


class TreeNode(Protocol):
    # None for the root tree of a commit
    name: Optional[str]

    def subtrees(self) -> Iterable["TreeNode"]: ...

    def blobs(self) -> Iterable[TreeBlob]: ...


@runtime_checkable
class RepositoryQuery(Protocol):
    working_dir: Path
    name: str

    def resolve_commit(self, ref: str) -> Optional[Commit]: ...

    def tree(self, commit: Commit) -> TreeNode: ...

    def commits_between(self, from_id: str, to_id: str) -> list[Commit]: ...

    def head_commit_id(self) -> str: ...

    def working_tree_status(self, relative_path: str) -> WorkingTreeStatus: ...

    def refresh_index(self, relative_path: str) -> None: ...


@dataclass(frozen=True)
class TreeMatch:
    path: str
    blob: TreeBlob

    @property
    def content(self) -> bytes:
        return self.blob.data()


def tree_search(node: TreeNode, file_name: str) -> list[TreeMatch]:
    """Find every blob named `file_name` below `node`.

    Every subtree is visited. Paths are assembled bottom-up: each level
    prefixes its own name onto the matches returned by its subtrees.
    """
    results: list[TreeMatch] = []
    for subtree in node.subtrees():
        results.extend(tree_search(subtree, file_name))
    results.extend(TreeMatch(blob.name, blob) for blob in node.blobs() if blob.name == file_name)
    if node.name:
        results = [TreeMatch(f"{node.name}/{match.path}", match.blob) for match in results]
    return results


def search_commit(repository: RepositoryQuery, commit: Commit, file_name: str) -> list[TreeMatch]:
    return tree_search(repository.tree(commit), file_name)


def relative_to_repository(repository: RepositoryQuery, path: Path | str) -> str:
    """POSIX path of `path` relative to the repository root."""
    path = Path(path)
    try:
        return path.relative_to(repository.working_dir).as_posix()
    except ValueError:
        return path.resolve().relative_to(Path(repository.working_dir).resolve()).as_posix()
