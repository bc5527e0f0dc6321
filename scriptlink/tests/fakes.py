"""In-memory repository used by the core tests."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from scriptlink.models import WorkingTreeStatus


class MemoryBlob:
    def __init__(self, name: str, content: bytes):
        self.name = name
        self._content = content

    def data(self) -> bytes:
        return self._content


class MemoryTree:
    def __init__(self, name: Optional[str] = None):
        self.name = name
        self.trees: dict[str, MemoryTree] = {}
        self.files: dict[str, MemoryBlob] = {}

    def subtrees(self):
        return list(self.trees.values())

    def blobs(self):
        return list(self.files.values())


def build_tree(files: dict[str, bytes]) -> MemoryTree:
    root = MemoryTree()
    for path, content in files.items():
        *dirs, name = path.split("/")
        node = root
        for part in dirs:
            node = node.trees.setdefault(part, MemoryTree(part))
        node.files[name] = MemoryBlob(name, content)
    return root


@dataclass
class MemoryCommit:
    id: str
    files: dict[str, bytes] = field(default_factory=dict)


class MemoryRepository:
    def __init__(self, working_dir: Path, name: str | None = None):
        self.working_dir = Path(working_dir)
        self.working_dir.mkdir(parents=True, exist_ok=True)
        self.name = name or self.working_dir.name
        self.commits: list[MemoryCommit] = []
        self.refreshed: list[str] = []

    def commit(self, files: dict[str, bytes], checkout: bool = True, commit_id: str | None = None) -> str:
        commit_id = commit_id or f"{self.name}-c{len(self.commits) + 1}"
        self.commits.append(MemoryCommit(commit_id, dict(files)))
        if checkout:
            for path, content in files.items():
                target = self.working_dir / path
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(content)
        return commit_id

    def resolve_commit(self, ref: str) -> Optional[MemoryCommit]:
        for commit in self.commits:
            if commit.id == ref:
                return commit
        return None

    def tree(self, commit: MemoryCommit) -> MemoryTree:
        return build_tree(commit.files)

    def commits_between(self, from_id: str, to_id: str) -> list[MemoryCommit]:
        ids = [c.id for c in self.commits]
        start = ids.index(from_id) + 1
        end = ids.index(to_id) + 1
        return self.commits[start:end]

    def head_commit_id(self) -> str:
        return self.commits[-1].id

    def working_tree_status(self, relative_path: str) -> WorkingTreeStatus:
        target = self.working_dir / relative_path
        committed = self.commits[-1].files.get(relative_path) if self.commits else None
        on_disk = target.read_bytes() if target.exists() else None
        if committed == on_disk:
            return WorkingTreeStatus.UNMODIFIED
        return WorkingTreeStatus.MODIFIED

    def refresh_index(self, relative_path: str) -> None:
        self.refreshed.append(relative_path)


class BrokenRepository(MemoryRepository):
    """Fails every commit lookup, for exercising the driver's error boundary."""

    def resolve_commit(self, ref: str):
        raise OSError(f"repository unavailable while resolving {ref}")
