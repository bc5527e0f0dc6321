"""Records passed between the stamp parser, search engine, link table and driver."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel


class ScriptRecord(BaseModel):
    name: str
    version: str = ""
    dirty: bool = False
    content: bytes = b""


class EventKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class EventSource(str, Enum):
    EXTERNAL = "external"
    REPOSITORY = "repository"
    # HEAD moved (commit, checkout); path is the repository working directory
    REPOSITORY_HEAD = "repository_head"


class WorkingTreeStatus(str, Enum):
    MODIFIED = "modified"
    UNMODIFIED = "unmodified"


@dataclass(frozen=True)
class FileEvent:
    kind: EventKind
    path: Path
    source: EventSource


@dataclass(frozen=True, eq=False)
class RepoCommitRef:
    """One commit in one repository.

    Repositories compare by identity: two handles opened on the same
    working directory are two different repositories.
    """

    repository: Any
    commit_id: str

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RepoCommitRef):
            return NotImplemented
        return self.repository is other.repository and self.commit_id == other.commit_id

    def __hash__(self) -> int:
        return hash((id(self.repository), self.commit_id))


@dataclass(frozen=True)
class Candidate:
    ref: RepoCommitRef
    path: str
    content: bytes = field(repr=False)

    @property
    def repository(self) -> Any:
        return self.ref.repository

    @property
    def commit_id(self) -> str:
        return self.ref.commit_id


@dataclass(frozen=True)
class LinkEntry:
    external_path: Path
    repo_path: Path
    repository: Any


class ReconcileResult(BaseModel):
    """Outcome of handling one file event."""

    action: str
    path: str
    written: bool = False
    detail: str = ""
    linked_to: Optional[str] = None
