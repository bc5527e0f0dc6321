"""Find which tracked file an external script is the externally-edited twin of.

Three strategies run in order, each only when the previous one found nothing:

1. exact commit: the stamped version names a commit whose tree holds the
   script with identical content;
2. future history (dirty scripts only): the content was committed later,
   somewhere between the stamped commit and HEAD;
3. working copy (dirty scripts only): the content sits uncommitted in a
   repository checkout.

`resolve_match` then decides whether the candidates identify exactly one
file in exactly one repository.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Sequence

from scriptlink import config
from scriptlink.errors import AmbiguousMatchError, NoMatchError, ScriptLinkError
from scriptlink.models import Candidate, RepoCommitRef
from scriptlink.repo.query import Commit, RepositoryQuery, TreeMatch, search_commit

logger = logging.getLogger("scriptlink.search")


@dataclass
class _NameMatch:
    """Files carrying the script's name in the commit its version names."""

    repository: RepositoryQuery
    commit: Commit
    files: list[TreeMatch]


class MatchKind(str, Enum):
    MATCHED = "matched"
    NO_MATCH = "no_match"
    AMBIGUOUS_REPOSITORIES = "ambiguous_repositories"
    AMBIGUOUS_PATHS = "ambiguous_paths"


@dataclass
class MatchOutcome:
    kind: MatchKind
    name: str = ""
    version: str = ""
    candidates: list[Candidate] = field(default_factory=list)

    @property
    def is_match(self) -> bool:
        return self.kind == MatchKind.MATCHED

    @property
    def candidate(self) -> Optional[Candidate]:
        return self.candidates[0] if self.is_match else None

    @property
    def repository(self) -> Any:
        return self.candidates[0].repository if self.is_match else None

    def error(self) -> Optional[ScriptLinkError]:
        if self.kind == MatchKind.NO_MATCH:
            return NoMatchError(self.name, self.version)
        if self.kind in (MatchKind.AMBIGUOUS_REPOSITORIES, MatchKind.AMBIGUOUS_PATHS):
            repositories: list[str] = []
            for candidate in self.candidates:
                label = _repository_label(candidate.repository)
                if label not in repositories:
                    repositories.append(label)
            paths = sorted({candidate.path for candidate in self.candidates})
            if self.kind == MatchKind.AMBIGUOUS_REPOSITORIES:
                return AmbiguousMatchError(self.name, repositories)
            return AmbiguousMatchError(self.name, repositories[:1], paths)
        return None


def _repository_label(repository: Any) -> str:
    return str(getattr(repository, "working_dir", None) or getattr(repository, "name", repository))


def group_by_repository(candidates: Sequence[Candidate]) -> list[tuple[Any, list[Candidate]]]:
    """Group candidates per repository, keeping first-seen repository order."""
    groups: list[tuple[Any, list[Candidate]]] = []
    for candidate in candidates:
        for repository, members in groups:
            if repository is candidate.repository:
                members.append(candidate)
                break
        else:
            groups.append((candidate.repository, [candidate]))
    return groups


def resolve_match(candidates: Sequence[Candidate], name: str = "", version: str = "") -> MatchOutcome:
    candidates = list(candidates)
    if not candidates:
        return MatchOutcome(MatchKind.NO_MATCH, name, version)
    groups = group_by_repository(candidates)
    if len(groups) > 1:
        return MatchOutcome(MatchKind.AMBIGUOUS_REPOSITORIES, name, version, candidates)
    _, members = groups[0]
    if len({candidate.path for candidate in members}) > 1:
        return MatchOutcome(MatchKind.AMBIGUOUS_PATHS, name, version, candidates)
    return MatchOutcome(MatchKind.MATCHED, name, version, members[:1])


class CandidateSearchEngine:
    def __init__(self, repositories: Sequence[RepositoryQuery], extension: str | None = None):
        self.repositories = list(repositories)
        ext = config.SCRIPT_EXTENSION if extension is None else extension
        if ext and not ext.startswith("."):
            ext = f".{ext}"
        self.extension = ext

    def file_name(self, name: str) -> str:
        return f"{name}{self.extension}"

    def find_candidates(self, name: str, version: str, content: bytes, dirty: bool) -> list[Candidate]:
        file_name = self.file_name(name)

        name_matches = self.name_matches(file_name, version)
        candidates = self.exact_commit_search(name_matches, content)
        logger.debug(f"Exact commit search for {file_name}@{version}: {len(candidates)} candidate(s)")

        if not candidates and dirty:
            candidates = self.future_history_search(name_matches, file_name, content)
            logger.debug(f"Future history search for {file_name}: {len(candidates)} candidate(s)")

        if not candidates and dirty:
            candidates = self.working_copy_search(file_name, content)
            logger.debug(f"Working copy search for {file_name}: {len(candidates)} candidate(s)")

        return candidates

    def find_match(self, name: str, version: str, content: bytes, dirty: bool) -> MatchOutcome:
        return resolve_match(self.find_candidates(name, version, content, dirty), name, version)

    def name_matches(self, file_name: str, version: str) -> list[_NameMatch]:
        """Files named `file_name` in each repository's commit `version`, content unchecked."""
        matches: list[_NameMatch] = []
        for repository in self.repositories:
            commit = repository.resolve_commit(version)
            if commit is None:
                continue
            files = search_commit(repository, commit, file_name)
            if files:
                matches.append(_NameMatch(repository, commit, files))
        return matches

    def exact_commit_search(self, name_matches: Sequence[_NameMatch], content: bytes) -> list[Candidate]:
        candidates: list[Candidate] = []
        for match in name_matches:
            ref = RepoCommitRef(match.repository, match.commit.id)
            for found in match.files:
                if found.content == content:
                    candidates.append(Candidate(ref, found.path, content))
        return candidates

    def future_history_search(
        self,
        name_matches: Sequence[_NameMatch],
        file_name: str,
        content: bytes,
    ) -> list[Candidate]:
        """Earliest later commit per repository holding the script with `content`.

        Takes the oldest commit at which the content already existed, not the
        newest one.
        """
        candidates: list[Candidate] = []
        matched: list[RepositoryQuery] = []
        for match in name_matches:
            repository = match.repository
            if any(repository is done for done in matched):
                continue
            head_id = repository.head_commit_id()
            for commit in repository.commits_between(match.commit.id, head_id):
                found = [f for f in search_commit(repository, commit, file_name) if f.content == content]
                if found:
                    ref = RepoCommitRef(repository, commit.id)
                    candidates.extend(Candidate(ref, f.path, content) for f in found)
                    matched.append(repository)
                    break
        return candidates

    def working_copy_search(self, file_name: str, content: bytes) -> list[Candidate]:
        candidates: list[Candidate] = []
        for repository in self.repositories:
            root = Path(repository.working_dir)
            head_id: Optional[str] = None
            for path in _glob_working_dir(root, file_name):
                try:
                    if path.read_bytes() != content:
                        continue
                except OSError as exc:
                    logger.warning(f"Skipping unreadable working file {path}: {exc}")
                    continue
                if head_id is None:
                    head_id = repository.head_commit_id()
                ref = RepoCommitRef(repository, head_id)
                candidates.append(Candidate(ref, path.relative_to(root).as_posix(), content))
        return candidates


def _glob_working_dir(root: Path, file_name: str) -> list[Path]:
    results: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d != ".git")
        if file_name in filenames:
            path = Path(dirpath) / file_name
            if path.is_file():
                results.append(path)
    return results
