"""Per-event reconciliation between external scripts and repository working files.

The driver is the only component that sees raw file events. It owns the
error boundary: whatever goes wrong while handling one event is logged with
the offending path and reported as an ``error`` result, and the next event
is processed normally.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence

from scriptlink.errors import NoHeaderError
from scriptlink.links import LinkTable
from scriptlink.models import (
    Candidate,
    EventKind,
    EventSource,
    FileEvent,
    LinkEntry,
    ReconcileResult,
    ScriptRecord,
    WorkingTreeStatus,
)
from scriptlink.observability import record_header_failure, record_reconcile, start_span
from scriptlink.repo.query import RepositoryQuery, relative_to_repository
from scriptlink.search import CandidateSearchEngine, MatchKind
from scriptlink.stamp import read_script, stamp_version
from scriptlink.synchronizer import FastForwardSynchronizer, SyncDirection

logger = logging.getLogger("scriptlink.driver")


class ReconciliationDriver:
    def __init__(
        self,
        repositories: Sequence[RepositoryQuery],
        link_table: Optional[LinkTable] = None,
        search_engine: Optional[CandidateSearchEngine] = None,
        synchronizer: Optional[FastForwardSynchronizer] = None,
    ):
        self.repositories = list(repositories)
        self.links = link_table if link_table is not None else LinkTable()
        self.search_engine = search_engine or CandidateSearchEngine(self.repositories)
        self.synchronizer = synchronizer or FastForwardSynchronizer()

    def handle(self, event: FileEvent) -> ReconcileResult:
        if event.source == EventSource.EXTERNAL:
            return self.handle_external_event(event.kind, event.path)
        if event.source == EventSource.REPOSITORY_HEAD:
            return self.handle_head_moved(event.path)
        return self.handle_repository_event(event.kind, event.path)

    # ── External editor side ─────────────────────────────────────────

    def handle_external_event(self, kind: EventKind, path: Path | str) -> ReconcileResult:
        path = Path(path)
        with start_span("scriptlink.external_event", {"event.kind": kind.value, "file.path": str(path)}):
            try:
                if kind == EventKind.DELETE:
                    result = self._unlink(path)
                else:
                    result = self._process_external(path)
            except Exception as e:
                logger.exception(f"Error handling {kind.value} of external script {path}: {e}")
                result = ReconcileResult(action="error", path=str(path), detail=str(e))
        record_reconcile(EventSource.EXTERNAL.value, result.action)
        return result

    def _process_external(self, path: Path) -> ReconcileResult:
        try:
            record = read_script(path)
        except NoHeaderError as e:
            logger.warning(str(e))
            record_header_failure()
            return ReconcileResult(action="no_header", path=str(path), detail=e.reason)
        logger.info(f"Recognized {record.name} version {record.version or '<none>'} dirty {record.dirty}")

        entry = self.links.entry_for_external(path)
        if entry is not None:
            written = self.synchronizer.reconcile(
                SyncDirection.EXTERNAL_TO_REPO,
                repo_path=entry.repo_path,
                external_content=record.content,
            )
            return ReconcileResult(
                action="pushed" if written else "unchanged",
                path=str(path),
                written=written,
                linked_to=str(entry.repo_path),
            )

        outcome = self.search_engine.find_match(record.name, record.version, record.content, record.dirty)
        if not outcome.is_match:
            error = outcome.error()
            logger.warning(f"{path}: {error}")
            action = "no_match" if outcome.kind == MatchKind.NO_MATCH else "ambiguous"
            return ReconcileResult(action=action, path=str(path), detail=str(error))

        return self._link_new_script(path, record, outcome.candidate)

    def _link_new_script(self, path: Path, record: ScriptRecord, candidate: Candidate) -> ReconcileResult:
        repository = candidate.repository
        repo_path = Path(repository.working_dir) / candidate.path

        head_id = repository.head_commit_id()
        repository.refresh_index(candidate.path)
        modified = repository.working_tree_status(candidate.path) == WorkingTreeStatus.MODIFIED

        entry = self.links.link(path, repo_path, repository)
        at_head = candidate.commit_id == head_id
        logger.info(
            f"File contents matched {candidate.path} at {candidate.commit_id}"
            f"{' (HEAD)' if at_head else ''}; linked {entry.external_path} <-> {entry.repo_path}"
        )

        written = self.synchronizer.reconcile(
            SyncDirection.REPO_TO_EXTERNAL,
            name=record.name,
            external_path=entry.external_path,
            repo_path=entry.repo_path,
            external_content=record.content,
            old_version=stamp_version(record.version, record.dirty),
            new_version=stamp_version(head_id, modified),
        )
        return ReconcileResult(
            action="linked",
            path=str(path),
            written=written,
            linked_to=str(entry.repo_path),
            detail="" if at_head else f"matched {candidate.commit_id}, head {head_id}",
        )

    # ── Repository side ──────────────────────────────────────────────

    def handle_repository_event(self, kind: EventKind, path: Path | str) -> ReconcileResult:
        path = Path(path)
        with start_span("scriptlink.repository_event", {"event.kind": kind.value, "file.path": str(path)}):
            try:
                if kind == EventKind.DELETE:
                    result = self._unlink(path)
                else:
                    entry = self.links.entry_for_repo(path)
                    if entry is None:
                        result = ReconcileResult(action="ignored", path=str(path))
                    else:
                        result = self._fast_forward_linked(entry)
            except Exception as e:
                logger.exception(f"Error handling {kind.value} of repository file {path}: {e}")
                result = ReconcileResult(action="error", path=str(path), detail=str(e))
        record_reconcile(EventSource.REPOSITORY.value, result.action)
        return result

    def handle_head_moved(self, working_dir: Path | str) -> ReconcileResult:
        """Restamp every external script linked into the repository at `working_dir`."""
        working_dir = Path(working_dir)
        written = False
        failures: list[str] = []
        with start_span("scriptlink.head_moved", {"repository.path": str(working_dir)}):
            for entry in self.links.entries():
                if not _same_dir(entry.repository.working_dir, working_dir):
                    continue
                try:
                    written = self._fast_forward_linked(entry).written or written
                except Exception as e:
                    logger.exception(f"Error fast-forwarding {entry.external_path} after HEAD moved: {e}")
                    failures.append(str(entry.external_path))
        if failures:
            result = ReconcileResult(action="error", path=str(working_dir), detail=", ".join(failures))
        else:
            result = ReconcileResult(
                action="fast_forwarded" if written else "unchanged",
                path=str(working_dir),
                written=written,
            )
        record_reconcile(EventSource.REPOSITORY_HEAD.value, result.action)
        return result

    def _fast_forward_linked(self, entry: LinkEntry) -> ReconcileResult:
        repository = entry.repository
        relative_path = relative_to_repository(repository, entry.repo_path)
        repository.refresh_index(relative_path)

        try:
            record = read_script(entry.external_path)
        except NoHeaderError as e:
            logger.warning(f"Not fast-forwarding {entry.external_path}: {e}")
            record_header_failure()
            return ReconcileResult(action="no_header", path=str(entry.repo_path), detail=e.reason)

        modified = repository.working_tree_status(relative_path) == WorkingTreeStatus.MODIFIED
        new_version = stamp_version(repository.head_commit_id(), modified)
        written = self.synchronizer.reconcile(
            SyncDirection.REPO_TO_EXTERNAL,
            name=record.name,
            external_path=entry.external_path,
            repo_path=entry.repo_path,
            external_content=record.content,
            old_version=stamp_version(record.version, record.dirty),
            new_version=new_version,
        )
        return ReconcileResult(
            action="fast_forwarded" if written else "unchanged",
            path=str(entry.repo_path),
            written=written,
            linked_to=str(entry.external_path),
        )

    def _unlink(self, path: Path) -> ReconcileResult:
        entry = self.links.unlink(path)
        if entry is None:
            return ReconcileResult(action="ignored", path=str(path))
        logger.info(f"Unlinked {entry.external_path} <-> {entry.repo_path}")
        return ReconcileResult(action="unlinked", path=str(path))


def _same_dir(left: Path | str, right: Path | str) -> bool:
    left, right = Path(left), Path(right)
    return left == right or left.resolve() == right.resolve()
