"""File watcher service using watchfiles.

Monitors the external editor directory and every repository working
directory, and feeds classified events to the reconciliation driver one at
a time.
"""
from __future__ import annotations

import asyncio
import fnmatch
import logging
from pathlib import Path
from typing import Iterable, Optional, Sequence

from watchfiles import awatch, Change

from scriptlink import config
from scriptlink.models import EventKind, EventSource, FileEvent

logger = logging.getLogger("scriptlink.watcher")

_KIND_ORDER = {EventKind.DELETE: 0, EventKind.CREATE: 1, EventKind.UPDATE: 2}
_SOURCE_ORDER = {EventSource.EXTERNAL: 0, EventSource.REPOSITORY: 1, EventSource.REPOSITORY_HEAD: 2}


def _is_under(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True


class FileWatcher:
    """Background file watcher that hands each change to the driver.

    Uses `watchfiles` (Rust-accelerated) for efficient watching.
    """

    def __init__(
        self,
        external_glob: str | None = None,
        extension: str | None = None,
        settle_delay: float | None = None,
    ):
        self.external_glob = external_glob or config.EXTERNAL_GLOB
        self.extension = extension or config.SCRIPT_EXTENSION
        self.settle_delay = config.SETTLE_DELAY_SECONDS if settle_delay is None else settle_delay
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._running = False

    async def start(self, driver, external_dir: Path, repository_dirs: Sequence[Path]) -> None:
        """Start watching in a background task."""
        if self._running:
            logger.warning("File watcher already running")
            return

        self._running = True
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(
            self._watch_loop(driver, Path(external_dir), [Path(p) for p in repository_dirs])
        )
        logger.info(f"File watcher started for {external_dir} and {len(repository_dirs)} repositories")

    async def stop(self) -> None:
        """Stop the file watcher."""
        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("File watcher stopped")

    async def wait(self) -> None:
        if self._task:
            await self._task

    @property
    def is_running(self) -> bool:
        return self._running

    async def _watch_loop(self, driver, external_dir: Path, repository_dirs: list[Path]) -> None:
        """Main watching loop."""
        watch_paths = [p for p in [external_dir, *repository_dirs] if p.exists()]
        if external_dir not in watch_paths:
            logger.warning(f"External script directory {external_dir} does not exist yet")

        if not watch_paths:
            logger.warning("No watch paths exist, watcher has nothing to monitor")
            self._running = False
            return

        logger.info(f"Watching {len(watch_paths)} directories: {[str(p) for p in watch_paths]}")

        try:
            async for changes in awatch(*watch_paths, watch_filter=None, stop_event=self._stop_event):
                if not self._running:
                    break

                await self.process_batch(driver, changes, external_dir, repository_dirs)
        except asyncio.CancelledError:
            logger.info("File watcher task cancelled")
        except Exception as e:
            logger.error(f"File watcher error: {e}")
        finally:
            self._running = False

    async def process_batch(
        self,
        driver,
        changes: Iterable[tuple[Change, str]],
        external_dir: Path,
        repository_dirs: Sequence[Path],
    ) -> list:
        """Classify and dispatch one batch; a failing batch does not stop the watcher."""
        events = self.classify_changes(changes, external_dir, repository_dirs)
        if not events:
            return []
        logger.info(f"Detected {len(events)} file changes, reconciling...")
        try:
            return await self.dispatch(driver, events)
        except Exception as e:
            logger.error(f"Error reconciling changed files: {e}")
            return []

    async def dispatch(self, driver, events: Sequence[FileEvent]) -> list:
        """Hand events to the driver serially, after letting writers settle.

        Each event runs in a worker thread so the git subprocesses it starts
        do not block the event loop; the next event waits for the previous one.
        """
        if self.settle_delay > 0 and any(e.kind != EventKind.DELETE for e in events):
            await asyncio.sleep(self.settle_delay)
        results = []
        for event in events:
            logger.debug(f"{event.source.value} {event.kind.value}: {event.path}")
            results.append(await asyncio.to_thread(driver.handle, event))
        return results

    def classify_changes(
        self,
        changes: Iterable[tuple[Change, str]],
        external_dir: Path,
        repository_dirs: Sequence[Path],
    ) -> list[FileEvent]:
        """Classify raw watchfiles changes into file events.

        External scripts must sit directly in the external directory and
        match the external glob; repository files must carry the script
        extension and live outside `.git`. Writes to a repository's HEAD or
        branch refs collapse into one head-moved event per repository.
        """
        result: list[FileEvent] = []
        head_moves: list[Path] = []
        for change_type, path_str in changes:
            path = Path(path_str)
            kind = _event_kind(change_type)
            if kind is None:
                continue

            if path.parent == external_dir:
                if fnmatch.fnmatch(path.name, self.external_glob):
                    result.append(FileEvent(kind, path, EventSource.EXTERNAL))
                continue

            if ".git" in path.parts:
                root = _head_ref_owner(path, repository_dirs)
                if root is not None and root not in head_moves:
                    head_moves.append(root)
                continue

            if path.suffix != self.extension:
                continue
            if any(_is_under(path, root) for root in repository_dirs):
                result.append(FileEvent(kind, path, EventSource.REPOSITORY))

        result.extend(FileEvent(EventKind.UPDATE, root, EventSource.REPOSITORY_HEAD) for root in head_moves)
        result.sort(key=lambda e: (_SOURCE_ORDER[e.source], str(e.path), _KIND_ORDER[e.kind]))
        return result


def _head_ref_owner(path: Path, repository_dirs: Sequence[Path]) -> Optional[Path]:
    for root in repository_dirs:
        git_dir = root / ".git"
        if not _is_under(path, git_dir):
            continue
        ref = path.relative_to(git_dir).as_posix()
        if ref in ("HEAD", "HEAD.lock") or ref.startswith("refs/heads/"):
            return root
    return None


def _event_kind(change_type: Change) -> Optional[EventKind]:
    if change_type == Change.added:
        return EventKind.CREATE
    if change_type == Change.modified:
        return EventKind.UPDATE
    if change_type == Change.deleted:
        return EventKind.DELETE
    return None


# Singleton instance
file_watcher = FileWatcher()
