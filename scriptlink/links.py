"""One-to-one links between external script files and repository working files."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Iterator, Optional

from scriptlink.models import LinkEntry

logger = logging.getLogger("scriptlink.links")


def _key(path: Path | str) -> Path:
    return Path(os.path.abspath(path))


class LinkTable:
    """Bidirectional mapping where both directions are functions.

    Linking a path that already participates in a link (on either side)
    drops the old link first, so no external file maps to two repository
    files and no repository file maps to two external files.
    """

    def __init__(self):
        self._by_external: dict[Path, LinkEntry] = {}
        self._by_repo: dict[Path, LinkEntry] = {}

    def __len__(self) -> int:
        return len(self._by_external)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, Path)):
            return False
        key = _key(path)
        return key in self._by_external or key in self._by_repo

    def link(self, external_path: Path | str, repo_path: Path | str, repository: Any) -> LinkEntry:
        entry = LinkEntry(_key(external_path), _key(repo_path), repository)
        self._drop(self._by_external.get(entry.external_path))
        self._drop(self._by_repo.get(entry.repo_path))
        self._by_external[entry.external_path] = entry
        self._by_repo[entry.repo_path] = entry
        logger.debug(f"Linked {entry.external_path} <-> {entry.repo_path}")
        return entry

    def lookup_by_external(self, path: Path | str) -> Optional[Path]:
        entry = self._by_external.get(_key(path))
        return entry.repo_path if entry else None

    def lookup_by_repo(self, path: Path | str) -> Optional[Path]:
        entry = self._by_repo.get(_key(path))
        return entry.external_path if entry else None

    def entry_for_external(self, path: Path | str) -> Optional[LinkEntry]:
        return self._by_external.get(_key(path))

    def entry_for_repo(self, path: Path | str) -> Optional[LinkEntry]:
        return self._by_repo.get(_key(path))

    def unlink(self, path: Path | str) -> Optional[LinkEntry]:
        """Remove whichever link holds `path` on either side; no-op when absent."""
        key = _key(path)
        entry = self._by_external.get(key) or self._by_repo.get(key)
        self._drop(entry)
        if entry:
            logger.debug(f"Unlinked {entry.external_path} <-> {entry.repo_path}")
        return entry

    def entries(self) -> Iterator[LinkEntry]:
        return iter(list(self._by_external.values()))

    def _drop(self, entry: Optional[LinkEntry]) -> None:
        if entry is None:
            return
        if self._by_external.get(entry.external_path) is entry:
            del self._by_external[entry.external_path]
        if self._by_repo.get(entry.repo_path) is entry:
            del self._by_repo[entry.repo_path]
