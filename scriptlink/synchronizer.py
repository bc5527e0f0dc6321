"""Bring the stale side of a link up to date with the other side."""
from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path

from scriptlink.stamp import render_header

logger = logging.getLogger("scriptlink.sync")


class SyncDirection(str, Enum):
    EXTERNAL_TO_REPO = "external_to_repo"
    REPO_TO_EXTERNAL = "repo_to_external"


class FastForwardSynchronizer:
    """Rewrites files only when the write would change something.

    Versions are opaque commit ids (with an optional dirty marker) and are
    only ever compared for equality.
    """

    def push_to_repository(self, repo_path: Path, external_content: bytes) -> bool:
        """Copy an external script body over the repository working file.

        The repository side carries no stamp, so the body is written verbatim.
        """
        repo_path = Path(repo_path)
        if repo_path.exists() and repo_path.read_bytes() == external_content:
            return False
        logger.info(f"Updating working copy {repo_path} from external script")
        repo_path.write_bytes(external_content)
        return True

    def fast_forward_external(
        self,
        name: str,
        external_path: Path,
        repo_path: Path,
        external_content: bytes,
        old_version: str,
        new_version: str,
    ) -> bool:
        """Restamp the external script and replace its body with the working copy."""
        working_content = Path(repo_path).read_bytes()
        if new_version == old_version and working_content == external_content:
            return False
        logger.info(f"Fast-forwarding {external_path} to {new_version or '<none>'}")
        Path(external_path).write_bytes(render_header(name, new_version, working_content))
        return True

    def reconcile(
        self,
        direction: SyncDirection,
        *,
        name: str = "",
        external_path: Path | None = None,
        repo_path: Path,
        external_content: bytes,
        old_version: str = "",
        new_version: str = "",
    ) -> bool:
        if direction == SyncDirection.EXTERNAL_TO_REPO:
            return self.push_to_repository(repo_path, external_content)
        if external_path is None:
            raise ValueError("external_path is required to fast-forward an external script")
        return self.fast_forward_external(
            name, external_path, repo_path, external_content, old_version, new_version
        )
