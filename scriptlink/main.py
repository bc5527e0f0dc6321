"""scriptlink entry point: watch external scripts and keep them in step with repositories.

Usage:
  python -m scriptlink.main ~/src/my-scripts ~/src/shared-lib
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from scriptlink import config
from scriptlink.driver import ReconciliationDriver
from scriptlink.errors import ScriptLinkError
from scriptlink.file_watcher import file_watcher
from scriptlink.observability import initialize as initialize_observability, shutdown as shutdown_observability
from scriptlink.platform_dirs import external_script_dir
from scriptlink.repo.git import GitRepository

logger = logging.getLogger("scriptlink")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Link externally edited scripts to the repository files they came from."
    )
    parser.add_argument("repositories", nargs="+", type=Path, help="Repository working directories to track")
    return parser


async def run(repositories: list[GitRepository], external_dir: Path) -> None:
    driver = ReconciliationDriver(repositories)
    await file_watcher.start(driver, external_dir, [r.working_dir for r in repositories])
    try:
        await file_watcher.wait()
    finally:
        await file_watcher.stop()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO))

    try:
        repositories = [GitRepository(path) for path in args.repositories]
        external_dir = external_script_dir()
    except ScriptLinkError as e:
        logger.error(str(e))
        return 1

    for repository in repositories:
        logger.info(f"Tracking {repository.working_dir}")
    logger.info(f"External scripts: {external_dir}")

    initialize_observability()
    try:
        asyncio.run(run(repositories, external_dir))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    finally:
        shutdown_observability()
    return 0


if __name__ == "__main__":
    sys.exit(main())
