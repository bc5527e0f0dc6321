"""Error taxonomy for header parsing, matching and repository access."""
from __future__ import annotations

from pathlib import Path
from typing import Sequence


class ScriptLinkError(Exception):
    """Base class for every error raised by scriptlink."""


class NoHeaderError(ScriptLinkError):
    """The first line of an external file is not a `//name - version` stamp."""

    def __init__(self, path: Path | str | None = None, reason: str = "no header"):
        self.path = path
        self.reason = reason
        where = f"{path}: " if path else ""
        super().__init__(f"{where}unable to recognize script ({reason})")


class NoMatchError(ScriptLinkError):
    def __init__(self, name: str, version: str):
        self.name = name
        self.version = version
        super().__init__(f"No matches found for {name} version {version or '<none>'}")


class AmbiguousMatchError(ScriptLinkError):
    """More than one repository, or more than one path in a repository, matched."""

    def __init__(self, name: str, repositories: Sequence[str], paths: Sequence[str] = ()):
        self.name = name
        self.repositories = list(repositories)
        self.paths = list(paths)
        if len(self.repositories) > 1:
            message = (
                f"Multiple repositories matched {name}: {', '.join(self.repositories)} "
                "(is the same repository tracked twice?)"
            )
        else:
            repo = self.repositories[0] if self.repositories else "<unknown>"
            message = f"Multiple files matched {name} in {repo}: {', '.join(self.paths)}"
        super().__init__(message)


class GitCommandError(ScriptLinkError):
    def __init__(self, args: Sequence[str], returncode: int, stderr: str = ""):
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = (stderr or "").strip()
        super().__init__(
            f"git {' '.join(self.args_list)} failed ({returncode}): {self.stderr or 'no output'}"
        )


class UnsupportedPlatformError(ScriptLinkError):
    pass
