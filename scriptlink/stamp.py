"""Parse and render the one-line `//name - version` stamp of external script files."""
from __future__ import annotations

import re
from pathlib import Path

from scriptlink.errors import NoHeaderError
from scriptlink.models import ScriptRecord

DIRTY_MARKER = "+"

_HEADER_PATTERN = re.compile(r"^\ufeff?\s*//\s*(.+) -\s?(.*)$")


def parse_header(data: bytes, path: Path | str | None = None) -> ScriptRecord:
    """Split an external file into its stamp and body.

    The body is everything after the first newline, byte for byte. A version
    ending in the dirty marker (or an empty version) marks a script whose
    content may not correspond to any commit.
    """
    first_line, _, content = data.partition(b"\n")
    try:
        line = first_line.decode("utf-8")
    except UnicodeDecodeError:
        raise NoHeaderError(path, "header is not valid UTF-8") from None

    match = _HEADER_PATTERN.match(line.rstrip("\r"))
    if not match:
        raise NoHeaderError(path)

    name = match.group(1).strip()
    if not name:
        raise NoHeaderError(path, "empty script name")
    version = match.group(2).strip()
    dirty = False
    if version.endswith(DIRTY_MARKER):
        version = version[: -len(DIRTY_MARKER)]
        dirty = True
    if version == "":
        dirty = True

    return ScriptRecord(name=name, version=version, dirty=dirty, content=content)


def render_header(name: str, version: str, content: bytes) -> bytes:
    return f"//{name} - {version}\n".encode("utf-8") + content


def stamp_version(version: str, dirty: bool) -> str:
    return f"{version}{DIRTY_MARKER}" if dirty else version


def read_script(path: Path) -> ScriptRecord:
    return parse_header(Path(path).read_bytes(), path)
