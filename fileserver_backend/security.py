from __future__ import annotations

import os
import re
from pathlib import Path


# Backslashes and drive letters only mean something on Windows; elsewhere they
# are ordinary file name characters.
IS_WINDOWS = os.name == "nt"

_POSIX_SEPARATORS_RE = re.compile(r"/+")
_WINDOWS_SEPARATORS_RE = re.compile(r"[\\/]+")
_DRIVE_RE = re.compile(r"^[A-Za-z]:$")


def sanitize_path(raw: str, windows: bool = IS_WINDOWS) -> str:
    """Reduce a client-supplied path to its plain name segments.

    Parent/current directory markers, empty segments and leading separators
    (plus drive prefixes on Windows) are dropped rather than rejected, so
    hostile input degrades to a shorter (possibly empty) path. The result is
    '/'-joined and joining it onto any root can never point above that root.
    """
    if not isinstance(raw, str) or not raw:
        return ""
    separators = _WINDOWS_SEPARATORS_RE if windows else _POSIX_SEPARATORS_RE
    parts: list[str] = []
    for segment in separators.split(raw):
        if segment in ("", ".", ".."):
            continue
        if windows and not parts and _DRIVE_RE.match(segment):
            continue
        parts.append(segment)
    return "/".join(parts)


def resolve_under_root(root: Path, relative: str) -> Path:
    """Join a sanitized relative path onto root."""
    if not relative:
        return root
    return root.joinpath(*relative.split("/"))
