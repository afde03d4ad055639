from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

from .security import resolve_under_root, sanitize_path


log = logging.getLogger(__name__)


def _dir_key(path: str) -> tuple[int, int] | None:
    try:
        st = os.stat(path)
    except OSError:
        return None
    return (st.st_dev, st.st_ino)


def expand_directories(root: Path, dirs: Iterable[str]) -> list[str]:
    """Flatten directories into the files beneath them, relative to root.

    Walks with an explicit worklist instead of recursion. Directories that
    cannot be listed are skipped. A directory reached again through one of its
    own ancestors (a symlink loop) is not descended into; symlinked aliases
    elsewhere are walked and their files recorded under the alias path.
    Returns a sorted list without duplicates.
    """
    root_str = str(root)
    # Each pending entry carries the physical ids of the directories above it.
    pending: list[tuple[str, frozenset[tuple[int, int]]]] = []
    for raw in dirs:
        pending.append((str(resolve_under_root(root, sanitize_path(raw))), frozenset()))

    found: set[str] = set()

    while pending:
        current, ancestors = pending.pop()
        key = _dir_key(current)
        if key is not None:
            if key in ancestors:
                log.debug("Not following directory loop at %s", current)
                continue
            ancestors = ancestors | {key}

        try:
            with os.scandir(current) as it:
                entries = list(it)
        except OSError as e:
            log.debug("Skipping unreadable directory %s: %s", current, e)
            continue

        for entry in entries:
            try:
                is_dir = entry.is_dir()
            except OSError:
                is_dir = False
            if is_dir:
                pending.append((entry.path, ancestors))
            else:
                rel = os.path.relpath(entry.path, root_str)
                found.add(rel.replace(os.sep, "/"))

    return sorted(found)


def expand_selection(root: Path, files: Iterable[str], dirs: Iterable[str]) -> list[str]:
    """Resolve a client selection into the final sorted, unique file list."""
    selected = {rel for rel in (sanitize_path(f) for f in files) if rel}
    selected.update(expand_directories(root, dirs))
    return sorted(selected)
