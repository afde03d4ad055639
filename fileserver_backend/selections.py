from __future__ import annotations

import threading
import uuid
from collections import OrderedDict
from typing import Iterable, Optional

from .config import DEFAULT_CACHE_CAPACITY


class SelectionCache:
    """Fixed-size, least-recently-used map of selection id -> file list.

    The lock only guards the in-memory map; callers do any disk work before
    inserting. Lists are copied in and out so no caller holds a live entry.
    """

    def __init__(self, capacity: int = DEFAULT_CACHE_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._entries: OrderedDict[str, list[str]] = OrderedDict()
        self._lock = threading.Lock()

    def insert(self, files: Iterable[str]) -> str:
        selection_id = str(uuid.uuid4())
        stored = list(files)
        with self._lock:
            self._entries[selection_id] = stored
            while len(self._entries) > self.capacity:
                self._entries.popitem(last=False)
        return selection_id

    def lookup(self, selection_id: str) -> Optional[list[str]]:
        with self._lock:
            files = self._entries.get(selection_id)
            if files is None:
                return None
            self._entries.move_to_end(selection_id)
            return list(files)

    def __contains__(self, selection_id: object) -> bool:
        with self._lock:
            return selection_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
