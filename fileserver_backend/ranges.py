from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional


_DIGITS_RE = re.compile(r"[0-9]+")

RANGE_PREFIX = "bytes="


@dataclass(frozen=True)
class ByteRange:
    start: int
    end: int  # inclusive

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def content_range(self, size: int) -> str:
        return f"bytes {self.start}-{self.end}/{size}"


def _parse_offset(text: str) -> Optional[int]:
    if not _DIGITS_RE.fullmatch(text):
        return None
    return int(text)


def parse_range(header: Optional[str], size: int) -> Optional[ByteRange]:
    """Parse a single `Range: bytes=start-end` header against a file size.

    Anything unusable yields None and the caller serves the whole file. Only
    the first range of a multi-range header is considered, and its trailing
    segments make the end unparsable, so it falls back to the end of file.
    """
    if not header or not header.startswith(RANGE_PREFIX):
        return None

    value = header[len(RANGE_PREFIX):]
    start_text, _, end_text = value.partition("-")
    start = _parse_offset(start_text)
    if start is None:
        return None

    end = _parse_offset(end_text)
    if end is None:
        end = size - 1

    if start <= end < size:
        return ByteRange(start, end)
    return None
