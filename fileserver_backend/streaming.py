from __future__ import annotations

import logging
import mimetypes
import os
from pathlib import Path
from typing import AsyncIterator, Optional
from urllib.parse import quote

import aiofiles
from fastapi import HTTPException
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import StreamingResponse

from .config import STREAM_CHUNK_SIZE
from .ranges import parse_range


log = logging.getLogger(__name__)


def guess_media_type(path: Path) -> str:
    media_type, _ = mimetypes.guess_type(path.name)
    return media_type or "application/octet-stream"


def content_disposition(filename: str) -> str:
    """Attachment header that survives quotes and non-ASCII names."""
    escaped = filename.replace("\\", "\\\\").replace('"', '\\"')
    escaped = escaped.replace("\r", " ").replace("\n", " ")
    ascii_name = escaped.encode("ascii", "replace").decode("ascii")
    value = f'attachment; filename="{ascii_name}"'
    if ascii_name != escaped:
        value += f"; filename*=utf-8''{quote(filename, safe='')}"
    return value


async def _iter_file(handle, length: int) -> AsyncIterator[bytes]:
    # The handle is already positioned at the first byte to send.
    remaining = length
    try:
        while remaining > 0:
            chunk = await handle.read(min(STREAM_CHUNK_SIZE, remaining))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk
    finally:
        await handle.close()


async def open_file_response(
    path: Path,
    range_header: Optional[str],
    client: str,
) -> StreamingResponse:
    """Stream a file, honoring a single byte range when one is usable.

    Missing or unopenable files raise a 404; a failed stat or seek after a
    successful open raises a 500. Malformed ranges fall back to the full file.
    """
    try:
        handle = await aiofiles.open(path, "rb")
    except OSError:
        raise HTTPException(status_code=404, detail="Not found")

    try:
        stat = await run_in_threadpool(os.fstat, handle.fileno())
    except OSError as e:
        await handle.close()
        log.warning("Could not stat %s: %s", path, e)
        raise HTTPException(status_code=500, detail="Internal error")

    size = stat.st_size
    headers = {
        "Accept-Ranges": "bytes",
        "Content-Disposition": content_disposition(path.name),
    }

    byte_range = parse_range(range_header, size)
    if byte_range is not None:
        try:
            await handle.seek(byte_range.start)
        except OSError as e:
            await handle.close()
            log.warning("Could not seek %s to %d: %s", path, byte_range.start, e)
            raise HTTPException(status_code=500, detail="Internal error")

        log.info(
            "File download (partial) client=%s file=%s range=%d-%d",
            client, path, byte_range.start, byte_range.end,
        )
        headers["Content-Range"] = byte_range.content_range(size)
        headers["Content-Length"] = str(byte_range.length)
        return StreamingResponse(
            _iter_file(handle, byte_range.length),
            status_code=206,
            headers=headers,
            media_type=guess_media_type(path),
        )

    log.info("File download (full) client=%s file=%s size=%d", client, path, size)
    headers["Content-Length"] = str(size)
    return StreamingResponse(
        _iter_file(handle, size),
        status_code=200,
        headers=headers,
        media_type=guess_media_type(path),
    )
