from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response
from pydantic import BaseModel

from fileserver_backend.batch_config import render_batch_config
from fileserver_backend.config import (
    DEFAULT_CACHE_CAPACITY,
    DEFAULT_PARALLEL_MAX,
    DEFAULT_PORT,
    ServerContext,
    default_public_host,
    default_root,
    resolve_root,
)
from fileserver_backend.expansion import expand_selection
from fileserver_backend.listing import render_directory
from fileserver_backend.security import resolve_under_root, sanitize_path
from fileserver_backend.selections import SelectionCache
from fileserver_backend.streaming import open_file_response


log = logging.getLogger("fileserver")


class SelectionRequest(BaseModel):
    files: list[str] = []
    dirs: list[str] = []


class SelectionResponse(BaseModel):
    id: str


def get_context(request: Request) -> ServerContext:
    return request.app.state.context


def get_selections(request: Request) -> SelectionCache:
    return request.app.state.selections


def _client(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def _listing_response(directory, base: str) -> HTMLResponse:
    try:
        page = await run_in_threadpool(render_directory, directory, base)
    except OSError as e:
        log.warning("Could not list %s: %s", directory, e)
        raise HTTPException(status_code=500, detail="Internal error")
    return HTMLResponse(page)


def create_app(context: ServerContext) -> FastAPI:
    app = FastAPI(title="LAN file server")
    app.state.context = context
    app.state.selections = SelectionCache(context.cache_capacity)

    @app.get("/")
    @app.get("/files/")
    async def root_view(request: Request, ctx: ServerContext = Depends(get_context)) -> Response:
        if ctx.root.is_file():
            return await open_file_response(ctx.root, None, _client(request))
        return await _listing_response(ctx.root, "")

    @app.get("/files/{path:path}")
    async def file_view(
        path: str,
        request: Request,
        ctx: ServerContext = Depends(get_context),
    ) -> Response:
        relative = sanitize_path(path)
        full_path = resolve_under_root(ctx.root, relative)
        if not full_path.exists():
            raise HTTPException(status_code=404, detail="Not found")
        if full_path.is_dir():
            return await _listing_response(full_path, relative)
        return await open_file_response(full_path, request.headers.get("range"), _client(request))

    @app.post("/register-selection", response_model=SelectionResponse)
    async def register_selection(
        payload: SelectionRequest,
        ctx: ServerContext = Depends(get_context),
        selections: SelectionCache = Depends(get_selections),
    ) -> SelectionResponse:
        # Walk the disk before touching the cache; its lock never waits on I/O.
        files = await run_in_threadpool(expand_selection, ctx.root, payload.files, payload.dirs)
        selection_id = selections.insert(files)
        log.info("Registered selection %s with %d files", selection_id, len(files))
        return SelectionResponse(id=selection_id)

    @app.get("/config/{selection_id}")
    async def batch_config(
        selection_id: str,
        ctx: ServerContext = Depends(get_context),
        selections: SelectionCache = Depends(get_selections),
    ) -> PlainTextResponse:
        files = selections.lookup(selection_id)
        if files is None:
            raise HTTPException(status_code=404, detail="Selection not found")
        body = render_batch_config(files, ctx.base_url, ctx.parallel_max)
        return PlainTextResponse(body)

    @app.get("/healthz")
    async def healthz() -> JSONResponse:
        return JSONResponse({"ok": True})

    return app


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Wifi file server tool")
    parser.add_argument("-f", "--folder-path", default=default_root(), help="root folder path of file server")
    parser.add_argument("-p", "--port-number", type=int, default=DEFAULT_PORT, help="port number")
    parser.add_argument(
        "-j", "--parallel", type=int, default=DEFAULT_PARALLEL_MAX,
        help="max parallel transfers in generated batch configs",
    )
    parser.add_argument("--public-host", default=None, help="host name written into batch config urls")
    parser.add_argument("--log-level", default="info", choices=["debug", "info", "warning", "error"])
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        root = resolve_root(args.folder_path)
    except (OSError, RuntimeError) as e:
        print(f"Error: Invalid root path {args.folder_path!r}.\nDetails: {e}", file=sys.stderr)
        sys.exit(1)

    context = ServerContext(
        root=root,
        port=args.port_number,
        parallel_max=args.parallel,
        public_host=args.public_host or default_public_host(),
        cache_capacity=DEFAULT_CACHE_CAPACITY,
    )

    import uvicorn

    print(f"Server running at {context.base_url}")
    # uvicorn exits with status 1 on its own if the port cannot be bound.
    uvicorn.run(create_app(context), host="0.0.0.0", port=context.port, log_level=args.log_level)


if __name__ == "__main__":
    main()
