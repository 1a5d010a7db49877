import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import FileResponse, JSONResponse, Response, StreamingResponse
from starlette.background import BackgroundTask

from cineflow.config import Settings
from cineflow.dao.playlist_cache.memory import InMemoryPlaylistCache
from cineflow.dao.playlist_retrieval.loader import PlaylistLoader
from cineflow.errors import CineflowError
from cineflow.services.playlist import PlaylistService
from cineflow.services.stream_proxy import StreamProxy, build_response_headers

logger = logging.getLogger(__name__)

PLAYLIST_MEDIA_TYPE = "audio/x-mpegurl"
PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"]
# nginx convention for a client that hung up before the response
CLIENT_CLOSED_REQUEST = 499

PREFLIGHT_HEADERS = [
    (b"access-control-allow-origin", b"*"),
    (b"access-control-allow-methods", b"GET, POST, OPTIONS"),
    (
        b"access-control-allow-headers",
        b"Origin, X-Requested-With, Content-Type, Accept, Range",
    ),
]


class PreflightMiddleware:
    """Answers every OPTIONS request itself and marks all responses cross-origin.

    Plain ASGI rather than ``BaseHTTPMiddleware`` so streamed bodies and
    client disconnects reach the endpoint untouched.
    """

    def __init__(self, app) -> None:
        self.app = app

    async def __call__(self, scope, receive, send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        if scope["method"] == "OPTIONS":
            await send(
                {
                    "type": "http.response.start",
                    "status": 200,
                    "headers": PREFLIGHT_HEADERS + [(b"content-length", b"2")],
                }
            )
            await send({"type": "http.response.body", "body": b"OK"})
            return

        async def send_with_origin(message) -> None:
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                if not any(
                    k.lower() == b"access-control-allow-origin" for k, _ in headers
                ):
                    headers.append((b"access-control-allow-origin", b"*"))
                message = {**message, "headers": headers}
            await send(message)

        await self.app(scope, receive, send_with_origin)


def _proxy_target(request: Request, prefix: str) -> str:
    raw_path = request.scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else request.url.path
    target = path[len(prefix) :] or "/"
    query = request.scope.get("query_string", b"")
    if query:
        target = f"{target}?{query.decode('latin-1')}"
    return target


async def _wait_for_disconnect(request: Request) -> None:
    while True:
        message = await request.receive()
        if message["type"] == "http.disconnect":
            return


async def _open_unless_disconnected(
    request: Request, stream_proxy: StreamProxy
) -> Optional[httpx.Response]:
    """Open the upstream response, or give up as soon as the client leaves.

    Returns ``None`` when the client disconnected first. The pending upstream
    request is cancelled before returning, so its socket is torn down.
    """
    opening = asyncio.ensure_future(
        stream_proxy.open(
            request.method,
            _proxy_target(request, stream_proxy.prefix),
            range_header=request.headers.get("range"),
        )
    )
    leaving = asyncio.ensure_future(_wait_for_disconnect(request))
    try:
        await asyncio.wait({opening, leaving}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        client_left = leaving.done()
        leaving.cancel()
        if not opening.done():
            opening.cancel()
        await asyncio.gather(opening, leaving, return_exceptions=True)

    if opening.cancelled():
        logger.debug("Client left before upstream answered, request cancelled")
        return None
    upstream = opening.result()
    if client_left:
        logger.debug("Client left as upstream answered, closing response")
        await upstream.aclose()
        return None
    return upstream


def create_app(
    settings: Settings,
    playlist_service: Optional[PlaylistService] = None,
    stream_proxy: Optional[StreamProxy] = None,
) -> FastAPI:
    if playlist_service is None:
        playlist_service = PlaylistService(
            loader=PlaylistLoader.from_settings(settings),
            cache=InMemoryPlaylistCache(ttl_seconds=settings.cache_seconds),
        )
    if stream_proxy is None:
        stream_proxy = StreamProxy(
            settings.upstream_host,
            settings.upstream_port,
            prefix=settings.proxy_prefix,
            connect_timeout=settings.upstream_connect_timeout,
            read_timeout=settings.upstream_read_timeout,
        )

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        logger.info("Playlist API: /api/playlist")
        logger.info(
            f"Stream proxy: {stream_proxy.prefix}/* -> {stream_proxy.authority}"
        )
        yield
        await stream_proxy.aclose()

    app = FastAPI(title="cineflow", lifespan=lifespan)
    app.add_middleware(PreflightMiddleware)
    app.state.playlist_service = playlist_service
    app.state.stream_proxy = stream_proxy

    @app.exception_handler(CineflowError)
    async def handle_cineflow_error(_: Request, exc: CineflowError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get("/api/playlist")
    async def get_playlist() -> Response:
        content = await playlist_service.get_playlist()
        return Response(content=content, media_type=PLAYLIST_MEDIA_TYPE)

    @app.get("/api/debug")
    async def get_debug() -> dict:
        sources = playlist_service.loader.describe()
        return {
            "sources": {
                name: "SET" if configured else "NOT SET"
                for name, configured in sources.items()
            },
            "upstream": stream_proxy.authority,
            "proxy_prefix": stream_proxy.prefix,
            "cache_age_seconds": playlist_service.cache_age(),
        }

    async def proxy_stream(request: Request) -> Response:
        upstream = await _open_unless_disconnected(request, stream_proxy)
        if upstream is None:
            return Response(status_code=CLIENT_CLOSED_REQUEST)
        # closes upstream even if the client leaves before the body starts
        response = StreamingResponse(
            stream_proxy.relay(upstream),
            status_code=upstream.status_code,
            background=BackgroundTask(upstream.aclose),
        )
        response.raw_headers = build_response_headers(upstream.headers)
        return response

    app.add_api_route(stream_proxy.prefix, proxy_stream, methods=PROXY_METHODS)
    app.add_api_route(
        stream_proxy.prefix + "/{path:path}", proxy_stream, methods=PROXY_METHODS
    )

    @app.get("/{path:path}")
    async def serve_frontend(path: str) -> Response:
        root = os.path.abspath(settings.static_dir)
        candidate = os.path.abspath(os.path.join(root, path))
        inside = candidate.startswith(root + os.sep)
        if path and inside and os.path.isfile(candidate):
            return FileResponse(candidate)
        index = os.path.join(root, "index.html")
        if os.path.isfile(index):
            return FileResponse(index)
        return JSONResponse(
            status_code=404,
            content={
                "kind": "not_found",
                "error": "Front-end build missing",
                "detail": f"No index.html in {root}",
            },
        )

    return app
