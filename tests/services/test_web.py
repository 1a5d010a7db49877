import asyncio
import os
import tempfile
import unittest
from typing import List

import httpx
from fastapi.testclient import TestClient

from cineflow.config import Settings
from cineflow.dao.playlist_cache.memory import InMemoryPlaylistCache
from cineflow.dao.playlist_retrieval.base import BasePlaylistSource
from cineflow.dao.playlist_retrieval.loader import PlaylistLoader
from cineflow.services.playlist import PlaylistService
from cineflow.services.stream_proxy import StreamProxy
from cineflow.services.web import create_app

PLAYLIST = '#EXTM3U\n#EXTINF:-1 group-title="News",CNN\nhttp://provider.test:8880/1.ts\n'


class StaticSource(BasePlaylistSource):
    name = "inline"

    def __init__(self, content=None) -> None:
        self.content = content
        self.loads = 0

    def is_configured(self) -> bool:
        return self.content is not None

    def load(self) -> str:
        self.loads += 1
        return self.content


class TrackedStream(httpx.AsyncByteStream):
    def __init__(self, chunks: List[bytes], hang: bool = False) -> None:
        self.chunks = chunks
        self.hang = hang
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk
        if self.hang:
            await asyncio.Event().wait()

    async def aclose(self) -> None:
        self.closed = True


class StallingTransport(httpx.AsyncBaseTransport):
    """Accepts the request, then stalls before sending response headers."""

    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.cancelled = False
        self.completed = False

    async def handle_async_request(self, request):
        self.started.set()
        try:
            await asyncio.sleep(3)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        self.completed = True
        return httpx.Response(200, content=b"too late")


def build_app(handler=None, content=PLAYLIST, static_dir="dist", transport=None):
    settings = Settings(upstream_host="provider.test", static_dir=static_dir)
    source = StaticSource(content)
    playlist_service = PlaylistService(
        PlaylistLoader([source]), InMemoryPlaylistCache(ttl_seconds=3600)
    )
    if handler is not None:
        transport = httpx.MockTransport(handler)
    client = None
    if transport is not None:
        client = httpx.AsyncClient(transport=transport)
    proxy = StreamProxy("provider.test", 8880, client=client)
    return create_app(settings, playlist_service, proxy), source


class TestPlaylistEndpoint(unittest.TestCase):
    def test_returns_playlist_with_mpegurl_type(self):
        app, source = build_app()
        client = TestClient(app)

        first = client.get("/api/playlist")
        second = client.get("/api/playlist")

        self.assertEqual(first.status_code, 200)
        self.assertTrue(first.headers["content-type"].startswith("audio/x-mpegurl"))
        self.assertEqual(first.text, PLAYLIST)
        self.assertEqual(second.content, first.content)
        self.assertEqual(source.loads, 1)

    def test_not_configured_is_structured_404(self):
        app, _ = build_app(content=None)
        response = TestClient(app).get("/api/playlist")

        self.assertEqual(response.status_code, 404)
        body = response.json()
        self.assertEqual(body["kind"], "source_unavailable")
        self.assertEqual(body["error"], "Playlist not configured")
        self.assertIn("detail", body)

    def test_debug_reports_sources_without_values(self):
        app, _ = build_app()
        client = TestClient(app)
        self.assertIsNone(client.get("/api/debug").json()["cache_age_seconds"])

        client.get("/api/playlist")
        body = client.get("/api/debug").json()
        self.assertEqual(body["sources"], {"inline": "SET"})
        self.assertEqual(body["upstream"], "provider.test:8880")
        self.assertEqual(body["proxy_prefix"], "/stream-proxy")
        self.assertIsNotNone(body["cache_age_seconds"])


class TestPreflight(unittest.TestCase):
    def test_options_never_reaches_upstream(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200)

        app, _ = build_app(handler)
        client = TestClient(app)
        for path in ("/stream-proxy/live/1.ts", "/api/playlist", "/anything"):
            with self.subTest(path=path):
                response = client.options(path)
                self.assertEqual(response.status_code, 200)
                self.assertEqual(response.headers["access-control-allow-origin"], "*")
                self.assertIn("Range", response.headers["access-control-allow-headers"])
        self.assertEqual(calls, [])

    def test_regular_responses_are_cross_origin(self):
        app, _ = build_app()
        response = TestClient(app).get("/api/playlist")
        self.assertEqual(response.headers["access-control-allow-origin"], "*")


class TestProxyEndpoint(unittest.TestCase):
    def test_range_request_relayed(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(
                206,
                headers={
                    "Content-Type": "video/mp4",
                    "Content-Range": "bytes 1000-1004/9000",
                    "Accept-Ranges": "bytes",
                },
                content=b"abcde",
            )

        app, _ = build_app(handler)
        response = TestClient(app).get(
            "/stream-proxy/movie/u/p/1.mp4?token=x%20y",
            headers={"Range": "bytes=1000-", "Cookie": "secret=1"},
        )

        self.assertEqual(response.status_code, 206)
        self.assertEqual(response.content, b"abcde")
        self.assertEqual(response.headers["content-range"], "bytes 1000-1004/9000")
        self.assertEqual(response.headers["content-type"], "video/mp4")
        self.assertEqual(
            response.headers["access-control-expose-headers"],
            "Content-Length, Content-Range, Content-Type",
        )

        upstream = seen[0]
        self.assertEqual(upstream.url.path, "/movie/u/p/1.mp4")
        self.assertEqual(upstream.url.query, b"token=x%20y")
        self.assertEqual(upstream.headers["range"], "bytes=1000-")
        self.assertEqual(upstream.headers["host"], "provider.test:8880")
        self.assertNotIn("cookie", upstream.headers)

    def test_no_inbound_range_means_no_upstream_range(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, content=b"ts")

        app, _ = build_app(handler)
        TestClient(app).get("/stream-proxy/live/1.ts")
        self.assertNotIn("range", seen[0].headers)

    def test_transfer_encoding_not_forwarded(self):
        def handler(request):
            return httpx.Response(
                200,
                headers={"Transfer-Encoding": "chunked", "X-Provider": "p1"},
                stream=TrackedStream([b"one", b"two"]),
            )

        app, _ = build_app(handler)
        with TestClient(app) as client:
            with client.stream("GET", "/stream-proxy/live/1.ts") as response:
                body = b"".join(response.iter_raw())
                raw_names = [name.lower() for name, _ in response.headers.raw]

        self.assertEqual(body, b"onetwo")
        self.assertEqual(response.headers["x-provider"], "p1")
        self.assertEqual(raw_names.count(b"transfer-encoding"), 0)

    def test_upstream_refused_is_structured_502(self):
        def handler(request):
            raise httpx.ConnectError("Connection refused", request=request)

        app, _ = build_app(handler)
        response = TestClient(app).get("/stream-proxy/live/1.ts")

        self.assertEqual(response.status_code, 502)
        body = response.json()
        self.assertEqual(body["kind"], "upstream_unreachable")
        self.assertEqual(body["error"], "Stream unavailable")
        self.assertIn("Connection refused", body["detail"])


class TestProxyClientDisconnect(unittest.IsolatedAsyncioTestCase):
    def scope(self):
        return {
            "type": "http",
            "asgi": {"version": "3.0"},
            "http_version": "1.1",
            "method": "GET",
            "scheme": "http",
            "path": "/stream-proxy/live/1.ts",
            "raw_path": b"/stream-proxy/live/1.ts",
            "root_path": "",
            "query_string": b"",
            "headers": [(b"host", b"testserver")],
            "client": ("127.0.0.1", 50000),
            "server": ("testserver", 80),
        }

    async def test_client_disconnect_cancels_upstream(self):
        stream = TrackedStream([b"first-chunk"], hang=True)
        app, _ = build_app(lambda request: httpx.Response(200, stream=stream))

        disconnected = asyncio.Event()
        request_sent = False
        messages = []

        async def receive():
            nonlocal request_sent
            if not request_sent:
                request_sent = True
                return {"type": "http.request", "body": b"", "more_body": False}
            await disconnected.wait()
            return {"type": "http.disconnect"}

        async def send(message):
            messages.append(message)
            if message["type"] == "http.response.body" and message.get("body"):
                disconnected.set()

        await asyncio.wait_for(app(self.scope(), receive, send), timeout=5)

        self.assertEqual(messages[0]["status"], 200)
        self.assertEqual(messages[1]["body"], b"first-chunk")
        self.assertTrue(stream.closed)

    async def test_disconnect_while_connecting_cancels_upstream(self):
        transport = StallingTransport()
        app, _ = build_app(transport=transport)

        request_sent = False
        messages = []

        async def receive():
            nonlocal request_sent
            if not request_sent:
                request_sent = True
                return {"type": "http.request", "body": b"", "more_body": False}
            await transport.started.wait()
            return {"type": "http.disconnect"}

        async def send(message):
            messages.append(message)

        await asyncio.wait_for(app(self.scope(), receive, send), timeout=2)

        self.assertTrue(transport.cancelled)
        self.assertFalse(transport.completed)
        statuses = [m["status"] for m in messages if "status" in m]
        self.assertNotIn(200, statuses)


class TestFrontend(unittest.TestCase):
    def test_serves_index_for_unknown_paths(self):
        with tempfile.TemporaryDirectory() as tmp:
            with open(os.path.join(tmp, "index.html"), "w") as f:
                f.write("<html>app</html>")
            with open(os.path.join(tmp, "app.js"), "w") as f:
                f.write("console.log(1)")

            app, _ = build_app(static_dir=tmp)
            client = TestClient(app)
            self.assertEqual(client.get("/series/dark").text, "<html>app</html>")
            self.assertEqual(client.get("/app.js").text, "console.log(1)")

    def test_missing_build_is_404(self):
        with tempfile.TemporaryDirectory() as tmp:
            app, _ = build_app(static_dir=tmp)
            response = TestClient(app).get("/")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["kind"], "not_found")


if __name__ == "__main__":
    unittest.main()
