import logging
from typing import AsyncIterator, Dict, List, Optional, Tuple

import httpx

from cineflow.errors import UpstreamUnreachable

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "/stream-proxy"

# What a desktop media player (ffmpeg/mpv) sends; some providers reject anything else.
IMPERSONATION_HEADERS: Dict[str, str] = {
    "User-Agent": "Lavf/60.3.100",
    "Accept": "*/*",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "identity",
    "Connection": "keep-alive",
    "Icy-MetaData": "1",
}

STREAM_CORS_HEADERS: Dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Expose-Headers": "Content-Length, Content-Range, Content-Type",
}

DROPPED_RESPONSE_HEADERS = frozenset({b"transfer-encoding"})


def local_proxy_path(
    url: str, upstream_host: str, upstream_port: int, prefix: str = DEFAULT_PREFIX
) -> str:
    """Map a provider URL onto the local proxy route, leave anything else alone."""
    origin = f"http://{upstream_host}:{upstream_port}"
    if not url.startswith(origin):
        return url
    rest = url[len(origin) :]
    if rest and rest[0] not in "/?":
        return url
    return f"{prefix}{rest}"


def build_upstream_headers(
    authority: str, range_header: Optional[str] = None
) -> Dict[str, str]:
    """Fixed impersonation headers first, then the per-request overrides."""
    headers = dict(IMPERSONATION_HEADERS)
    headers["Host"] = authority

    overrides = {"Range": range_header}
    for name, value in overrides.items():
        if value is not None:
            headers[name] = value
    return headers


def build_response_headers(upstream: httpx.Headers) -> List[Tuple[bytes, bytes]]:
    raw: List[Tuple[bytes, bytes]] = [
        (name.lower().encode("latin-1"), value.encode("latin-1"))
        for name, value in STREAM_CORS_HEADERS.items()
    ]
    overridden = {name for name, _ in raw}
    for name, value in upstream.raw:
        key = name.lower()
        if key in DROPPED_RESPONSE_HEADERS or key in overridden:
            continue
        raw.append((key, value))
    return raw


class StreamProxy:
    """Forwards requests to the IPTV provider and relays the bytes back unbuffered.

    The provider only ever sees the impersonation headers plus ``Range``;
    nothing else from the browser request is passed on.
    """

    def __init__(
        self,
        upstream_host: str,
        upstream_port: int,
        prefix: str = DEFAULT_PREFIX,
        client: Optional[httpx.AsyncClient] = None,
        connect_timeout: float = 10.0,
        read_timeout: Optional[float] = None,
    ) -> None:
        self.upstream_host = upstream_host
        self.upstream_port = upstream_port
        self.prefix = prefix
        self.timeout = httpx.Timeout(
            connect=connect_timeout, read=read_timeout, write=10.0, pool=10.0
        )
        self._client = client

    @property
    def authority(self) -> str:
        return f"{self.upstream_host}:{self.upstream_port}"

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                limits=httpx.Limits(
                    max_connections=None, max_keepalive_connections=20
                ),
                follow_redirects=False,
            )
        return self._client

    def upstream_url(self, target: str) -> str:
        if not target.startswith("/"):
            target = "/" + target
        return f"http://{self.authority}{target}"

    async def open(
        self, method: str, target: str, range_header: Optional[str] = None
    ) -> httpx.Response:
        """Connect upstream and return once the response headers have arrived."""
        logger.info(f"{method} -> {self.authority}{target}")
        request = self.client.build_request(
            method,
            self.upstream_url(target),
            headers=build_upstream_headers(self.authority, range_header),
        )
        try:
            return await self.client.send(request, stream=True)
        except httpx.HTTPError as e:
            logger.error(f"Upstream request failed: {e!r}")
            raise UpstreamUnreachable(str(e) or e.__class__.__name__) from e

    async def relay(self, upstream: httpx.Response) -> AsyncIterator[bytes]:
        """Yield upstream body chunks as they arrive.

        Closing or cancelling the consumer closes the upstream response, so a
        client that goes away does not leave a provider socket open.
        """
        sent = 0
        try:
            async for chunk in upstream.aiter_raw():
                sent += len(chunk)
                yield chunk
        except httpx.HTTPError as e:
            logger.warning(f"Upstream stream broke after {sent} bytes: {e!r}")
            raise
        finally:
            if not upstream.is_closed:
                logger.debug(f"Closing upstream response after {sent} bytes")
            await upstream.aclose()

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
