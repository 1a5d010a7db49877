import base64
import binascii
import logging
import os

import requests

from cineflow.dao.playlist_retrieval.base import BasePlaylistSource
from cineflow.errors import SourceUnavailable

logger = logging.getLogger(__name__)


class InlinePlaylistSource(BasePlaylistSource):
    """Playlist text shipped base64-encoded in configuration."""

    name = "inline"

    def __init__(self, encoded: str) -> None:
        self.encoded = encoded.strip()

    def is_configured(self) -> bool:
        return bool(self.encoded)

    def load(self) -> str:
        try:
            raw = base64.b64decode(self.encoded)
        except (binascii.Error, ValueError) as e:
            raise SourceUnavailable(
                f"Inline playlist is not valid base64: {e}"
            ) from e
        return raw.decode("utf-8", errors="replace")


class UrlPlaylistSource(BasePlaylistSource):
    name = "url"

    def __init__(self, url: str, timeout: float = 60) -> None:
        self.url = url.strip()
        self.timeout = timeout

    def is_configured(self) -> bool:
        return bool(self.url)

    def load(self) -> str:
        logger.debug(f"Requesting playlist from {self.url}")
        try:
            response = requests.get(self.url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"HTTP error while retrieving playlist: {e}")
            raise SourceUnavailable(f"Could not fetch {self.url}: {e}") from e

        if response.status_code != 200:
            logger.error(f"Playlist URL answered HTTP {response.status_code}")
            raise SourceUnavailable(f"HTTP {response.status_code}")
        return response.content.decode("utf-8", errors="replace")


class FilePlaylistSource(BasePlaylistSource):
    def __init__(self, path: str, name: str = "file") -> None:
        self.path = path
        self.name = name

    def is_configured(self) -> bool:
        return os.path.isfile(self.path)

    def load(self) -> str:
        try:
            with open(self.path, encoding="utf-8", errors="replace") as f:
                return f.read()
        except OSError as e:
            raise SourceUnavailable(f"Could not read {self.path}: {e}") from e
