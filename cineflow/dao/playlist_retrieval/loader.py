import logging
from typing import Dict, List, Sequence

from cineflow.config import Settings
from cineflow.dao.playlist_retrieval.base import BasePlaylistSource
from cineflow.dao.playlist_retrieval.sources import (
    FilePlaylistSource,
    InlinePlaylistSource,
    UrlPlaylistSource,
)
from cineflow.errors import PlaylistNotConfigured

logger = logging.getLogger(__name__)


class PlaylistLoader:
    """Loads the playlist from the first configured source.

    Sources are never merged and a chosen source that fails is not skipped
    in favour of the next one: the failure is reported to the caller.
    """

    def __init__(self, sources: Sequence[BasePlaylistSource]) -> None:
        self.sources: List[BasePlaylistSource] = list(sources)

    @classmethod
    def from_settings(cls, settings: Settings) -> "PlaylistLoader":
        return cls(
            [
                InlinePlaylistSource(settings.m3u_base64),
                UrlPlaylistSource(
                    settings.m3u_url, timeout=settings.playlist_fetch_timeout
                ),
                FilePlaylistSource(settings.playlist_file, name="private_file"),
                FilePlaylistSource(
                    settings.public_playlist_file, name="public_file"
                ),
            ]
        )

    def load(self) -> str:
        for source in self.sources:
            if not source.is_configured():
                continue
            logger.info(f"Loading playlist from {source.name} source")
            content = source.load()
            logger.info(f"Loaded {len(content)} characters")
            return content

        logger.error("No playlist source is configured")
        raise PlaylistNotConfigured(
            "Set M3U_BASE64 or M3U_URL, or provide a playlist file"
        )

    def describe(self) -> Dict[str, bool]:
        return {source.name: source.is_configured() for source in self.sources}
