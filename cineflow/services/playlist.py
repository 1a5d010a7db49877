import asyncio
import logging
import time
from typing import Callable, Optional

from cineflow.dao.playlist_cache.base import BasePlaylistCache
from cineflow.dao.playlist_retrieval.loader import PlaylistLoader

logger = logging.getLogger(__name__)


class PlaylistService:
    """Serves the playlist text from cache, reloading it once per expiry.

    Concurrent callers arriving while a reload is running wait for that same
    reload instead of starting their own.
    """

    def __init__(
        self,
        loader: PlaylistLoader,
        cache: BasePlaylistCache,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.loader = loader
        self.cache = cache
        self.clock = clock
        self._reload: Optional[asyncio.Task] = None

    async def get_playlist(self) -> str:
        cached = self.cache.get()
        if cached is not None:
            logger.debug("Serving playlist from cache")
            return cached

        if self._reload is None:
            self._reload = asyncio.create_task(self._reload_playlist())
        # shielded so one cancelled caller does not abort the shared reload
        return await asyncio.shield(self._reload)

    def cache_age(self) -> Optional[float]:
        loaded_at = self.cache.loaded_at
        if loaded_at is None:
            return None
        return self.clock() - loaded_at

    async def _reload_playlist(self) -> str:
        try:
            content = await asyncio.to_thread(self.loader.load)
            self.cache.set(content, self.clock())
            return content
        finally:
            self._reload = None
