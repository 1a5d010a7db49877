import logging
import time
from typing import Callable, Optional, Tuple

from cineflow.dao.playlist_cache.base import BasePlaylistCache

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60 * 60


class InMemoryPlaylistCache(BasePlaylistCache):
    """Keeps the last loaded playlist text until it is ``ttl_seconds`` old.

    Content and timestamp live in one tuple so a reader never sees new text
    paired with an old timestamp or the reverse.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entry: Optional[Tuple[str, float]] = None

    def get(self) -> Optional[str]:
        entry = self._entry
        if entry is None:
            return None
        content, loaded_at = entry
        if self.clock() - loaded_at >= self.ttl_seconds:
            logger.debug("Playlist cache expired")
            return None
        return content

    def set(self, content: str, timestamp: float) -> None:
        self._entry = (content, timestamp)

    @property
    def loaded_at(self) -> Optional[float]:
        return self._entry[1] if self._entry else None
