import dataclasses
from typing import Optional

DEFAULT_GROUP = "Uncategorized"
DEFAULT_NAME = "Unknown Channel"


@dataclasses.dataclass(frozen=True)
class ChannelEntity:
    id: str
    name: str
    group: str
    logo: str
    playable_url: str
    series_name: Optional[str] = None
    season: Optional[int] = None
    episode: Optional[int] = None

    @property
    def is_episode(self) -> bool:
        return self.series_name is not None
