import dataclasses
from typing import List

from cineflow.dto.channel import ChannelEntity
from cineflow.enum.grouping_mode import GroupingMode


@dataclasses.dataclass(frozen=True)
class Category:
    name: str
    count: int


@dataclasses.dataclass
class Series:
    name: str
    logo: str
    season_count: int
    episode_count: int
    episodes: List[ChannelEntity]

    def seasons(self) -> List[int]:
        """Distinct season numbers, an episode without one counts as season 1."""
        return sorted({ep.season or 1 for ep in self.episodes})

    def episodes_in_season(self, season: int) -> List[ChannelEntity]:
        return [ep for ep in self.episodes if (ep.season or 1) == season]


@dataclasses.dataclass
class CatalogView:
    mode: GroupingMode
    channels: List[ChannelEntity]
    series: List[Series] = dataclasses.field(default_factory=list)
    standalone: List[ChannelEntity] = dataclasses.field(default_factory=list)
