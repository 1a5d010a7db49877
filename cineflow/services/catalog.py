from typing import Dict, List, Optional, Sequence

from cineflow.dto.catalog import CatalogView, Category, Series
from cineflow.dto.channel import ChannelEntity
from cineflow.enum.grouping_mode import GroupingMode


SERIES_MAJORITY = 0.5


def _episode_key(channel: ChannelEntity):
    return (
        channel.season or 0,
        channel.episode or 0,
        channel.name,
        channel.playable_url,
    )


class Catalog:
    """Read-only query view over one parsed playlist.

    Everything is derived on demand from the channel sequence; a playlist
    reload is a new ``Catalog``, never a mutation of this one.
    """

    def __init__(self, channels: Sequence[ChannelEntity]) -> None:
        self.channels: List[ChannelEntity] = list(channels)

    def list_categories(self) -> List[Category]:
        counts: Dict[str, int] = {}
        for channel in self.channels:
            counts[channel.group] = counts.get(channel.group, 0) + 1
        return [Category(name=name, count=counts[name]) for name in sorted(counts)]

    def default_category(self) -> Optional[str]:
        categories = self.list_categories()
        return categories[0].name if categories else None

    def query_channels(
        self, category: Optional[str] = None, search: Optional[str] = None
    ) -> List[ChannelEntity]:
        result = self.channels
        if category:
            result = [c for c in result if c.group == category]
        if search:
            query = search.lower()
            result = [c for c in result if query in c.name.lower()]
        return list(result)

    def grouping_mode(
        self, category: Optional[str] = None, search: Optional[str] = None
    ) -> GroupingMode:
        return self._mode_for(self.query_channels(category, search))

    def list_series(self, channels: Sequence[ChannelEntity]) -> List[Series]:
        """Group episodes by series name, in order of first appearance."""
        grouped: Dict[str, Series] = {}
        for channel in channels:
            if channel.series_name is None:
                continue
            series = grouped.get(channel.series_name)
            if series is None:
                series = Series(
                    name=channel.series_name,
                    logo=channel.logo,
                    season_count=0,
                    episode_count=0,
                    episodes=[],
                )
                grouped[channel.series_name] = series
            series.episodes.append(channel)

        for series in grouped.values():
            series.episodes.sort(key=_episode_key)
            series.episode_count = len(series.episodes)
            series.season_count = len(series.seasons())
        return list(grouped.values())

    def partition(
        self, category: Optional[str] = None, search: Optional[str] = None
    ) -> CatalogView:
        channels = self.query_channels(category, search)
        mode = self._mode_for(channels)
        if mode is GroupingMode.FLAT:
            return CatalogView(mode=mode, channels=channels, standalone=channels)
        return CatalogView(
            mode=mode,
            channels=channels,
            series=self.list_series(channels),
            standalone=[c for c in channels if c.series_name is None],
        )

    @staticmethod
    def _mode_for(channels: Sequence[ChannelEntity]) -> GroupingMode:
        if not channels:
            return GroupingMode.FLAT
        episodes = sum(1 for c in channels if c.series_name is not None)
        if episodes / len(channels) > SERIES_MAJORITY:
            return GroupingMode.SERIES
        return GroupingMode.FLAT
