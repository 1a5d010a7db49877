from typing import List, Optional, Union

from cineflow.dto.catalog import CatalogView, Series
from cineflow.dto.channel import ChannelEntity
from cineflow.enum.grouping_mode import GroupingMode
from cineflow.services.catalog import Catalog

Row = Union[Series, ChannelEntity]


class CatalogBrowser:
    """Navigation state for browsing a catalog: category, search text, open series."""

    def __init__(self, catalog: Catalog, max_visible_rows: int = 30) -> None:
        self.catalog = catalog
        self.categories: List[str] = [c.name for c in catalog.list_categories()]
        default = catalog.default_category()
        self.category_index: int = self.categories.index(default) if default else 0
        self.search: str = ""
        self.series: Optional[Series] = None
        self.selected_index: int = 0
        self.view_start_index: int = 0
        self.max_visible_rows = max_visible_rows

    @property
    def category(self) -> Optional[str]:
        if not self.categories:
            return None
        return self.categories[self.category_index]

    def view(self) -> CatalogView:
        return self.catalog.partition(self.category, self.search)

    def rows(self) -> List[Row]:
        if self.series is not None:
            return list(self.series.episodes)
        view = self.view()
        if view.mode is GroupingMode.SERIES:
            return [*view.series, *view.standalone]
        return list(view.channels)

    def summary(self) -> str:
        if self.series is not None:
            series = self.series
            return f"{series.season_count} Seasons, {series.episode_count} Episodes"
        view = self.view()
        if view.mode is GroupingMode.SERIES:
            return f"{len(view.series)} Series"
        return f"{len(view.channels)} Channels"

    def set_search(self, text: str) -> None:
        text = text.strip()
        if text != self.search:
            self.search = text
            self._reset_selection()

    def next_category(self, step: int = 1) -> None:
        if not self.categories:
            return
        self.category_index = (self.category_index + step) % len(self.categories)
        self.search = ""
        self.series = None
        self._reset_selection()

    def move(self, delta: int) -> None:
        rows = self.rows()
        if not rows:
            return
        self.selected_index = max(0, min(self.selected_index + delta, len(rows) - 1))
        if self.selected_index < self.view_start_index:
            self.view_start_index = self.selected_index
        elif self.selected_index >= self.view_start_index + self.max_visible_rows:
            self.view_start_index = self.selected_index - self.max_visible_rows + 1

    def activate(self) -> Optional[ChannelEntity]:
        """Open the selected series, or return the selected channel for playback."""
        rows = self.rows()
        if not 0 <= self.selected_index < len(rows):
            return None
        row = rows[self.selected_index]
        if isinstance(row, Series):
            self.series = row
            self._reset_selection()
            return None
        return row

    def back(self) -> bool:
        if self.series is None:
            return False
        self.series = None
        self._reset_selection()
        return True

    def render(self) -> List[str]:
        title = self.series.name if self.series else (self.category or "No playlist")
        lines: List[str] = [f"[{title}]  {self.summary()}", f"{'':<3}{'-' * 30}"]
        rows = self.rows()
        start = self.view_start_index
        for i, row in enumerate(rows[start : start + self.max_visible_rows]):
            prefix = ">>" if start + i == self.selected_index else "  "
            lines.append(f"{prefix} {self._label(row)}")
        return lines

    def _label(self, row: Row) -> str:
        if isinstance(row, Series):
            counts = f"{row.season_count} seasons, {row.episode_count} episodes"
            return f"{row.name}  ({counts})"
        if self.series is not None:
            return f"S{row.season or 1:02d}E{row.episode or 0:02d}  {row.name}"
        return f"{row.id:<8} | {row.name}"

    def _reset_selection(self) -> None:
        self.selected_index = 0
        self.view_start_index = 0
