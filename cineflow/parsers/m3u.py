import dataclasses
import logging
import re
from typing import List, Optional, Tuple

from cineflow.dto.channel import DEFAULT_GROUP, DEFAULT_NAME, ChannelEntity

logger = logging.getLogger(__name__)

METADATA_DIRECTIVE = "#EXTINF:"
COMMENT_MARKER = "#"

BROKEN_LOGO_HOST = "assistirpainel.net"
LOGO_URL_TEMPLATE = "https://image.tmdb.org/t/p/w500/{image_id}.jpg"

_LOGO_ID_RE = re.compile(r"/images/([a-zA-Z0-9]+)(?:_small)?\.jpg")
_SERIES_RE = re.compile(r"^(.*?)\s+S(\d+)\s*E(\d+)", re.IGNORECASE)


@dataclasses.dataclass(frozen=True)
class AttributeExtractor:
    """Pulls one optional quoted attribute (``key="value"``) out of a metadata line."""

    attribute: str
    default: str = ""
    _pattern: re.Pattern = dataclasses.field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        pattern = re.compile(rf'{re.escape(self.attribute)}="([^"]*)"')
        object.__setattr__(self, "_pattern", pattern)

    def extract(self, line: str) -> Optional[str]:
        match = self._pattern.search(line)
        return match.group(1) if match else None

    def extract_or_default(self, line: str) -> str:
        value = self.extract(line)
        return self.default if value is None else value


GROUP_EXTRACTOR = AttributeExtractor("group-title", default=DEFAULT_GROUP)
LOGO_EXTRACTOR = AttributeExtractor("tvg-logo")
ID_EXTRACTOR = AttributeExtractor("tvg-id")


def extract_name(line: str) -> str:
    return line.split(",")[-1].strip()


def fix_logo_url(url: str) -> str:
    """Point logos hosted on the dead provider image server at TMDB instead."""
    if not url or BROKEN_LOGO_HOST not in url:
        return url
    match = _LOGO_ID_RE.search(url)
    if not match:
        return url
    return LOGO_URL_TEMPLATE.format(image_id=match.group(1))


def infer_series(name: str) -> Tuple[Optional[str], Optional[int], Optional[int]]:
    match = _SERIES_RE.match(name)
    if not match:
        return None, None, None
    return match.group(1).strip(), int(match.group(2)), int(match.group(3))


@dataclasses.dataclass(frozen=True)
class PendingEntry:
    """Metadata read from the last directive line, waiting for its playback URL."""

    group: str = DEFAULT_GROUP
    logo: str = ""
    id: str = ""
    name: str = ""

    @classmethod
    def from_metadata(cls, line: str) -> "PendingEntry":
        return cls(
            group=GROUP_EXTRACTOR.extract_or_default(line),
            logo=fix_logo_url(LOGO_EXTRACTOR.extract_or_default(line)),
            id=ID_EXTRACTOR.extract_or_default(line),
            name=extract_name(line),
        )

    def materialize(self, playable_url: str, position: int) -> ChannelEntity:
        series_name, season, episode = infer_series(self.name)
        return ChannelEntity(
            id=self.id or f"ch-{position}",
            name=self.name or DEFAULT_NAME,
            group=self.group,
            logo=self.logo,
            playable_url=playable_url,
            series_name=series_name,
            season=season,
            episode=episode,
        )


def parse_playlist(text: str) -> List[ChannelEntity]:
    """Parse extended M3U text into channel entries, in source order.

    Never raises on malformed input: missing attributes fall back to their
    defaults and a playback line without preceding metadata still produces
    an entry.
    """
    channels: List[ChannelEntity] = []
    pending = PendingEntry()

    for raw_line in text.lstrip("\ufeff").split("\n"):
        line = raw_line.strip()
        if not line:
            continue

        if line.startswith(METADATA_DIRECTIVE):
            pending = PendingEntry.from_metadata(line)
        elif not line.startswith(COMMENT_MARKER):
            channels.append(pending.materialize(line, len(channels)))
            pending = PendingEntry()

    logger.debug(f"Parsed {len(channels)} entries from {len(text)} characters")
    return channels
