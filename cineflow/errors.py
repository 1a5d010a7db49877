from typing import Dict


class CineflowError(Exception):
    """Base error surfaced to HTTP callers as a structured JSON body."""

    kind: str = "internal"
    error: str = "Internal error"
    status_code: int = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> Dict[str, str]:
        return {"kind": self.kind, "error": self.error, "detail": self.detail}


class SourceUnavailable(CineflowError):
    kind = "source_unavailable"
    error = "Failed to load playlist"
    status_code = 502


class PlaylistNotConfigured(SourceUnavailable):
    error = "Playlist not configured"
    status_code = 404


class UpstreamUnreachable(CineflowError):
    kind = "upstream_unreachable"
    error = "Stream unavailable"
    status_code = 502
