import dataclasses
import os
from typing import Mapping, Optional


def _int_env(environ: Mapping[str, str], key: str, default: int) -> int:
    value = environ.get(key, "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {value!r}") from None


def _float_env(
    environ: Mapping[str, str], key: str, default: Optional[float]
) -> Optional[float]:
    value = environ.get(key, "").strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{key} must be a number, got {value!r}") from None


@dataclasses.dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 3000
    upstream_host: str = "localhost"
    upstream_port: int = 8880
    proxy_prefix: str = "/stream-proxy"
    m3u_base64: str = ""
    m3u_url: str = ""
    playlist_file: str = os.path.join("data", "playlist.m3u")
    public_playlist_file: str = os.path.join("public", "canais.m3u")
    static_dir: str = "dist"
    cache_seconds: float = 3600.0
    playlist_fetch_timeout: float = 60.0
    upstream_connect_timeout: float = 10.0
    upstream_read_timeout: Optional[float] = None
    public_base_url: str = ""
    player_path: str = "/usr/bin/cvlc"
    log_level: str = "INFO"

    @property
    def base_url(self) -> str:
        return (self.public_base_url or f"http://localhost:{self.port}").rstrip("/")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        defaults = cls()
        prefix = "/" + env.get("PROXY_PREFIX", defaults.proxy_prefix).strip("/")
        return cls(
            host=env.get("HOST", defaults.host),
            port=_int_env(env, "PORT", defaults.port),
            upstream_host=env.get("IPTV_HOST", defaults.upstream_host),
            upstream_port=_int_env(env, "IPTV_PORT", defaults.upstream_port),
            proxy_prefix=prefix,
            m3u_base64=env.get("M3U_BASE64", ""),
            m3u_url=env.get("M3U_URL", ""),
            playlist_file=env.get("PLAYLIST_FILE", defaults.playlist_file),
            public_playlist_file=env.get(
                "PUBLIC_PLAYLIST_FILE", defaults.public_playlist_file
            ),
            static_dir=env.get("STATIC_DIR", defaults.static_dir),
            cache_seconds=_float_env(
                env, "PLAYLIST_CACHE_SECONDS", defaults.cache_seconds
            ),
            playlist_fetch_timeout=_float_env(
                env, "PLAYLIST_FETCH_TIMEOUT", defaults.playlist_fetch_timeout
            ),
            upstream_connect_timeout=_float_env(
                env, "UPSTREAM_CONNECT_TIMEOUT", defaults.upstream_connect_timeout
            ),
            upstream_read_timeout=_float_env(env, "UPSTREAM_READ_TIMEOUT", None),
            public_base_url=env.get("PUBLIC_BASE_URL", ""),
            player_path=env.get("PLAYER_PATH", defaults.player_path),
            log_level=env.get("LOG_LEVEL", defaults.log_level).upper(),
        )
