import logging

from dotenv import load_dotenv

load_dotenv()

import uvicorn

from cineflow.config import Settings
from cineflow.dao.playlist_retrieval.sources import UrlPlaylistSource
from cineflow.players.vlc import VLCPlayer
from cineflow.services.cli import CLIService
from cineflow.services.stream_proxy import local_proxy_path
from cineflow.services.web import create_app

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def main():
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)

    app = create_app(settings)
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


def browse():
    settings = Settings.from_env()
    logging.basicConfig(
        filename="cineflow.log",
        filemode="w",
        level=settings.log_level,
        format=LOG_FORMAT,
    )

    def resolve(url: str) -> str:
        path = local_proxy_path(
            url, settings.upstream_host, settings.upstream_port, settings.proxy_prefix
        )
        return settings.base_url + path if path.startswith("/") else path

    cli_service = CLIService(
        playlist_source=UrlPlaylistSource(
            f"{settings.base_url}/api/playlist",
            timeout=settings.playlist_fetch_timeout,
        ),
        player=VLCPlayer(settings.player_path),
        url_resolver=resolve,
    )
    cli_service.run()


if __name__ == "__main__":
    main()
