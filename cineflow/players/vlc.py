import logging
import subprocess
from typing import Optional

from cineflow.players.base import BasePlayer

logger = logging.getLogger(__name__)


class VLCPlayer(BasePlayer):
    """Plays one stream at a time in an external VLC process."""

    def __init__(
        self, vlc_path: str = "/usr/bin/cvlc", stop_timeout: float = 2
    ) -> None:
        self.vlc_path = vlc_path
        self.stop_timeout = stop_timeout
        self.current_process: Optional[subprocess.Popen] = None

    def play(self, url: str) -> None:
        self.stop()
        logger.info(f"Starting {self.vlc_path} for {url}")
        try:
            self.current_process = subprocess.Popen(
                [self.vlc_path, url],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            logger.error(f"Failed to start {self.vlc_path}: {e}")
            self.current_process = None

    def stop(self) -> None:
        process, self.current_process = self.current_process, None
        if process is None or process.poll() is not None:
            return
        process.terminate()
        try:
            process.wait(timeout=self.stop_timeout)
        except subprocess.TimeoutExpired:
            logger.debug(f"Player {process.pid} ignored SIGTERM, killing it")
            process.kill()
            process.wait()

    def __del__(self):
        self.stop()
