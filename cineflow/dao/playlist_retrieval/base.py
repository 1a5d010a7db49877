from abc import ABC, abstractmethod


class BasePlaylistSource(ABC):
    name: str = "playlist"

    @abstractmethod
    def is_configured(self) -> bool:
        pass

    @abstractmethod
    def load(self) -> str:
        pass
