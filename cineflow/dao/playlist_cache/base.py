from abc import ABC, abstractmethod
from typing import Optional


class BasePlaylistCache(ABC):
    @abstractmethod
    def get(self) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, content: str, timestamp: float) -> None:
        pass

    @property
    @abstractmethod
    def loaded_at(self) -> Optional[float]:
        pass
