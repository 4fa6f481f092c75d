from abc import ABC, abstractmethod
from typing import List

from pdf_dev_server.app.models.entry import RemoteEntry


class StorageError(Exception):
    """Raised by storage backends; the message is safe to show to clients."""


class StorageBackend(ABC):
    """Object storage holding the uploaded PDFs."""

    async def initialize(self):
        pass

    async def close(self):
        pass

    @abstractmethod
    async def list(self, prefix: str = "", limit: int = 100, offset: int = 0,
                   sort_by: str = "name", order: str = "asc") -> List[RemoteEntry]:
        ...

    @abstractmethod
    def get_public_url(self, name: str) -> str:
        ...

    @abstractmethod
    async def upload(self, name: str, data: bytes, content_type: str, overwrite: bool = False) -> None:
        ...

    @abstractmethod
    async def remove(self, names: List[str]) -> None:
        ...

    async def find_by_name(self, name: str) -> List[RemoteEntry]:
        """Return the entries whose name is exactly `name`."""
        entries = await self.list(limit=1000)
        return [entry for entry in entries if entry.name == name]
