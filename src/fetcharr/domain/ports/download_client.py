"""Download Client Port (Interface).

Each download backend (SABnzbd, qBittorrent, ...) implements this interface.
The dispatcher submits through it and the queue tracker polls through it.
"""

from abc import ABC, abstractmethod

from fetcharr.domain.entities.queue import ClientProgress
from fetcharr.domain.value_objects import Protocol


class IDownloadClient(ABC):
    """Interface for download client implementations.

    Implementations must be stateless - they query the external service
    on each call. Retrying is handled by the caller.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @property
    @abstractmethod
    def protocol(self) -> Protocol:
        pass

    @property
    def priority(self) -> int:
        """Routing priority among clients of the same protocol (lower wins)."""
        return 1

    @property
    def enabled(self) -> bool:
        return True

    @property
    def tags(self) -> frozenset[str]:
        """Targets sharing one of these tags are routed here first."""
        return frozenset()

    @abstractmethod
    async def submit(self, payload_ref: str, title: str, category: str | None = None) -> str:
        """Hand a release to the client.

        Returns:
            The client-assigned download id

        Raises:
            DownloadClientUnavailableError: client unreachable or refused
        """
        pass

    @abstractmethod
    async def poll_status(self, client_id: str) -> ClientProgress:
        """Current state of one transfer (ClientState.MISSING if unknown)."""
        pass

    @abstractmethod
    async def remove(self, client_id: str, delete_data: bool = True) -> None:
        """Abort/remove a transfer. Removing an unknown id is not an error."""
        pass

    @abstractmethod
    async def pause(self, client_id: str) -> None:
        pass

    @abstractmethod
    async def resume(self, client_id: str) -> None:
        pass

    async def close(self) -> None:
        return None
