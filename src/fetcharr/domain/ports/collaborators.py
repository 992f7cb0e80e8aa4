"""Ports for the collaborators the engine calls but does not own.

File organizer, library store and history sink. Their implementations live
outside this package (the library manager provides them).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from fetcharr.domain.entities.catalog import ProfileCatalog
from fetcharr.domain.entities.release import AcquisitionTarget, CurrentFile
from fetcharr.domain.entities.tracking import HistoryEvent
from fetcharr.domain.value_objects import Quality, TargetKey
from fetcharr.domain.value_objects.release_parser import ParsedRelease


@dataclass(frozen=True)
class DownloadedFile:
    """One file found in a completed download's output folder.

    actual_quality comes from media inspection (ffprobe, tags, ...) when the
    organizer can provide it. It wins over whatever the file name claims.
    """

    path: str
    size: int = 0
    actual_quality: Quality | None = None


class IFileOrganizer(ABC):
    """Moves files into the library."""

    @abstractmethod
    async def list_files(self, output_path: str) -> list[DownloadedFile]:
        """List every file under a completed download's output path."""
        pass

    @abstractmethod
    async def place(self, source_path: str, target: AcquisitionTarget, quality: Quality) -> str:
        """Place one file for a target.

        Returns:
            Final library path

        Raises:
            FilePlacementError: the file could not be placed
        """
        pass


class ILibraryStore(ABC):
    """Read access to targets and config, write access to current-file state."""

    @abstractmethod
    async def get_target(self, key: TargetKey) -> AcquisitionTarget | None:
        pass

    @abstractmethod
    async def get_catalog(self) -> ProfileCatalog:
        """Quality profiles, custom formats, restrictions, delay profiles."""
        pass

    @abstractmethod
    async def find_targets(self, parsed: ParsedRelease) -> list[AcquisitionTarget]:
        """Monitored targets a parsed release could belong to (title lookup).

        Used by RSS sync and the import matcher. Numbering is checked by the
        caller, the store only narrows by series/movie/artist.
        """
        pass

    @abstractmethod
    async def update_current_file(self, key: TargetKey, current_file: CurrentFile) -> None:
        pass


class IHistorySink(ABC):
    """Fire-and-forget event sink. Callers never depend on it succeeding."""

    @abstractmethod
    async def record(self, event: HistoryEvent) -> None:
        pass
