"""Indexer Port (Interface).

Following Hexagonal Architecture (Ports & Adapters), this is a PORT in the
domain layer. Implementations (Newznab, Torznab, ...) live in the
infrastructure layer.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from fetcharr.domain.value_objects import ContentKind, Protocol


@dataclass(frozen=True)
class IndexerResult:
    """One raw search/RSS result before parsing.

    This is the "raw" data from an indexer. The acquisition service parses the
    title and wraps it into a ReleaseCandidate.
    """

    title: str
    payload_ref: str  # NZB/torrent URL or magnet link
    indexer: str
    protocol: Protocol
    indexer_priority: int = 25
    age_days: float = 0.0
    size: int = 0
    seeders: int | None = None
    publish_date: datetime | None = None
    info_url: str | None = None


class IIndexer(ABC):
    """Interface for indexer implementations.

    Implementations raise IndexerUnavailableError (a TransientExternalError)
    on timeouts, 5xx and repeated 429s. An empty list means "nothing found",
    never "failed".
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique indexer name (part of the release identity)."""
        pass

    @property
    @abstractmethod
    def protocol(self) -> Protocol:
        pass

    @property
    @abstractmethod
    def priority(self) -> int:
        """1 = highest ... 100 = lowest."""
        pass

    @property
    def enabled(self) -> bool:
        return True

    @property
    def supports_rss(self) -> bool:
        return True

    @property
    def content_kinds(self) -> frozenset[ContentKind]:
        """Kinds of media this indexer carries. Empty means all of them."""
        return frozenset()

    @property
    def tags(self) -> frozenset[str]:
        return frozenset()

    @abstractmethod
    async def search(self, query: str, categories: tuple[int, ...] = ()) -> list[IndexerResult]:
        """Run a text search.

        Args:
            query: Free-text query (e.g. "Show Name S01E01")
            categories: Newznab category ids to restrict to

        Returns:
            Raw results in indexer order
        """
        pass

    @abstractmethod
    async def fetch_rss(self) -> list[IndexerResult]:
        """Fetch the latest releases feed."""
        pass

    async def close(self) -> None:
        """Release network resources."""
        return None
