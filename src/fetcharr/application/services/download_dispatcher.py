"""Download dispatcher - hands the winning candidate to a download client."""

import logging

from fetcharr.application.services.history import HistoryRecorder
from fetcharr.config import QueueSettings
from fetcharr.domain.entities import (
    AcquisitionTarget,
    Decision,
    HistoryEvent,
    HistoryEventType,
    QueueItem,
)
from fetcharr.domain.exceptions import DownloadClientUnavailableError
from fetcharr.domain.ports import IDownloadClient
from fetcharr.domain.value_objects import Protocol, QueueItemId
from fetcharr.infrastructure.retry import retry_async

logger = logging.getLogger(__name__)


class DownloadDispatcher:
    """Routes accepted decisions to download clients.

    Routing: only enabled clients speaking the candidate's protocol. Clients
    sharing a tag with the target come first, then untagged clients; within
    each group lower priority number first. Tagged clients that share NO tag
    with the target are never used for it.
    """

    def __init__(
        self,
        clients: list[IDownloadClient],
        settings: QueueSettings,
        history: HistoryRecorder | None = None,
    ) -> None:
        self._clients = list(clients)
        self._settings = settings
        self._history = history or HistoryRecorder()

    def client_named(self, name: str) -> IDownloadClient | None:
        for client in self._clients:
            if client.name == name:
                return client
        return None

    def select_clients(self, protocol: Protocol, target_tags: frozenset[str]) -> list[IDownloadClient]:
        matching_tags = []
        untagged = []
        for client in self._clients:
            if not client.enabled or client.protocol != protocol:
                continue
            if client.tags and client.tags & target_tags:
                matching_tags.append(client)
            elif not client.tags:
                untagged.append(client)
        matching_tags.sort(key=lambda c: c.priority)
        untagged.sort(key=lambda c: c.priority)
        return matching_tags + untagged

    async def dispatch(self, decision: Decision, target: AcquisitionTarget) -> QueueItem:
        """Submit an accepted decision. Returns the new QUEUED item.

        Raises:
            DownloadClientUnavailableError: no usable client, or every client
                kept failing after retries. Nothing was queued.
        """
        candidate = decision.candidate
        clients = self.select_clients(candidate.protocol, target.tags)
        if not clients:
            raise DownloadClientUnavailableError(
                f"No enabled {candidate.protocol.value} download client for {target.key.value}"
            )

        last_error: DownloadClientUnavailableError | None = None
        for client in clients:
            try:
                client_id = await retry_async(
                    lambda client=client: client.submit(candidate.payload_ref, candidate.title),
                    max_attempts=self._settings.dispatch_retry_attempts,
                    initial_delay=self._settings.dispatch_retry_initial_delay,
                    retry_on=(DownloadClientUnavailableError,),
                    label=f"submit to {client.name}",
                )
            except DownloadClientUnavailableError as e:
                logger.warning("Download client %s gave up on '%s': %s", client.name, candidate.title, e)
                last_error = e
                continue

            item = QueueItem(
                id=QueueItemId(client_id),
                target_key=target.key,
                candidate=candidate,
                client_name=client.name,
                protocol=candidate.protocol,
                total_size=candidate.size,
                remaining_size=candidate.size,
            )
            logger.info(
                "Grabbed '%s' for %s via %s (score %d)",
                candidate.title,
                target.key.value,
                client.name,
                decision.total_score,
            )
            await self._history.emit(
                HistoryEvent(
                    event_type=HistoryEventType.GRABBED,
                    target_key=target.key,
                    source_title=candidate.title,
                    data={
                        "indexer": candidate.indexer,
                        "protocol": candidate.protocol.value,
                        "download_client": client.name,
                        "download_id": client_id,
                        "quality": decision.tier,
                        "score": decision.total_score,
                        "custom_formats": list(decision.matched_formats),
                    },
                )
            )
            return item

        raise DownloadClientUnavailableError(
            f"All {candidate.protocol.value} download clients failed for '{candidate.title}'"
        ) from last_error


__all__ = ["DownloadDispatcher"]
