"""Fire-and-forget wrapper around the external history sink."""

import logging

from fetcharr.domain.entities import HistoryEvent
from fetcharr.domain.ports import IHistorySink

logger = logging.getLogger(__name__)


class HistoryRecorder:
    """Records history events without ever failing the caller.

    Hey future me - history is an activity log for humans. A grab that
    succeeded at the download client must not be reported as failed because
    the history sink hiccuped, so sink errors are logged and dropped HERE and
    nowhere else.
    """

    def __init__(self, sink: IHistorySink | None = None) -> None:
        self._sink = sink

    async def emit(self, event: HistoryEvent) -> None:
        if self._sink is None:
            return
        try:
            await self._sink.record(event)
        except Exception as e:
            logger.warning(
                "History sink failed to record %s for %s: %s",
                event.event_type.value,
                event.target_key.value,
                e,
            )


__all__ = ["HistoryRecorder"]
