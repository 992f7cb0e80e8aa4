"""Queue state tracker - drives every grabbed release to COMPLETED or FAILED.

Hey future me - the rules that keep this sane:

1. ONE lock per queue item. Every state change of an item happens while
   holding its lock, so a poll, a cancel and a finishing import can never
   interleave their transitions.
2. Network calls to the download client happen under the item lock (poll
   result and transition belong together) but NEVER under another item's
   lock. Items are polled concurrently.
3. Imports run as their own asyncio tasks. The poller only flips the item to
   IMPORTING and moves on; a slow file copy never delays progress updates of
   other downloads.
4. Side effects of a failure (blocklist, history, "grab the next best") run
   AFTER the lock is released.
"""

import asyncio
import dataclasses
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from fetcharr.application.services.blocklist_manager import BlocklistManager
from fetcharr.application.services.history import HistoryRecorder
from fetcharr.application.services.import_matcher import ImportMatcher, ImportResult
from fetcharr.config import QueueSettings
from fetcharr.domain.entities import (
    ClientProgress,
    ClientState,
    HistoryEvent,
    HistoryEventType,
    QueueItem,
    QueueState,
    QueueStatistics,
)
from fetcharr.domain.exceptions import (
    EntityNotFoundException,
    TransientExternalError,
)
from fetcharr.domain.ports import IDownloadClient, ILibraryStore
from fetcharr.domain.value_objects import TargetKey

logger = logging.getLogger(__name__)

FailureHandler = Callable[[QueueItem], Awaitable[None]]
CompletionHandler = Callable[[QueueItem], Awaitable[None]]


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class PollSummary:
    polled: int = 0
    errors: int = 0

    @property
    def all_failed(self) -> bool:
        return self.errors > 0 and self.errors >= self.polled


@dataclass(frozen=True)
class _Failure:
    reason: str
    blocklist: bool
    remove_from_client: bool
    event_type: HistoryEventType


class QueueStateTracker:
    def __init__(
        self,
        clients: list[IDownloadClient],
        import_matcher: ImportMatcher,
        library: ILibraryStore,
        blocklist: BlocklistManager,
        settings: QueueSettings,
        history: HistoryRecorder | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._clients = {client.name: client for client in clients}
        self._import_matcher = import_matcher
        self._library = library
        self._blocklist = blocklist
        self._settings = settings
        self._history = history or HistoryRecorder()
        self._clock = clock
        self._stall_timeout = timedelta(minutes=settings.stall_timeout_minutes)

        self._items: dict[str, QueueItem] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._import_tasks: dict[str, asyncio.Task[None]] = {}
        self._on_failure: FailureHandler | None = None
        self._on_completed: CompletionHandler | None = None

    def set_failure_handler(self, handler: FailureHandler | None) -> None:
        """Called (outside any lock) after an item failed and was blocklisted."""
        self._on_failure = handler

    def set_completion_handler(self, handler: CompletionHandler | None) -> None:
        """Called (outside any lock) after an item was imported."""
        self._on_completed = handler

    # ------------------------------------------------------------------ #
    # Read side
    # ------------------------------------------------------------------ #

    def add(self, item: QueueItem) -> None:
        self._items[item.id.value] = item
        self._locks[item.id.value] = asyncio.Lock()

    def get(self, item_id: str) -> QueueItem | None:
        item = self._items.get(item_id)
        return dataclasses.replace(item) if item is not None else None

    def has_active(self, target_key: TargetKey) -> bool:
        return any(
            item.target_key == target_key and not item.is_finished for item in self._items.values()
        )

    def snapshot(self, include_finished: bool = False) -> list[QueueItem]:
        """Copies of the tracked items, oldest first. Mutating them changes nothing.

        Only non-terminal items unless include_finished; COMPLETED and FAILED
        items linger until prune_finished and belong to history, not the queue.
        """
        items = sorted(
            (item for item in self._items.values() if include_finished or not item.is_finished),
            key=lambda item: item.created_at,
        )
        return [dataclasses.replace(item) for item in items]

    def statistics(self, now: datetime | None = None) -> QueueStatistics:
        today = (now or self._clock()).date()
        counts = dict.fromkeys(QueueState, 0)
        warning = completed_today = failed_today = 0
        for item in self._items.values():
            counts[item.state] += 1
            if item.warning and not item.is_finished:
                warning += 1
            finished_today = item.completed_at is not None and item.completed_at.date() == today
            if finished_today and item.state == QueueState.COMPLETED:
                completed_today += 1
            elif finished_today and item.state == QueueState.FAILED:
                failed_today += 1
        return QueueStatistics(
            queued=counts[QueueState.QUEUED],
            downloading=counts[QueueState.DOWNLOADING],
            paused=counts[QueueState.PAUSED],
            importing=counts[QueueState.IMPORTING],
            warning=warning,
            completed_today=completed_today,
            failed_today=failed_today,
        )

    def prune_finished(self, older_than: timedelta = timedelta(days=1)) -> int:
        """Forget terminal items finished more than older_than ago."""
        cutoff = self._clock() - older_than
        stale = [
            item_id
            for item_id, item in self._items.items()
            if item.is_finished and item.completed_at is not None and item.completed_at < cutoff
        ]
        for item_id in stale:
            del self._items[item_id]
            self._locks.pop(item_id, None)
        return len(stale)

    # ------------------------------------------------------------------ #
    # Polling
    # ------------------------------------------------------------------ #

    async def poll_all(self) -> PollSummary:
        """Poll every item the download clients still own, concurrently.

        Transient client errors are counted, not raised: one unreachable
        client must not stop the other clients' items from progressing.
        """
        item_ids = [
            item_id
            for item_id, item in self._items.items()
            if not item.is_finished and item.state != QueueState.IMPORTING
        ]
        if not item_ids:
            return PollSummary()

        results = await asyncio.gather(
            *(self.poll_item(item_id) for item_id in item_ids), return_exceptions=True
        )
        errors = 0
        for item_id, result in zip(item_ids, results, strict=True):
            if isinstance(result, TransientExternalError):
                errors += 1
                logger.warning("Polling queue item %s failed: %s", item_id, result.message)
            elif isinstance(result, BaseException):
                raise result
        return PollSummary(polled=len(item_ids), errors=errors)

    async def poll_item(self, item_id: str) -> None:
        lock = self._locks.get(item_id)
        if lock is None:
            return

        failure: _Failure | None = None
        start_import = False
        async with lock:
            item = self._items.get(item_id)
            if item is None or item.is_finished or item.state == QueueState.IMPORTING:
                return
            client = self._clients.get(item.client_name)
            if client is None:
                failure = _Failure(
                    f"download client '{item.client_name}' is no longer configured",
                    blocklist=False,
                    remove_from_client=False,
                    event_type=HistoryEventType.DOWNLOAD_FAILED,
                )
            else:
                progress = await client.poll_status(item_id)
                failure = self._apply_progress(item, progress, self._clock())
                start_import = item.state == QueueState.IMPORTING
            if failure is not None:
                item.fail(failure.reason, self._clock())

        if failure is not None:
            await self._after_failure(item, failure)
        elif start_import:
            self._start_import(item)

    def _apply_progress(
        self, item: QueueItem, progress: ClientProgress, now: datetime
    ) -> _Failure | None:
        state = progress.state
        if state == ClientState.FAILED:
            return _Failure(
                progress.error_message or "download failed in client",
                blocklist=True,
                remove_from_client=True,
                event_type=HistoryEventType.DOWNLOAD_FAILED,
            )
        if state == ClientState.MISSING:
            return _Failure(
                "download disappeared from the download client",
                blocklist=True,
                remove_from_client=False,
                event_type=HistoryEventType.DOWNLOAD_FAILED,
            )

        if state == ClientState.PAUSED:
            if item.state in (QueueState.QUEUED, QueueState.DOWNLOADING):
                item.pause(now)
        else:
            if item.state == QueueState.PAUSED:
                item.resume(now)
            if state != ClientState.QUEUED and item.state == QueueState.QUEUED:
                item.start(now)
            if state != ClientState.QUEUED and item.state == QueueState.DOWNLOADING:
                item.update_progress(progress.remaining_size, progress.total_size, now)
            if state == ClientState.POST_PROCESSING and item.state == QueueState.DOWNLOADING:
                item.record_activity(now)
            if state == ClientState.COMPLETED and item.state == QueueState.DOWNLOADING:
                item.mark_downloaded(progress.output_path, now)

        item.set_warning(progress.warning_message, now)

        if item.is_stalled(self._stall_timeout, now):
            return _Failure(
                f"stalled: no progress for {self._settings.stall_timeout_minutes} minutes",
                blocklist=True,
                remove_from_client=True,
                event_type=HistoryEventType.DOWNLOAD_FAILED,
            )
        return None

    async def _after_failure(self, item: QueueItem, failure: _Failure) -> None:
        logger.warning("Queue item %s ('%s') failed: %s", item.id, item.candidate.title, failure.reason)
        if failure.remove_from_client:
            await self._remove_from_client(item)
        if failure.blocklist:
            await self._blocklist.add_candidate(item.candidate, item.target_key, failure.reason)
        await self._history.emit(
            HistoryEvent(
                event_type=failure.event_type,
                target_key=item.target_key,
                source_title=item.candidate.title,
                data={"download_id": item.id.value, "reason": failure.reason},
            )
        )
        if failure.blocklist and self._on_failure is not None:
            await self._on_failure(dataclasses.replace(item))

    async def _remove_from_client(self, item: QueueItem) -> None:
        client = self._clients.get(item.client_name)
        if client is None:
            return
        try:
            await client.remove(item.id.value, delete_data=True)
        except TransientExternalError as e:
            # The item is already FAILED on our side; a leftover transfer is cosmetic
            logger.warning("Could not remove %s from %s: %s", item.id, client.name, e.message)

    # ------------------------------------------------------------------ #
    # Import
    # ------------------------------------------------------------------ #

    def _start_import(self, item: QueueItem) -> None:
        item_id = item.id.value
        task = asyncio.create_task(self._run_import(item_id), name=f"import-{item_id}")
        self._import_tasks[item_id] = task
        task.add_done_callback(lambda _t: self._import_tasks.pop(item_id, None))

    async def _run_import(self, item_id: str) -> None:
        item = self._items[item_id]
        result: ImportResult | None = None
        error: str | None = None
        # A cancel can land between the poll that flipped IMPORTING and this first step
        if not item.cancel_requested:
            try:
                target = await self._library.get_target(item.target_key)
                if target is None:
                    error = f"target {item.target_key.value} no longer exists"
                else:
                    result = await self._import_matcher.import_download(
                        item, target, should_stop=lambda: item.cancel_requested
                    )
            except Exception as e:
                # Task boundary: an escaping error would leave the item IMPORTING forever
                logger.exception("Import of queue item %s crashed: %s", item_id, e)
                error = f"import error: {e}"

        failure: _Failure | None = None
        async with self._locks[item_id]:
            if item.is_finished:
                return
            now = self._clock()
            if result is not None and result.succeeded:
                item.complete_import(now)
            elif item.cancel_requested:
                item.fail("cancelled by user", now)
            else:
                reason = error or f"import failed: {result.failure_summary if result else 'unknown'}"
                failure = _Failure(
                    reason,
                    blocklist=error is None,
                    remove_from_client=False,
                    event_type=HistoryEventType.IMPORT_FAILED,
                )
                item.fail(reason, now)

        if item.state == QueueState.COMPLETED and result is not None:
            await self._history.emit(
                HistoryEvent(
                    event_type=HistoryEventType.IMPORT_COMPLETED,
                    target_key=item.target_key,
                    source_title=item.candidate.title,
                    data={
                        "download_id": item.id.value,
                        "imported": [f.final_path for f in result.imported],
                        "manual_required": [m.path for m in result.manual_required],
                    },
                )
            )
            if self._on_completed is not None:
                await self._on_completed(dataclasses.replace(item))
        elif failure is not None:
            await self._after_failure(item, failure)

    async def wait_for_imports(self) -> None:
        """Block until every running import task finished (shutdown, tests)."""
        tasks = list(self._import_tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------ #
    # Commands
    # ------------------------------------------------------------------ #

    def _require(self, item_id: str) -> QueueItem:
        item = self._items.get(item_id)
        if item is None:
            raise EntityNotFoundException("QueueItem", item_id)
        return item

    async def cancel(self, item_id: str, blocklist: bool = False) -> QueueItem:
        """Cancel an item in any state.

        Terminal items are returned unchanged. An IMPORTING item finishes the
        file placement in progress and then stops; whatever was imported so
        far stays imported. If that placement was the last one the item ends
        COMPLETED and is returned as such.
        """
        item = self._require(item_id)
        task: asyncio.Task[None] | None = None
        async with self._locks[item_id]:
            # State is only trustworthy under the lock: a poll may have just flipped IMPORTING
            if item.is_finished:
                return dataclasses.replace(item)
            if item.state == QueueState.IMPORTING:
                item.cancel_requested = True
                task = self._import_tasks.get(item_id)
            if task is None:
                client = self._clients.get(item.client_name)
                if client is not None and item.state != QueueState.IMPORTING:
                    await client.remove(item_id, delete_data=True)
                item.fail("cancelled by user", self._clock())

        # The import task owns the IMPORTING transition and needs the lock for it
        if task is not None:
            await asyncio.shield(task)
        if item.state == QueueState.COMPLETED:
            return dataclasses.replace(item)

        if blocklist:
            await self._blocklist.add_candidate(item.candidate, item.target_key, "cancelled by user")
        await self._history.emit(
            HistoryEvent(
                event_type=HistoryEventType.DELETED,
                target_key=item.target_key,
                source_title=item.candidate.title,
                data={"download_id": item_id, "blocklisted": blocklist},
            )
        )
        logger.info("Cancelled queue item %s ('%s')", item_id, item.candidate.title)
        return dataclasses.replace(item)

    async def pause(self, item_id: str) -> QueueItem:
        item = self._require(item_id)
        async with self._locks[item_id]:
            client = self._clients.get(item.client_name)
            if client is not None:
                await client.pause(item_id)
            item.pause(self._clock())
        return dataclasses.replace(item)

    async def resume(self, item_id: str) -> QueueItem:
        item = self._require(item_id)
        async with self._locks[item_id]:
            client = self._clients.get(item.client_name)
            if client is not None:
                await client.resume(item_id)
            item.resume(self._clock())
        return dataclasses.replace(item)


__all__ = ["PollSummary", "QueueStateTracker"]
