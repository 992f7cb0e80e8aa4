"""Acquisition service - the engine's public surface.

Hey future me - this is the ONLY place that knows the whole pipeline:

    throttle → indexers (concurrent, bounded, timed out) → parse → target
    filter → decide → rank → dispatch → queue

plus the two feedback loops:

    - a failed download/import blocklists the release and re-decides the
      candidates the grab was picked from (bounded per cycle). Every grab
      path (search, RSS, pending) opens such a cycle; an import, a user
      cancel or running out of candidates closes it
    - delayed candidates go to the pending store and come back through
      process_pending_releases() once their delay elapsed

Everything below it (engine, ranker, dispatcher, tracker) is reusable on
its own; don't move orchestration logic down into them.
"""

import asyncio
import dataclasses
import logging
from collections import Counter
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from fetcharr.application.services.blocklist_manager import BlocklistManager
from fetcharr.application.services.decision_engine import DecisionEngine
from fetcharr.application.services.download_dispatcher import DownloadDispatcher
from fetcharr.application.services.indexer_health import IndexerHealth, serves
from fetcharr.application.services.queue_tracker import QueueStateTracker
from fetcharr.application.services.ranker import sort_accepted
from fetcharr.application.services.search_throttle import SearchThrottle
from fetcharr.application.services.target_matcher import TargetMatcher
from fetcharr.config import Settings
from fetcharr.domain.entities import (
    AcquisitionTarget,
    Decision,
    PendingRelease,
    ProfileCatalog,
    QueueItem,
    QueueStatistics,
    RejectReason,
    ReleaseCandidate,
)
from fetcharr.domain.exceptions import (
    DownloadClientUnavailableError,
    EntityNotFoundException,
    ExternalServiceError,
    TransientExternalError,
)
from fetcharr.domain.ports import IIndexer, ILibraryStore, IndexerResult, IPendingReleaseStore
from fetcharr.domain.value_objects import ContentKind, TargetKey
from fetcharr.domain.value_objects.release_parser import ParsedRelease, parse_release
from fetcharr.infrastructure.observability import log_operation, set_correlation_id
from fetcharr.infrastructure.retry import retry_async

logger = logging.getLogger(__name__)

# Newznab top-level categories
SEARCH_CATEGORIES: dict[ContentKind, tuple[int, ...]] = {
    ContentKind.SERIES: (5000,),
    ContentKind.ANIME: (5070, 5000),
    ContentKind.MOVIE: (2000,),
    ContentKind.MUSIC: (3000,),
}

# Retry cycles normally close with their queue item; this bounds the leftovers
MAX_RETRY_CYCLES = 1000


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class SearchOutcome:
    """What one trigger_search did.

    no_results / rejected_reasons ("nothing acceptable") and search_failed
    ("couldn't ask anyone") are different things, keep them apart in UIs.
    """

    target_key: TargetKey
    grabbed: Decision | None = None
    delayed: tuple[Decision, ...] = ()
    rejected_reasons: dict[str, int] = field(default_factory=dict)
    no_results: bool = False
    throttled: bool = False
    search_failed: bool = False
    grab_failed: bool = False
    already_queued: bool = False
    unmonitored: bool = False
    failed_indexers: tuple[str, ...] = ()


@dataclass(frozen=True)
class RssSyncResult:
    processed: int = 0
    grabbed: tuple[Decision, ...] = ()
    failed_indexers: tuple[str, ...] = ()


@dataclass(frozen=True)
class _GrabResult:
    grabbed: Decision | None = None
    delayed: tuple[Decision, ...] = ()
    rejected_reasons: dict[str, int] = field(default_factory=dict)
    grab_failed: bool = False


@dataclass
class _SearchCycle:
    """Candidates the target's current grab was picked from, kept for next-best retries."""

    candidates: list[ReleaseCandidate]
    retries_left: int
    recorded_at: datetime

    def aged(self, now: datetime) -> list[ReleaseCandidate]:
        waited = max(now - self.recorded_at, timedelta()) / timedelta(days=1)
        return [dataclasses.replace(c, age_days=c.age_days + waited) for c in self.candidates]


class AcquisitionService:
    def __init__(
        self,
        indexers: list[IIndexer],
        library: ILibraryStore,
        throttle: SearchThrottle,
        blocklist: BlocklistManager,
        dispatcher: DownloadDispatcher,
        tracker: QueueStateTracker,
        pending: IPendingReleaseStore,
        settings: Settings,
        clock: Callable[[], datetime] = _utc_now,
        health: IndexerHealth | None = None,
    ) -> None:
        self._indexers = list(indexers)
        self._library = library
        self._throttle = throttle
        self._blocklist = blocklist
        self._dispatcher = dispatcher
        self._tracker = tracker
        self._pending = pending
        self._settings = settings
        self._clock = clock
        self._matcher = TargetMatcher(settings.imports.title_similarity_threshold)
        self._semaphore = asyncio.Semaphore(settings.search.indexer_concurrency)
        self._health = health or IndexerHealth(settings.search, clock)
        self._cycles: dict[str, _SearchCycle] = {}
        tracker.set_failure_handler(self.handle_failed_download)
        tracker.set_completion_handler(self._close_cycle_of)

    @property
    def indexer_health(self) -> IndexerHealth:
        return self._health

    # ------------------------------------------------------------------ #
    # Search
    # ------------------------------------------------------------------ #

    async def trigger_search(self, target_key: TargetKey | str, forced: bool = False) -> SearchOutcome:
        """Search all enabled indexers for one target and grab the best result.

        Raises:
            EntityNotFoundException: unknown target
            ConfigurationError: the catalog violates an invariant
        """
        key = target_key if isinstance(target_key, TargetKey) else TargetKey(target_key)
        set_correlation_id()
        async with log_operation(logger, "search", target=key.value, forced=forced) as log_result:
            outcome = await self._search(key, forced)
            log_result.update(
                grabbed=outcome.grabbed is not None,
                delayed=len(outcome.delayed),
                throttled=outcome.throttled,
                search_failed=outcome.search_failed,
            )
        return outcome

    async def _search(self, key: TargetKey, forced: bool) -> SearchOutcome:
        target = await self._library.get_target(key)
        if target is None:
            raise EntityNotFoundException("AcquisitionTarget", key.value)
        if not target.monitored and not forced:
            return SearchOutcome(target_key=key, unmonitored=True)
        if self._tracker.has_active(key) and not forced:
            return SearchOutcome(target_key=key, already_queued=True)
        if not await self._throttle.should_search(target, forced):
            return SearchOutcome(target_key=key, throttled=True)

        catalog = await self._load_catalog()
        indexers = [ix for ix in self._health.available(self._indexers) if serves(ix, target)]
        if not indexers:
            logger.warning(
                "No usable indexer for %s (disabled, backing off or not serving it)", key.value
            )
            return SearchOutcome(target_key=key, search_failed=True)

        categories = SEARCH_CATEGORIES.get(target.content_kind, ())
        query = target.search_query()
        results, failed = await self._fan_out(
            indexers, lambda ix: ix.search(query, categories), "search"
        )
        if len(failed) == len(indexers):
            return SearchOutcome(target_key=key, search_failed=True, failed_indexers=failed)
        if not results:
            return SearchOutcome(target_key=key, no_results=True, failed_indexers=failed)

        candidates, rejected = self._build_candidates(results, target)
        grab = await self._decide_and_grab(target, candidates, catalog)
        rejected.update(grab.rejected_reasons)
        return SearchOutcome(
            target_key=key,
            grabbed=grab.grabbed,
            delayed=grab.delayed,
            rejected_reasons=dict(rejected),
            no_results=not candidates and not rejected,
            grab_failed=grab.grab_failed,
            failed_indexers=failed,
        )

    async def _load_catalog(self) -> ProfileCatalog:
        catalog = await self._library.get_catalog()
        catalog.validate()
        return catalog

    async def _fan_out(
        self,
        indexers: list[IIndexer],
        call: Callable[[IIndexer], Awaitable[list[IndexerResult]]],
        operation: str,
    ) -> tuple[list[IndexerResult], tuple[str, ...]]:
        """Query indexers concurrently under the global semaphore and one overall timeout.

        Returns results merged in indexer order, plus the names of indexers that
        failed or didn't answer in time. Whatever arrived before the timeout is used.
        """
        search = self._settings.search

        async def query(indexer: IIndexer) -> list[IndexerResult]:
            async def attempt() -> list[IndexerResult]:
                async with self._semaphore:
                    return await call(indexer)

            return await retry_async(
                attempt,
                max_attempts=search.retry_attempts,
                initial_delay=search.retry_initial_delay,
                max_delay=search.retry_max_delay,
                retry_on=(TransientExternalError,),
                label=f"{operation} on {indexer.name}",
            )

        tasks = [asyncio.create_task(query(ix), name=f"{operation}-{ix.name}") for ix in indexers]
        if not tasks:
            return [], ()
        done, pending = await asyncio.wait(tasks, timeout=search.search_timeout_seconds)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        results: list[IndexerResult] = []
        failed: list[str] = []
        for indexer, task in zip(indexers, tasks, strict=True):
            if task not in done:
                logger.warning("Indexer %s timed out during %s", indexer.name, operation)
                failed.append(indexer.name)
                self._health.record_failure(indexer.name)
                continue
            error = task.exception()
            if isinstance(error, ExternalServiceError):
                logger.warning("Indexer %s failed during %s: %s", indexer.name, operation, error.message)
                failed.append(indexer.name)
                self._health.record_failure(indexer.name)
            elif error is not None:
                raise error
            else:
                self._health.clear_failures(indexer.name)
                results.extend(task.result())
        return results, tuple(failed)

    def _build_candidates(
        self, results: list[IndexerResult], target: AcquisitionTarget
    ) -> tuple[list[ReleaseCandidate], Counter[str]]:
        """Parse, drop wrong-target results and number the rest in arrival order."""
        rejected: Counter[str] = Counter()
        candidates: list[ReleaseCandidate] = []
        seen: set[tuple[str, str]] = set()
        for result in results:
            if (result.title, result.indexer) in seen:
                continue
            seen.add((result.title, result.indexer))
            parsed = parse_release(result.title, kind_hint=target.content_kind)
            if parsed is None:
                rejected[RejectReason.UNPARSEABLE.value] += 1
                continue
            if not self._matcher.matches(parsed, target):
                rejected[RejectReason.WRONG_TARGET.value] += 1
                continue
            candidates.append(self._to_candidate(result, parsed, len(candidates)))
        return candidates, rejected

    @staticmethod
    def _to_candidate(
        result: IndexerResult, parsed: ParsedRelease, first_seen: int
    ) -> ReleaseCandidate:
        return ReleaseCandidate(
            parsed=parsed,
            payload_ref=result.payload_ref,
            indexer=result.indexer,
            protocol=result.protocol,
            indexer_priority=result.indexer_priority,
            age_days=result.age_days,
            size=result.size,
            seeders=result.seeders,
            publish_date=result.publish_date,
            first_seen=first_seen,
            info_url=result.info_url,
        )

    async def _decide_and_grab(
        self,
        target: AcquisitionTarget,
        candidates: list[ReleaseCandidate],
        catalog: ProfileCatalog,
        opens_cycle: bool = True,
    ) -> _GrabResult:
        """Decide, grab the best accepted candidate, park the delayed ones.

        A grab opens a fresh retry cycle over `candidates` unless this call IS
        a retry (opens_cycle=False), which keeps spending the current budget.
        """
        engine = DecisionEngine(catalog, await self._blocklist.snapshot())
        decisions = engine.decide_all(candidates, target)
        rejected = Counter(d.reject_reason.value for d in decisions if d.rejected and d.reject_reason)
        delayed = tuple(d for d in decisions if d.delayed)

        ranked = sort_accepted(decisions)
        grab_failed = False
        for decision in ranked[: self._settings.engine.max_grab_attempts]:
            try:
                item = await self._dispatcher.dispatch(decision, target)
            except DownloadClientUnavailableError as e:
                logger.warning("Could not dispatch '%s': %s", decision.candidate.title, e.message)
                grab_failed = True
                continue
            self._tracker.add(item)
            await self._pending.remove_target(target.key)
            if opens_cycle:
                self._open_cycle(target.key, candidates)
            return _GrabResult(grabbed=decision, delayed=delayed, rejected_reasons=dict(rejected))

        if delayed:
            now = self._clock()
            for decision in delayed:
                await self._pending.add(
                    PendingRelease(
                        target_key=target.key,
                        candidate=decision.candidate,
                        release_at=now + (decision.delay or timedelta()),
                        added_at=now,
                    )
                )
            logger.info("Delayed %d candidate(s) for %s", len(delayed), target.key.value)

        return _GrabResult(
            delayed=delayed, rejected_reasons=dict(rejected), grab_failed=grab_failed
        )

    # ------------------------------------------------------------------ #
    # Failure feedback
    # ------------------------------------------------------------------ #

    def _open_cycle(self, key: TargetKey, candidates: list[ReleaseCandidate]) -> None:
        self._cycles.pop(key.value, None)
        self._cycles[key.value] = _SearchCycle(
            candidates=list(candidates),
            retries_left=self._settings.engine.max_retries_per_cycle,
            recorded_at=self._clock(),
        )
        while len(self._cycles) > MAX_RETRY_CYCLES:
            # Dicts keep insertion order and re-opened cycles were moved to the end
            del self._cycles[next(iter(self._cycles))]

    async def _close_cycle_of(self, item: QueueItem) -> None:
        self._cycles.pop(item.target_key.value, None)

    def retries_left(self, target_key: TargetKey | str) -> int | None:
        """Next-best grabs still allowed for the target's current grab, None when no cycle is open."""
        key = target_key.value if isinstance(target_key, TargetKey) else target_key
        cycle = self._cycles.get(key)
        return cycle.retries_left if cycle is not None else None

    async def handle_failed_download(self, item: QueueItem) -> None:
        """Grab the next best cached candidate after a blocklisting."""
        key = item.target_key.value
        cycle = self._cycles.get(key)
        if cycle is None or cycle.retries_left <= 0:
            logger.info("No retry left for %s after failed '%s'", key, item.candidate.title)
            self._cycles.pop(key, None)
            return
        cycle.retries_left -= 1

        target = await self._library.get_target(item.target_key)
        if target is None or not target.monitored:
            self._cycles.pop(key, None)
            return
        catalog = await self._load_catalog()
        grab = await self._decide_and_grab(
            target, cycle.aged(self._clock()), catalog, opens_cycle=False
        )
        if grab.grabbed is None:
            self._cycles.pop(key, None)
            return
        logger.info(
            "Replaced failed '%s' with '%s' for %s",
            item.candidate.title,
            grab.grabbed.candidate.title,
            target.key.value,
        )

    # ------------------------------------------------------------------ #
    # RSS sync
    # ------------------------------------------------------------------ #

    async def trigger_rss_sync(self, indexer_ids: list[str] | None = None) -> RssSyncResult:
        """Pull every RSS feed and grab whatever a monitored target wants."""
        set_correlation_id()
        async with log_operation(logger, "rss_sync") as log_result:
            result = await self._rss_sync(indexer_ids)
            log_result.update(processed=result.processed, grabbed=len(result.grabbed))
        return result

    async def _rss_sync(self, indexer_ids: list[str] | None) -> RssSyncResult:
        wanted = set(indexer_ids) if indexer_ids is not None else None
        indexers = [
            ix
            for ix in self._health.available(self._indexers)
            if ix.supports_rss and (wanted is None or ix.name in wanted)
        ]
        by_name = {ix.name: ix for ix in indexers}
        results, failed = await self._fan_out(indexers, lambda ix: ix.fetch_rss(), "rss")
        if not results:
            return RssSyncResult(failed_indexers=failed)

        catalog = await self._load_catalog()
        per_target: dict[str, tuple[AcquisitionTarget, list[ReleaseCandidate]]] = {}
        seen: set[tuple[str, str]] = set()
        for result in results:
            if (result.title, result.indexer) in seen:
                continue
            seen.add((result.title, result.indexer))
            parsed = parse_release(result.title)
            if parsed is None:
                continue
            for target in await self._library.find_targets(parsed):
                if not target.monitored or self._tracker.has_active(target.key):
                    continue
                source = by_name.get(result.indexer)
                if source is not None and not serves(source, target):
                    continue
                hinted = parse_release(result.title, kind_hint=target.content_kind) or parsed
                if not self._matcher.matches(hinted, target):
                    continue
                _, bucket = per_target.setdefault(target.key.value, (target, []))
                bucket.append(self._to_candidate(result, hinted, len(bucket)))

        grabbed = []
        for target, candidates in per_target.values():
            grab = await self._decide_and_grab(target, candidates, catalog)
            if grab.grabbed is not None:
                grabbed.append(grab.grabbed)
        return RssSyncResult(processed=len(seen), grabbed=tuple(grabbed), failed_indexers=failed)

    # ------------------------------------------------------------------ #
    # Pending releases
    # ------------------------------------------------------------------ #

    async def process_pending_releases(self, now: datetime | None = None) -> list[Decision]:
        """Re-decide delayed candidates whose delay elapsed."""
        now = now or self._clock()
        due = await self._pending.due(now)
        if not due:
            return []

        catalog = await self._load_catalog()
        grabbed = []
        for key in dict.fromkeys(p.target_key.value for p in due):
            target_key = TargetKey(key)
            # Not-yet-due siblings are re-decided too and simply come back delayed
            releases = await self._pending.for_target(target_key)
            await self._pending.remove_target(target_key)
            target = await self._library.get_target(target_key)
            if target is None or not target.monitored or self._tracker.has_active(target_key):
                continue
            # The candidate kept aging while it waited
            candidates = [
                dataclasses.replace(
                    p.candidate,
                    age_days=p.candidate.age_days + (now - p.added_at) / timedelta(days=1),
                )
                for p in releases
            ]
            grab = await self._decide_and_grab(target, candidates, catalog)
            if grab.grabbed is not None:
                grabbed.append(grab.grabbed)
        return grabbed

    # ------------------------------------------------------------------ #
    # Queue surface
    # ------------------------------------------------------------------ #

    async def cancel_queue_item(self, item_id: str, blocklist: bool = False) -> QueueItem:
        item = await self._tracker.cancel(item_id, blocklist=blocklist)
        if not self._tracker.has_active(item.target_key):
            await self._close_cycle_of(item)
        return item

    def get_queue_snapshot(self, include_finished: bool = False) -> list[QueueItem]:
        return self._tracker.snapshot(include_finished=include_finished)

    def get_queue_statistics(self) -> QueueStatistics:
        return self._tracker.statistics()


__all__ = [
    "AcquisitionService",
    "MAX_RETRY_CYCLES",
    "RssSyncResult",
    "SEARCH_CATEGORIES",
    "SearchOutcome",
]
