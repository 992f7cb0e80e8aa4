"""SQLAlchemy implementations of the blocklist, cooldown and pending-release stores."""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fetcharr.domain.entities import (
    BlocklistEntry,
    PendingRelease,
    ReleaseCandidate,
    SearchCooldownRecord,
)
from fetcharr.domain.exceptions import ConfigurationError
from fetcharr.domain.ports import (
    BlocklistSnapshot,
    IBlocklistStore,
    IPendingReleaseStore,
    ISearchCooldownStore,
)
from fetcharr.domain.value_objects import ContentKind, Protocol, ReleaseIdentity, TargetKey
from fetcharr.domain.value_objects.release_parser import parse_release
from fetcharr.infrastructure.persistence.models import (
    BlocklistModel,
    PendingReleaseModel,
    SearchCooldownModel,
    ensure_utc_aware,
)
from fetcharr.infrastructure.retry import with_db_retry

logger = logging.getLogger(__name__)


# Hey future me, unlike request-scoped repos these stores are long-lived (the
# engine holds them for the whole process), so each call opens and commits its
# OWN short session. Never hold a session across an await on the network.
class BlocklistRepository(IBlocklistStore):
    """Blocklist persisted in the `blocklist` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @staticmethod
    def _model_to_entity(model: BlocklistModel) -> BlocklistEntry:
        return BlocklistEntry(
            identity=ReleaseIdentity(model.title, model.indexer),
            target_key=TargetKey(model.target_key),
            reason=model.reason,
            blocked_at=ensure_utc_aware(model.blocked_at),
            protocol=model.protocol,
        )

    @with_db_retry()
    async def add(self, entry: BlocklistEntry) -> bool:
        async with self._session_factory() as session:
            stmt = select(BlocklistModel.id).where(
                BlocklistModel.title == entry.identity.title,
                BlocklistModel.indexer == entry.identity.indexer,
                BlocklistModel.target_key == entry.target_key.value,
            )
            if (await session.execute(stmt)).first() is not None:
                return False

            session.add(
                BlocklistModel(
                    title=entry.identity.title,
                    indexer=entry.identity.indexer,
                    target_key=entry.target_key.value,
                    reason=entry.reason,
                    protocol=entry.protocol,
                    blocked_at=entry.blocked_at,
                )
            )
            try:
                await session.commit()
            except IntegrityError:
                # Lost a race with a concurrent add of the same triple
                await session.rollback()
                return False
        return True

    async def snapshot(self) -> BlocklistSnapshot:
        async with self._session_factory() as session:
            stmt = select(BlocklistModel.title, BlocklistModel.indexer, BlocklistModel.target_key)
            rows = (await session.execute(stmt)).all()
        return BlocklistSnapshot(frozenset((row[0], row[1], row[2]) for row in rows))

    async def list_for_target(self, target_key: TargetKey) -> list[BlocklistEntry]:
        async with self._session_factory() as session:
            stmt = (
                select(BlocklistModel)
                .where(BlocklistModel.target_key == target_key.value)
                .order_by(BlocklistModel.blocked_at)
            )
            models = (await session.execute(stmt)).scalars().all()
        return [self._model_to_entity(model) for model in models]


class SearchCooldownRepository(ISearchCooldownStore):
    """Search cooldowns persisted in the `search_cooldowns` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, target_key: TargetKey) -> SearchCooldownRecord | None:
        async with self._session_factory() as session:
            model = await session.get(SearchCooldownModel, target_key.value)
            if model is None:
                return None
            return SearchCooldownRecord(
                target_key=target_key,
                last_search_at=ensure_utc_aware(model.last_search_at),
                next_eligible_at=ensure_utc_aware(model.next_eligible_at),
            )

    @with_db_retry()
    async def put(self, record: SearchCooldownRecord) -> None:
        async with self._session_factory() as session:
            await session.merge(
                SearchCooldownModel(
                    target_key=record.target_key.value,
                    last_search_at=record.last_search_at,
                    next_eligible_at=record.next_eligible_at,
                )
            )
            await session.commit()


# Yo, pending candidates are stored as plain JSON and RE-PARSED on load. The
# parser is deterministic, so the title + kind we stored give back the same
# ParsedRelease without us having to persist every parsed field.
def candidate_to_dict(candidate: ReleaseCandidate) -> dict[str, Any]:
    return {
        "title": candidate.title,
        "kind": candidate.parsed.kind.value,
        "payload_ref": candidate.payload_ref,
        "indexer": candidate.indexer,
        "protocol": candidate.protocol.value,
        "indexer_priority": candidate.indexer_priority,
        "age_days": candidate.age_days,
        "size": candidate.size,
        "seeders": candidate.seeders,
        "publish_date": candidate.publish_date.isoformat() if candidate.publish_date else None,
        "first_seen": candidate.first_seen,
        "info_url": candidate.info_url,
    }


def candidate_from_dict(data: dict[str, Any]) -> ReleaseCandidate:
    parsed = parse_release(data["title"], kind_hint=ContentKind(data["kind"]))
    if parsed is None:
        raise ConfigurationError(f"Stored pending release no longer parses: {data['title']!r}")
    publish_date = data.get("publish_date")
    return ReleaseCandidate(
        parsed=parsed,
        payload_ref=data["payload_ref"],
        indexer=data["indexer"],
        protocol=Protocol(data["protocol"]),
        indexer_priority=data["indexer_priority"],
        age_days=data["age_days"],
        size=data["size"],
        seeders=data.get("seeders"),
        publish_date=datetime.fromisoformat(publish_date) if publish_date else None,
        first_seen=data.get("first_seen", 0),
        info_url=data.get("info_url"),
    )


class PendingReleaseRepository(IPendingReleaseStore):
    """Delayed candidates persisted in the `pending_releases` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @staticmethod
    def _model_to_entity(model: PendingReleaseModel) -> PendingRelease:
        return PendingRelease(
            target_key=TargetKey(model.target_key),
            candidate=candidate_from_dict(model.candidate),
            release_at=ensure_utc_aware(model.release_at),
            added_at=ensure_utc_aware(model.added_at),
        )

    @with_db_retry()
    async def add(self, pending: PendingRelease) -> None:
        async with self._session_factory() as session:
            await session.execute(
                delete(PendingReleaseModel).where(
                    PendingReleaseModel.target_key == pending.target_key.value,
                    PendingReleaseModel.title == pending.candidate.title,
                    PendingReleaseModel.indexer == pending.candidate.indexer,
                )
            )
            session.add(
                PendingReleaseModel(
                    target_key=pending.target_key.value,
                    title=pending.candidate.title,
                    indexer=pending.candidate.indexer,
                    candidate=candidate_to_dict(pending.candidate),
                    release_at=pending.release_at,
                    added_at=pending.added_at,
                )
            )
            await session.commit()

    async def due(self, now: datetime) -> list[PendingRelease]:
        async with self._session_factory() as session:
            models = (await session.execute(select(PendingReleaseModel))).scalars().all()
        # Compared in Python: SQLite hands back naive datetimes
        pending = [self._model_to_entity(model) for model in models]
        return [p for p in pending if p.is_due(now)]

    async def for_target(self, target_key: TargetKey) -> list[PendingRelease]:
        async with self._session_factory() as session:
            stmt = select(PendingReleaseModel).where(
                PendingReleaseModel.target_key == target_key.value
            )
            models = (await session.execute(stmt)).scalars().all()
        return [self._model_to_entity(model) for model in models]

    @with_db_retry()
    async def remove_target(self, target_key: TargetKey) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(PendingReleaseModel).where(
                    PendingReleaseModel.target_key == target_key.value
                )
            )
            await session.commit()
        removed = result.rowcount or 0
        if removed:
            logger.debug("Dropped %d pending release(s) for %s", removed, target_key)
        return removed


__all__ = [
    "BlocklistRepository",
    "PendingReleaseRepository",
    "SearchCooldownRepository",
    "candidate_from_dict",
    "candidate_to_dict",
]
