"""Domain entities."""

from fetcharr.domain.entities.catalog import ProfileCatalog
from fetcharr.domain.entities.custom_format import (
    ConditionKind,
    CustomFormat,
    FormatCondition,
    score_custom_formats,
)
from fetcharr.domain.entities.decision import (
    Decision,
    DecisionOutcome,
    RejectReason,
    ScoreBreakdown,
)
from fetcharr.domain.entities.delay_profile import DelayProfile, resolve_delay_profile
from fetcharr.domain.entities.quality import (
    DEFAULT_QUALITY_DEFINITIONS,
    UNKNOWN_TIER,
    QualityDefinition,
    QualityDefinitionTable,
    QualityProfile,
)
from fetcharr.domain.entities.queue import (
    ClientProgress,
    ClientState,
    QueueItem,
    QueueState,
    QueueStatistics,
)
from fetcharr.domain.entities.release import (
    DEFAULT_INDEXER_PRIORITY,
    AcquisitionTarget,
    CurrentFile,
    ReleaseCandidate,
)
from fetcharr.domain.entities.restriction import Restriction, Term
from fetcharr.domain.entities.tracking import (
    BlocklistEntry,
    HistoryEvent,
    HistoryEventType,
    PendingRelease,
    SearchCooldownRecord,
)

__all__ = [
    "AcquisitionTarget",
    "BlocklistEntry",
    "ClientProgress",
    "ClientState",
    "ConditionKind",
    "CurrentFile",
    "CustomFormat",
    "DEFAULT_INDEXER_PRIORITY",
    "DEFAULT_QUALITY_DEFINITIONS",
    "Decision",
    "DecisionOutcome",
    "DelayProfile",
    "FormatCondition",
    "HistoryEvent",
    "HistoryEventType",
    "PendingRelease",
    "ProfileCatalog",
    "QualityDefinition",
    "QualityDefinitionTable",
    "QualityProfile",
    "QueueItem",
    "QueueState",
    "QueueStatistics",
    "RejectReason",
    "ReleaseCandidate",
    "Restriction",
    "ScoreBreakdown",
    "SearchCooldownRecord",
    "Term",
    "UNKNOWN_TIER",
    "resolve_delay_profile",
    "score_custom_formats",
]
