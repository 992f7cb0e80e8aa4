"""Application services."""

from fetcharr.application.services.acquisition_service import (
    AcquisitionService,
    RssSyncResult,
    SearchOutcome,
)
from fetcharr.application.services.blocklist_manager import BlocklistManager
from fetcharr.application.services.decision_engine import DecisionEngine, check_upgrade
from fetcharr.application.services.download_dispatcher import DownloadDispatcher
from fetcharr.application.services.history import HistoryRecorder
from fetcharr.application.services.indexer_health import IndexerHealth, IndexerStatus, serves
from fetcharr.application.services.import_matcher import (
    ImportedFile,
    ImportMatcher,
    ImportResult,
    ManualImport,
)
from fetcharr.application.services.queue_tracker import PollSummary, QueueStateTracker
from fetcharr.application.services.ranker import rank, sort_accepted
from fetcharr.application.services.search_throttle import LifecycleState, SearchThrottle
from fetcharr.application.services.target_matcher import TargetMatcher, title_similarity

__all__ = [
    "AcquisitionService",
    "BlocklistManager",
    "DecisionEngine",
    "DownloadDispatcher",
    "HistoryRecorder",
    "ImportMatcher",
    "ImportResult",
    "ImportedFile",
    "IndexerHealth",
    "IndexerStatus",
    "LifecycleState",
    "ManualImport",
    "PollSummary",
    "QueueStateTracker",
    "RssSyncResult",
    "SearchOutcome",
    "SearchThrottle",
    "TargetMatcher",
    "check_upgrade",
    "rank",
    "serves",
    "sort_accepted",
    "title_similarity",
]
