"""Background workers."""

from fetcharr.application.workers.queue_poll_worker import QueuePollWorker
from fetcharr.application.workers.rss_sync_worker import RssSyncWorker

__all__ = ["QueuePollWorker", "RssSyncWorker"]
