"""Queue item state machine and download-client progress reports.

Hey future me - the queue state machine:

    QUEUED → DOWNLOADING → IMPORTING → COMPLETED
                                    ↘ FAILED
    QUEUED/DOWNLOADING ⇄ PAUSED
    any non-terminal → FAILED (client error, stall timeout, cancel)

COMPLETED and FAILED are terminal. Every method below raises
InvalidStateException on an illegal transition, so never set `state` directly.
`warning` is NOT a state, it's a flag that can ride along any non-terminal state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum

from fetcharr.domain.entities.release import ReleaseCandidate
from fetcharr.domain.exceptions import InvalidStateException
from fetcharr.domain.value_objects import Protocol, QueueItemId, TargetKey


class QueueState(str, Enum):
    """Lifecycle state of a queue item."""

    QUEUED = "queued"
    DOWNLOADING = "downloading"
    PAUSED = "paused"
    IMPORTING = "importing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (QueueState.COMPLETED, QueueState.FAILED)

    @property
    def is_active(self) -> bool:
        return not self.is_terminal


class ClientState(str, Enum):
    """Download client's view of a transfer, mapped by each adapter."""

    QUEUED = "queued"
    DOWNLOADING = "downloading"
    PAUSED = "paused"
    POST_PROCESSING = "post_processing"  # All bytes in, client verifies/repairs/unpacks
    COMPLETED = "completed"
    FAILED = "failed"
    MISSING = "missing"  # Client no longer knows the id


@dataclass(frozen=True)
class ClientProgress:
    """One poll result from a download client."""

    state: ClientState
    total_size: int = 0
    remaining_size: int = 0
    eta_seconds: int | None = None
    output_path: str | None = None
    error_message: str | None = None
    warning_message: str | None = None

    @property
    def percent(self) -> float:
        if self.total_size <= 0:
            return 0.0
        done = self.total_size - self.remaining_size
        return max(0.0, min(100.0, done * 100.0 / self.total_size))


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass
class QueueItem:
    """One grabbed release as it moves through the download client and import.

    The id is the download client's id for the transfer.
    """

    id: QueueItemId
    target_key: TargetKey
    candidate: ReleaseCandidate
    client_name: str
    protocol: Protocol
    total_size: int = 0
    remaining_size: int = 0
    state: QueueState = QueueState.QUEUED
    error_message: str | None = None
    warning: bool = False
    warning_message: str | None = None
    output_path: str | None = None
    cancel_requested: bool = False
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)
    started_at: datetime | None = None
    last_progress_at: datetime | None = None
    completed_at: datetime | None = None

    def _require(self, *allowed: QueueState, action: str) -> None:
        if self.state not in allowed:
            raise InvalidStateException(
                f"Cannot {action} queue item {self.id} in state {self.state.value}",
                current_state=self.state.value,
            )

    def _touch(self, now: datetime | None) -> datetime:
        stamp = now or _now()
        self.updated_at = stamp
        return stamp

    def start(self, now: datetime | None = None) -> None:
        """Client reports the transfer started."""
        self._require(QueueState.QUEUED, action="start")
        stamp = self._touch(now)
        self.state = QueueState.DOWNLOADING
        self.started_at = self.started_at or stamp
        self.last_progress_at = stamp

    def update_progress(
        self, remaining_size: int, total_size: int | None = None, now: datetime | None = None
    ) -> bool:
        """Record size-left. Returns True when bytes actually moved.

        Only a decreasing remaining size counts as progress for stall detection.
        """
        self._require(QueueState.DOWNLOADING, action="update progress of")
        stamp = self._touch(now)
        if total_size:
            self.total_size = total_size
        moved = remaining_size < self.remaining_size or self.last_progress_at is None
        self.remaining_size = max(0, remaining_size)
        if moved:
            self.last_progress_at = stamp
        return moved

    def record_activity(self, now: datetime | None = None) -> None:
        """Client is busy without moving bytes (repair, unpack): restart the stall clock."""
        self._require(QueueState.DOWNLOADING, action="record activity of")
        self.last_progress_at = self._touch(now)

    def mark_downloaded(self, output_path: str | None, now: datetime | None = None) -> None:
        """Client reports 100%: hand over to import."""
        self._require(QueueState.DOWNLOADING, action="mark downloaded")
        self._touch(now)
        self.state = QueueState.IMPORTING
        self.remaining_size = 0
        self.output_path = output_path or self.output_path

    def complete_import(self, now: datetime | None = None) -> None:
        self._require(QueueState.IMPORTING, action="complete import of")
        self.completed_at = self._touch(now)
        self.state = QueueState.COMPLETED

    def fail(self, error_message: str, now: datetime | None = None) -> None:
        """Move to FAILED from any non-terminal state."""
        self._require(
            QueueState.QUEUED,
            QueueState.DOWNLOADING,
            QueueState.PAUSED,
            QueueState.IMPORTING,
            action="fail",
        )
        self.completed_at = self._touch(now)
        self.state = QueueState.FAILED
        self.error_message = error_message

    def pause(self, now: datetime | None = None) -> None:
        self._require(QueueState.QUEUED, QueueState.DOWNLOADING, action="pause")
        self._touch(now)
        self.state = QueueState.PAUSED

    def resume(self, now: datetime | None = None) -> None:
        """Back to DOWNLOADING if the transfer had started, else QUEUED.

        The stall clock restarts on resume: paused time is not stall time.
        """
        self._require(QueueState.PAUSED, action="resume")
        stamp = self._touch(now)
        if self.started_at is not None:
            self.state = QueueState.DOWNLOADING
            self.last_progress_at = stamp
        else:
            self.state = QueueState.QUEUED

    def set_warning(self, message: str | None, now: datetime | None = None) -> None:
        """Set (message) or clear (None) the non-fatal warning flag."""
        if self.state.is_terminal:
            return
        self._touch(now)
        self.warning = message is not None
        self.warning_message = message

    def is_stalled(self, stall_timeout: timedelta, now: datetime | None = None) -> bool:
        if self.state != QueueState.DOWNLOADING or self.last_progress_at is None:
            return False
        return (now or _now()) - self.last_progress_at >= stall_timeout

    @property
    def is_finished(self) -> bool:
        return self.state.is_terminal

    @property
    def progress_percent(self) -> float:
        if self.state in (QueueState.IMPORTING, QueueState.COMPLETED):
            return 100.0
        if self.total_size <= 0:
            return 0.0
        return (self.total_size - self.remaining_size) * 100.0 / self.total_size


@dataclass(frozen=True)
class QueueStatistics:
    """Counts for the queue summary bar."""

    queued: int = 0
    downloading: int = 0
    paused: int = 0
    importing: int = 0
    warning: int = 0
    completed_today: int = 0
    failed_today: int = 0

    @property
    def total_active(self) -> int:
        return self.queued + self.downloading + self.paused + self.importing

    @property
    def summary_text(self) -> str:
        parts = []
        if self.queued > 0:
            parts.append(f"{self.queued} queued")
        if self.downloading > 0:
            parts.append(f"{self.downloading} downloading")
        if self.paused > 0:
            parts.append(f"{self.paused} paused")
        if self.importing > 0:
            parts.append(f"{self.importing} importing")
        if self.warning > 0:
            parts.append(f"{self.warning} with warnings")
        if self.completed_today > 0:
            parts.append(f"{self.completed_today} completed today")
        if self.failed_today > 0:
            parts.append(f"{self.failed_today} failed")
        return " │ ".join(parts) if parts else "No downloads"


__all__ = [
    "ClientProgress",
    "ClientState",
    "QueueItem",
    "QueueState",
    "QueueStatistics",
]
