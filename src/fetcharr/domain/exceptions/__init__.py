"""Domain exceptions.

Hey future me - "no match" and "rejected" are NOT exceptions in this code base!
The parser returns None and the decision engine returns a Decision with a reason
code. Only genuinely exceptional conditions (network failure, broken config,
illegal state transition) live here.
"""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # We store message as an attribute so code can inspect it without parsing
    # str(exception). Don't raise this directly - use a specific subclass.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found."""

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class InvalidStateException(DomainException):
    """Raised when an entity is in an invalid state for the requested operation.

    Example: moving a queue item out of COMPLETED or FAILED, or resuming
    an item that was never paused.
    """

    def __init__(self, message: str, *, current_state: str | None = None) -> None:
        super().__init__(message)
        self.current_state = current_state


class ConfigurationError(DomainException):
    """Fatal configuration error.

    Raised when persisted configuration violates an invariant, e.g. a quality
    profile whose cutoff tier is not in its own allowed list, or two delay
    profiles that resolve with equal specificity for the same target.
    Never silently worked around - surface it to the operator.
    """

    pass


class ExternalServiceError(DomainException):
    """External collaborator (indexer, download client, filesystem) failed."""

    def __init__(self, message: str, *, service: str | None = None) -> None:
        super().__init__(message)
        self.service = service


class TransientExternalError(ExternalServiceError):
    """Retryable external failure (timeout, unreachable, busy).

    Callers retry these with bounded exponential backoff. After retries are
    exhausted the work is skipped for this cycle - never a crash.
    """

    pass


class IndexerUnavailableError(TransientExternalError):
    """Indexer timed out, returned 5xx, or kept rate limiting us."""

    pass


class DownloadClientUnavailableError(TransientExternalError):
    """Download client did not accept a submission.

    Hey future me - the dispatcher raises this WITHOUT creating a queue entry.
    The acquisition service catches it and moves on to the next ranked candidate.
    """

    pass


class RateLimitExceededError(TransientExternalError):
    """External service answered 429 Too Many Requests."""

    def __init__(
        self, message: str, *, service: str | None = None, retry_after: int | None = None
    ) -> None:
        super().__init__(message, service=service)
        self.retry_after = retry_after


class FilePlacementError(ExternalServiceError):
    """File organizer could not place a file into the library."""

    def __init__(self, message: str, *, source_path: str | None = None) -> None:
        super().__init__(message, service="file_organizer")
        self.source_path = source_path


__all__ = [
    "ConfigurationError",
    "DomainException",
    "DownloadClientUnavailableError",
    "EntityNotFoundException",
    "ExternalServiceError",
    "FilePlacementError",
    "IndexerUnavailableError",
    "InvalidStateException",
    "RateLimitExceededError",
    "TransientExternalError",
]
