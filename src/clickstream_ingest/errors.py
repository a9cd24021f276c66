"""Error taxonomy for decode, delivery and checkpoint failures."""

from __future__ import annotations


class IngestError(Exception):
    """Base class for all ingestion errors."""


class DecodeError(IngestError):
    """Typed decode failed; recovered locally through the generic fallback."""


class DecodeFatalError(IngestError):
    """Both typed and generic decode failed for a payload."""

    def __init__(self, topic: str, message: str) -> None:
        super().__init__(f"{topic}: {message}")
        self.topic = topic


class SinkError(IngestError):
    """Base class for downstream sink failures."""


class RetryableSinkError(SinkError):
    """Transient sink failure; safe to retry with backoff.

    ``failed_records`` names the subset of the batch the sink rejected, when
    the sink reports per-record outcomes.  ``None`` means the whole batch.
    """

    def __init__(self, message: str, failed_records: list[str] | None = None) -> None:
        super().__init__(message)
        self.failed_records = failed_records


class FatalSinkError(SinkError):
    """Permanent sink failure, or retries exhausted."""


class CheckpointWriteError(IngestError):
    """The watermark could not be persisted; processing must not continue."""


class RoundTimeoutError(IngestError):
    """A round did not finish within its deadline."""


class DispatchError(IngestError):
    """One or more rounds of a dispatch failed."""

    def __init__(self, request_id: str, failures: dict[str, BaseException]) -> None:
        partitions = ", ".join(sorted(failures))
        super().__init__(f"Dispatch {request_id} failed for partitions: {partitions}")
        self.request_id = request_id
        self.failures = failures
