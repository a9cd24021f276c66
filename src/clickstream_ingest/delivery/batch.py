"""In-memory delivery batches."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field


def wire_size(text: str) -> int:
    """Bytes *text* occupies in a sink request, newline terminator included."""
    return len(text.encode()) + 1


@dataclass(slots=True)
class Batch:
    """Ordered record strings of one delivery, tagged for log correlation."""

    request_id: str
    batch_number: int
    records: list[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.records)


class BatchAccumulator:
    """Collects record text in insertion order up to a record/byte ceiling.

    The accumulator never flushes on its own; ``fits()`` tells the caller when
    the next record would overflow so it can force an early partial delivery.
    """

    def __init__(self, max_records: int = 500, max_bytes: int = 4 * 1024 * 1024) -> None:
        if max_records < 1 or max_bytes < 1:
            msg = "max_records and max_bytes must be positive"
            raise ValueError(msg)
        self._max_records = max_records
        self._max_bytes = max_bytes
        self._records: list[str] = []
        self._size = 0
        self._request_id: str | None = None

    def __len__(self) -> int:
        return len(self._records)

    @property
    def size_bytes(self) -> int:
        """Request bytes of the accumulated records, terminators included."""
        return self._size

    @property
    def records(self) -> list[str]:
        return list(self._records)

    def fits(self, text: str) -> bool:
        """True if *text* can be added without exceeding either ceiling.

        An empty accumulator accepts any single record.
        """
        if not self._records:
            return True
        return (
            len(self._records) + 1 <= self._max_records
            and self._size + wire_size(text) <= self._max_bytes
        )

    def add(self, text: str, request_id: str) -> None:
        if self._request_id is not None and request_id != self._request_id:
            msg = (
                f"Batch belongs to request {self._request_id}, "
                f"cannot add record for {request_id}"
            )
            raise ValueError(msg)
        self._request_id = request_id
        self._records.append(text)
        self._size += wire_size(text)

    def drain(self, batch_number: int) -> Batch:
        """Return the accumulated batch and reset the accumulator."""
        batch = Batch(
            request_id=self._request_id or "",
            batch_number=batch_number,
            records=self._records,
        )
        self._records = []
        self._size = 0
        self._request_id = None
        return batch


class BatchSequence:
    """Thread-safe batch-number counter shared by all workers.

    Used only to correlate log lines; it carries no ordering guarantee.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value = 0

    @property
    def current(self) -> int:
        with self._lock:
            return self._value

    def next(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    def reset(self) -> None:
        with self._lock:
            self._value = 0
