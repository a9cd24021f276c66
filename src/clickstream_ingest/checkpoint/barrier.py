"""Multi-worker checkpoint barrier.

Each worker reports the highest position it processed at the end of its
round.  The barrier keeps the running maximum and, when the report count
reaches the expected number of workers, persists that maximum once and starts
a new cycle.  The persisted watermark never decreases.

State is guarded by a ``threading.Lock`` that is also held across the store
write, so the persist and the counter reset happen as one step with respect
to every other reporter.  Callers on an event loop should invoke ``report``
through ``run_in_executor``.
"""

from __future__ import annotations

import threading

import structlog

from clickstream_ingest.checkpoint.store import WatermarkStore
from clickstream_ingest.errors import CheckpointWriteError

logger = structlog.get_logger()


class CheckpointBarrier:
    """Converges positions from N workers into one persisted watermark."""

    def __init__(self, store: WatermarkStore, expected: int = 1) -> None:
        if expected < 1:
            msg = f"expected reporter count must be >= 1, got {expected}"
            raise ValueError(msg)
        self._store = store
        self._expected = expected
        self._lock = threading.Lock()
        self._max_observed = 0
        self._count = 0
        self._watermark: int | None = None
        self._broken: CheckpointWriteError | None = None

    def load(self) -> int:
        """Initialize from the persisted watermark; returns the resume position."""
        stored = self._store.read()
        with self._lock:
            if stored is None:
                logger.info("checkpoint.not_found", resume_position=0)
                self._watermark = None
                self._max_observed = 0
            else:
                self._watermark = stored
                self._max_observed = max(self._max_observed, stored)
                logger.info(
                    "checkpoint.loaded",
                    watermark=stored,
                    resume_position=stored + 1,
                )
            self._count = 0
        return self.resume_position

    @property
    def expected(self) -> int:
        return self._expected

    @property
    def max_observed(self) -> int:
        with self._lock:
            return self._max_observed

    @property
    def reporter_count(self) -> int:
        with self._lock:
            return self._count

    @property
    def watermark(self) -> int | None:
        """Last persisted watermark, ``None`` if nothing was ever persisted."""
        with self._lock:
            return self._watermark

    @property
    def resume_position(self) -> int:
        with self._lock:
            return 0 if self._watermark is None else self._watermark + 1

    def resize(self, expected: int) -> None:
        """Set the number of reporters for the next cycle.

        Only allowed between cycles; changing N mid-cycle would make the
        barrier fire early or never.
        """
        if expected < 1:
            msg = f"expected reporter count must be >= 1, got {expected}"
            raise ValueError(msg)
        with self._lock:
            if self._count != 0:
                msg = (
                    f"Cannot resize barrier to {expected} with "
                    f"{self._count}/{self._expected} reports pending"
                )
                raise RuntimeError(msg)
            self._expected = expected

    def report(self, position: int) -> bool:
        """Record *position*; returns True if this call persisted the watermark."""
        with self._lock:
            if self._broken is not None:
                msg = "Checkpoint barrier is broken by an earlier write failure"
                raise CheckpointWriteError(msg) from self._broken

            if position > self._max_observed:
                self._max_observed = position
            self._count += 1

            if self._count < self._expected:
                logger.debug(
                    "checkpoint.reported",
                    position=position,
                    reporters=self._count,
                    expected=self._expected,
                )
                return False

            value = self._max_observed
            try:
                self._store.write(value)
            except CheckpointWriteError as exc:
                self._broken = exc
                logger.error("checkpoint.write_failed", position=value, error=str(exc))
                raise
            except Exception as exc:
                err = CheckpointWriteError(f"Failed to persist watermark {value}: {exc}")
                self._broken = err
                logger.error("checkpoint.write_failed", position=value, error=str(exc))
                raise err from exc

            self._watermark = value
            self._count = 0
            logger.info("checkpoint.persisted", watermark=value, reporters=self._expected)
            return True

    def abandon_cycle(self) -> int:
        """Discard pending reports of an incomplete cycle; returns how many.

        The observed maximum is kept, so the next completed cycle still
        persists it.
        """
        with self._lock:
            pending = self._count
            self._count = 0
        if pending:
            logger.warning(
                "checkpoint.cycle_abandoned",
                pending=pending,
                expected=self._expected,
            )
        return pending
