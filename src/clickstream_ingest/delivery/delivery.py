"""Resilient batch delivery with bounded backoff retry."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    stop_after_delay,
)

from clickstream_ingest.config.models import DeliveryConfig
from clickstream_ingest.delivery.backoff import BackoffPolicy
from clickstream_ingest.delivery.batch import BatchSequence
from clickstream_ingest.errors import FatalSinkError, RetryableSinkError
from clickstream_ingest.sinks.base import BatchSink

logger = structlog.get_logger()

Sleep = Callable[[float], Awaitable[None]]


class SinkDelivery:
    """Sends a batch to the sink, retrying transient failures with backoff.

    Retries stop after ``max_attempts`` sends (and, if set, once
    ``max_elapsed_seconds`` have passed); exhaustion surfaces as
    ``FatalSinkError``.  A fatal sink error is never retried.
    """

    def __init__(
        self,
        sink: BatchSink,
        backoff: BackoffPolicy,
        *,
        max_attempts: int = 5,
        max_elapsed_seconds: float | None = None,
        sequence: BatchSequence | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            msg = f"max_attempts must be >= 1, got {max_attempts}"
            raise ValueError(msg)
        self._sink = sink
        self._backoff = backoff
        self._max_attempts = max_attempts
        self._max_elapsed = max_elapsed_seconds
        self._sequence = sequence
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        sink: BatchSink,
        backoff: BackoffPolicy,
        config: DeliveryConfig,
        sequence: BatchSequence | None = None,
    ) -> SinkDelivery:
        return cls(
            sink,
            backoff,
            max_attempts=config.max_attempts,
            max_elapsed_seconds=config.max_elapsed_seconds,
            sequence=sequence,
        )

    @property
    def sink(self) -> BatchSink:
        return self._sink

    async def deliver_batch(
        self,
        records: Sequence[str],
        attempt: int,
        request_id: str,
        batch_number: int,
    ) -> None:
        """Deliver *records*, starting the backoff curve at *attempt*."""
        pending = list(records)
        sends = 0

        def _wait(retry_state: RetryCallState) -> float:
            return self._backoff.delay(attempt + retry_state.attempt_number - 1)

        def _before_sleep(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                "delivery.retrying",
                sink_id=self._sink.sink_id,
                request_id=request_id,
                batch_number=batch_number,
                attempt=attempt + retry_state.attempt_number - 1,
                pending=len(pending),
                delay=retry_state.next_action.sleep if retry_state.next_action else None,
                error=str(exc),
            )

        stop = stop_after_attempt(self._max_attempts)
        if self._max_elapsed is not None:
            stop = stop | stop_after_delay(self._max_elapsed)

        retrying = AsyncRetrying(
            stop=stop,
            wait=_wait,
            retry=retry_if_exception_type(RetryableSinkError),
            before_sleep=_before_sleep,
            sleep=self._sleep,
            reraise=True,
        )

        try:
            async for attempt_ctx in retrying:
                with attempt_ctx:
                    sends += 1
                    try:
                        await self._sink.send(pending)
                    except RetryableSinkError as exc:
                        if exc.failed_records:
                            pending = list(exc.failed_records)
                        raise
        except RetryableSinkError as exc:
            logger.error(
                "delivery.retries_exhausted",
                sink_id=self._sink.sink_id,
                request_id=request_id,
                batch_number=batch_number,
                sends=sends,
                error=str(exc),
            )
            msg = (
                f"Batch {batch_number} of request {request_id} not delivered "
                f"after {sends} attempts"
            )
            raise FatalSinkError(msg) from exc
        except FatalSinkError as exc:
            logger.error(
                "delivery.fatal",
                sink_id=self._sink.sink_id,
                request_id=request_id,
                batch_number=batch_number,
                error=str(exc),
            )
            raise

        if self._sequence is not None:
            self._sequence.reset()
        logger.info(
            "delivery.sent",
            sink_id=self._sink.sink_id,
            request_id=request_id,
            batch_number=batch_number,
            records=len(records),
            sends=sends,
        )
