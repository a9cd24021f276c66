"""One ingestion round: decode → accumulate → deliver → report position."""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Sequence
from dataclasses import dataclass

import structlog

from clickstream_ingest.checkpoint.barrier import CheckpointBarrier
from clickstream_ingest.delivery.batch import BatchAccumulator, BatchSequence
from clickstream_ingest.delivery.delivery import SinkDelivery
from clickstream_ingest.errors import DecodeFatalError, RoundTimeoutError
from clickstream_ingest.streaming.decoder import Decoder, TypedRecord
from clickstream_ingest.streaming.dlq import DLQHandler
from clickstream_ingest.streaming.events import RawEvent

logger = structlog.get_logger()


@dataclass(slots=True)
class RoundResult:
    partition_key: str
    request_id: str
    records: int = 0
    typed: int = 0
    generic: int = 0
    dead_lettered: int = 0
    batches: int = 0
    position: int = 0
    persisted: bool = False


class IngestionDriver:
    """Drives rounds for one worker.

    Per-record decode failures are isolated to the record (dead-lettered and
    counted).  A delivery failure aborts the round before the barrier report,
    so the round's position is never checkpointed.
    """

    def __init__(
        self,
        decoder: Decoder,
        delivery: SinkDelivery,
        barrier: CheckpointBarrier,
        *,
        sequence: BatchSequence,
        max_records: int = 500,
        max_bytes: int = 4 * 1024 * 1024,
        dlq: DLQHandler | None = None,
    ) -> None:
        self._decoder = decoder
        self._delivery = delivery
        self._barrier = barrier
        self._sequence = sequence
        self._max_records = max_records
        self._max_bytes = max_bytes
        self._dlq = dlq

    async def run_round(
        self,
        events: Sequence[RawEvent],
        request_id: str,
        partition_key: str = "",
        *,
        timeout: float | None = None,
    ) -> RoundResult:
        """Process *events* and report the round's position to the barrier.

        *timeout* bounds decode and delivery; the barrier report itself runs
        outside the deadline so a report is never cut off half-way.
        """
        loop = asyncio.get_running_loop()
        result = RoundResult(partition_key=partition_key, request_id=request_id)
        logger.info(
            "round.started",
            request_id=request_id,
            partition=partition_key,
            records=len(events),
        )

        try:
            async with asyncio.timeout(timeout):
                await self._process(events, request_id, result)
        except TimeoutError as exc:
            msg = f"Round {partition_key} of request {request_id} exceeded {timeout}s"
            raise RoundTimeoutError(msg) from exc

        result.persisted = await loop.run_in_executor(
            None, self._barrier.report, result.position
        )
        logger.info(
            "round.completed",
            request_id=request_id,
            partition=partition_key,
            records=result.records,
            typed=result.typed,
            generic=result.generic,
            dead_lettered=result.dead_lettered,
            batches=result.batches,
            position=result.position,
            persisted=result.persisted,
        )
        return result

    async def _process(
        self,
        events: Sequence[RawEvent],
        request_id: str,
        result: RoundResult,
    ) -> None:
        loop = asyncio.get_running_loop()
        accumulator = BatchAccumulator(self._max_records, self._max_bytes)

        for raw in events:
            result.records += 1
            result.position = max(result.position, raw.offset)
            try:
                record = await loop.run_in_executor(
                    None, self._decoder.decode, raw, raw.topic
                )
            except DecodeFatalError as exc:
                await self._dead_letter(raw, exc, request_id)
                result.dead_lettered += 1
                continue

            if isinstance(record, TypedRecord):
                result.typed += 1
            else:
                result.generic += 1

            text = str(record)
            if not accumulator.fits(text):
                await self._flush(accumulator, request_id)
                result.batches += 1
            accumulator.add(text, request_id)

        if len(accumulator):
            await self._flush(accumulator, request_id)
            result.batches += 1

    async def _flush(self, accumulator: BatchAccumulator, request_id: str) -> None:
        batch = accumulator.drain(self._sequence.next())
        await self._delivery.deliver_batch(
            batch.records, 0, request_id, batch.batch_number
        )

    async def _dead_letter(
        self, raw: RawEvent, exc: DecodeFatalError, request_id: str
    ) -> None:
        logger.error(
            "round.decode_failed",
            request_id=request_id,
            topic=raw.topic,
            partition=raw.partition,
            offset=raw.offset,
            error=str(exc),
        )
        if self._dlq is not None:
            # DLQ send may flush synchronously; never on the event loop
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(
                None,
                functools.partial(self._dlq.send, raw, exc, request_id=request_id),
            )
