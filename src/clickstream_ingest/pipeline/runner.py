"""Pipeline orchestrator — dispatch → per-partition rounds → checkpoint."""

from __future__ import annotations

import asyncio
import uuid
from typing import Any

import structlog

from clickstream_ingest.checkpoint.barrier import CheckpointBarrier
from clickstream_ingest.checkpoint.store import WatermarkStore, create_store
from clickstream_ingest.config.models import PlatformConfig
from clickstream_ingest.delivery.backoff import BackoffPolicy
from clickstream_ingest.delivery.batch import BatchSequence
from clickstream_ingest.delivery.delivery import SinkDelivery
from clickstream_ingest.errors import CheckpointWriteError, DispatchError
from clickstream_ingest.pipeline.driver import IngestionDriver, RoundResult
from clickstream_ingest.sinks.base import BatchSink
from clickstream_ingest.sinks.factory import create_sink
from clickstream_ingest.streaming.decoder import Decoder
from clickstream_ingest.streaming.dlq import DLQHandler
from clickstream_ingest.streaming.events import Dispatch, dispatch_size
from clickstream_ingest.streaming.producer import create_producer

logger = structlog.get_logger()


class Pipeline:
    """Runs each dispatch as one concurrent round per partition.

    The barrier's expected reporter count is set to the number of partitions
    in the dispatch, so exactly one round persists the watermark once every
    partition of the dispatch has finished.  Dispatches are serialized.

    ``start()`` returns the resume position (watermark + 1, or 0).  Under the
    MSK trigger the event source mapping owns consumer offsets, so the
    position is only logged there; callers that read the stream themselves
    start from it.
    """

    def __init__(
        self,
        config: PlatformConfig,
        *,
        decoder: Decoder | None = None,
        sink: BatchSink | None = None,
        store: WatermarkStore | None = None,
        dlq: DLQHandler | None = None,
    ) -> None:
        self._config = config
        self._decoder = decoder or Decoder.from_config(config.registry)
        self._sink = sink or create_sink(config.sink)
        self._store = store or create_store(config.checkpoint)
        if dlq is None and config.dlq.enabled:
            dlq = DLQHandler(create_producer(config.dlq), config.dlq)
        self._dlq = dlq

        self._sequence = BatchSequence()
        self._barrier = CheckpointBarrier(self._store)
        self._delivery = SinkDelivery.from_config(
            self._sink,
            BackoffPolicy.from_config(config.backoff),
            config.delivery,
            sequence=self._sequence,
        )
        self._driver = IngestionDriver(
            self._decoder,
            self._delivery,
            self._barrier,
            sequence=self._sequence,
            max_records=config.delivery.max_records,
            max_bytes=config.delivery.max_bytes,
            dlq=self._dlq,
        )
        self._dispatch_lock = asyncio.Lock()
        self._started = False

    @property
    def config(self) -> PlatformConfig:
        return self._config

    @property
    def barrier(self) -> CheckpointBarrier:
        return self._barrier

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> int:
        """Start the sink and load the watermark; returns the resume position."""
        loop = asyncio.get_running_loop()
        await self._sink.start()
        resume = await loop.run_in_executor(None, self._barrier.load)
        self._started = True
        logger.info(
            "pipeline.started",
            sink_id=self._sink.sink_id,
            typed_topics=self._decoder.typed_topics,
            resume_position=resume,
        )
        return resume

    async def stop(self) -> None:
        try:
            await self._sink.stop()
        finally:
            if self._dlq is not None:
                self._dlq.flush()
            self._started = False
            logger.info("pipeline.stopped")

    async def dispatch(
        self,
        dispatch: Dispatch,
        request_id: str | None = None,
    ) -> list[RoundResult]:
        """Process one dispatch; raises ``DispatchError`` if any round failed."""
        if not self._started:
            msg = "Pipeline not started — call start() first"
            raise RuntimeError(msg)
        request_id = request_id or str(uuid.uuid4())
        partitions = list(dispatch)
        if not partitions:
            logger.info("dispatch.empty", request_id=request_id)
            return []

        async with self._dispatch_lock:
            self._barrier.resize(len(partitions))
            logger.info(
                "dispatch.started",
                request_id=request_id,
                partitions=len(partitions),
                records=dispatch_size(dispatch),
            )
            timeout = self._config.delivery.round_timeout_seconds
            outcomes = await asyncio.gather(
                *[
                    self._driver.run_round(
                        dispatch[key], request_id, key, timeout=timeout
                    )
                    for key in partitions
                ],
                return_exceptions=True,
            )

            failures: dict[str, BaseException] = {}
            results: list[RoundResult] = []
            for key, outcome in zip(partitions, outcomes, strict=True):
                if isinstance(outcome, BaseException):
                    failures[key] = outcome
                else:
                    results.append(outcome)

            if failures:
                self._barrier.abandon_cycle()
                for key, exc in failures.items():
                    logger.error(
                        "dispatch.round_failed",
                        request_id=request_id,
                        partition=key,
                        error_type=type(exc).__name__,
                        error=str(exc),
                    )
                for exc in failures.values():
                    if isinstance(exc, CheckpointWriteError):
                        raise exc
                raise DispatchError(request_id, failures)

        logger.info(
            "dispatch.completed",
            request_id=request_id,
            partitions=len(results),
            watermark=self._barrier.watermark,
        )
        return results

    async def health(self) -> dict[str, Any]:
        try:
            sink_health = await self._sink.health()
        except Exception as exc:
            sink_health = {"sink_id": self._sink.sink_id, "status": "error", "error": str(exc)}
        return {
            "started": self._started,
            "sink": sink_health,
            "watermark": self._barrier.watermark,
            "resume_position": self._barrier.resume_position,
        }
