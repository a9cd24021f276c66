"""Dead Letter Queue handler for undecodable records."""

from __future__ import annotations

import time
import traceback

import structlog
from confluent_kafka import Producer

from clickstream_ingest.config.models import DLQConfig
from clickstream_ingest.streaming.events import RawEvent

logger = structlog.get_logger()


def dlq_topic_name(source_topic: str, suffix: str = "dlq") -> str:
    return f"{source_topic}.{suffix}"


class DLQHandler:
    """Routes failed raw events to a dead-letter topic with diagnostic headers."""

    def __init__(self, producer: Producer, config: DLQConfig | None = None) -> None:
        self._producer = producer
        self._config = config or DLQConfig(enabled=True)
        self._flush_interval = self._config.flush_interval_seconds

    def send(
        self,
        event: RawEvent,
        error: Exception,
        *,
        request_id: str | None = None,
    ) -> None:
        """Send a failed event to the DLQ topic with diagnostic headers."""
        if not self._config.enabled:
            return

        dlq = dlq_topic_name(event.topic, self._config.topic_suffix)

        headers: dict[str, str] = {}
        if self._config.include_headers:
            headers = {
                "dlq.source.topic": event.topic,
                "dlq.source.partition": str(event.partition),
                "dlq.source.offset": str(event.offset),
                "dlq.error.message": str(error),
                "dlq.error.type": type(error).__name__,
                "dlq.error.stacktrace": "".join(traceback.format_exception(error)),
                "dlq.timestamp": str(int(time.time() * 1000)),
            }
            if request_id is not None:
                headers["dlq.request_id"] = request_id

        kafka_headers: list[tuple[str, str | bytes | None]] = [
            (k, v.encode()) for k, v in headers.items()
        ]

        try:
            self._producer.produce(
                topic=dlq,
                key=event.key,
                value=event.value,
                headers=kafka_headers,
            )
            if self._flush_interval <= 0:
                self._producer.flush(timeout=10)
            else:
                self._producer.poll(0)
        except Exception as dlq_exc:
            logger.error(
                "dlq.write_failed",
                topic=dlq,
                source_topic=event.topic,
                partition=event.partition,
                offset=event.offset,
                original_error=str(error),
                dlq_error=str(dlq_exc),
            )
            return
        logger.warning(
            "dlq.message_sent",
            topic=dlq,
            source_topic=event.topic,
            partition=event.partition,
            offset=event.offset,
            error=str(error),
        )

    def flush(self, timeout: float = 30.0) -> None:
        """Flush all pending DLQ messages. Called during pipeline shutdown."""
        self._producer.flush(timeout=timeout)
