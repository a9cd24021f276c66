"""Sink factory — maps SinkType to concrete connector classes."""

from __future__ import annotations

from clickstream_ingest.config.models import SinkConfig, SinkType
from clickstream_ingest.sinks.base import BatchSink
from clickstream_ingest.sinks.firehose import FirehoseSink
from clickstream_ingest.sinks.webhook import WebhookSink

_SINK_REGISTRY: dict[SinkType, type] = {
    SinkType.FIREHOSE: FirehoseSink,
    SinkType.WEBHOOK: WebhookSink,
}


def create_sink(config: SinkConfig) -> BatchSink:
    """Create a sink connector from configuration."""
    cls = _SINK_REGISTRY.get(config.sink_type)
    if cls is None:
        msg = f"Unknown sink type: {config.sink_type}"
        raise ValueError(msg)
    return cls(config)  # type: ignore[no-any-return]
