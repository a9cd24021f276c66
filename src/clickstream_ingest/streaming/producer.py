"""Kafka producer used by the dead-letter handler."""

from __future__ import annotations

from confluent_kafka import Producer

from clickstream_ingest.config.models import DLQConfig


def create_producer(config: DLQConfig) -> Producer:
    """Create an idempotent Kafka producer."""
    return Producer(
        {
            "bootstrap.servers": config.bootstrap_servers,
            "enable.idempotence": True,
            "acks": "all",
        }
    )
