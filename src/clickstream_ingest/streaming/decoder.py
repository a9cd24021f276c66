"""Avro decoding with a generic fallback.

Every raw event yields exactly one decoded record: a ``TypedRecord`` when the
payload matches the model registered for its topic, otherwise a
``GenericRecord`` decoded with the writer schema.  Only when the fallback
fails as well does the decoder raise ``DecodeFatalError``.
"""

from __future__ import annotations

import base64
import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

import structlog
from confluent_kafka.serialization import MessageField, SerializationContext
from pydantic import BaseModel

from clickstream_ingest.config.models import RegistryConfig
from clickstream_ingest.errors import DecodeError, DecodeFatalError
from clickstream_ingest.streaming.events import RawEvent
from clickstream_ingest.streaming.registry import (
    create_generic_deserializer,
    create_registry_client,
    create_typed_deserializer,
)

logger = structlog.get_logger()

# (payload, ctx) -> datum; AvroDeserializer instances satisfy this.
Deserializer = Callable[[bytes | None, SerializationContext], Any]


@dataclass(frozen=True, slots=True)
class TypedRecord:
    """Schema-conformant record."""

    model: BaseModel

    def __str__(self) -> str:
        return self.model.model_dump_json()


@dataclass(frozen=True, slots=True)
class GenericRecord:
    """Dynamically-shaped record decoded with the writer schema."""

    data: Any

    def __str__(self) -> str:
        return json.dumps(self.data, default=str, separators=(",", ":"))


DecodedRecord = TypedRecord | GenericRecord


def display_payload(payload: bytes) -> str:
    """Base64 re-encoding of a payload, safe for log output."""
    return base64.b64encode(payload).decode("ascii")


class Decoder:
    """Decodes raw events into typed records, falling back to generic ones."""

    def __init__(
        self,
        generic: Deserializer,
        typed: Mapping[str, Deserializer] | None = None,
    ) -> None:
        self._generic = generic
        self._typed = dict(typed or {})

    @classmethod
    def from_config(cls, config: RegistryConfig) -> Decoder:
        registry = create_registry_client(config)
        typed = {
            topic: create_typed_deserializer(registry, record_type)
            for topic, record_type in config.record_types.items()
        }
        return cls(create_generic_deserializer(registry), typed)

    @property
    def typed_topics(self) -> list[str]:
        return sorted(self._typed)

    def _decode_typed(self, raw: RawEvent, topic: str) -> TypedRecord:
        deser = self._typed.get(topic)
        if deser is None:
            msg = f"No typed record registered for topic '{topic}'"
            raise DecodeError(msg)
        ctx = SerializationContext(topic, MessageField.VALUE)
        result = deser(raw.value, ctx)
        if not isinstance(result, BaseModel):
            msg = f"Typed decode for '{topic}' returned {type(result).__name__}"
            raise DecodeError(msg)
        return TypedRecord(result)

    def _decode_generic(self, raw: RawEvent, topic: str) -> GenericRecord:
        ctx = SerializationContext(topic, MessageField.VALUE)
        try:
            data = self._generic(raw.value, ctx)
        except Exception as exc:
            raise DecodeFatalError(topic, str(exc)) from exc
        if data is None:
            raise DecodeFatalError(topic, "empty payload")
        return GenericRecord(data)

    def decode(self, raw: RawEvent, topic_hint: str | None = None) -> DecodedRecord:
        """Decode *raw*, trying the typed path for *topic_hint* first."""
        topic = topic_hint or raw.topic
        logger.info(
            "decoder.attempt",
            topic=topic,
            partition=raw.partition,
            offset=raw.offset,
            payload=display_payload(raw.value),
        )
        try:
            return self._decode_typed(raw, topic)
        except Exception as exc:
            logger.info(
                "decoder.fallback",
                topic=topic,
                offset=raw.offset,
                error=str(exc),
                payload=display_payload(raw.value),
            )
        record = self._decode_generic(raw, topic)
        logger.info("decoder.generic_record", topic=topic, record=str(record))
        return record
