"""Pydantic configuration models for the ingestion pipeline."""

from __future__ import annotations

import re
from enum import StrEnum
from typing import Self

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator


class SinkType(StrEnum):
    """Supported delivery sinks."""

    FIREHOSE = "firehose"
    WEBHOOK = "webhook"


class StoreType(StrEnum):
    """Supported watermark stores."""

    FILE = "file"
    DYNAMODB = "dynamodb"


class RecordTypeConfig(BaseModel):
    """Typed decode target for one topic.

    ``model`` is a dotted import path to a pydantic model, e.g.
    ``"clickstream_ingest.streaming.records.ClickEvent"``.  ``reader_schema``
    optionally points at an ``.avsc`` file used as the Avro reader schema;
    without it the writer schema from the registry is used and only the
    pydantic validation enforces the shape.
    """

    model: str
    reader_schema: str | None = None

    @field_validator("model")
    @classmethod
    def validate_dotted_path(cls, v: str) -> str:
        pattern = re.compile(r"^[a-zA-Z_][\w.]*\.[a-zA-Z_]\w*$")
        if not pattern.match(v):
            msg = f"record type model '{v}' must be a dotted import path"
            raise ValueError(msg)
        return v


class RegistryConfig(BaseModel):
    """Schema Registry connection and typed record registrations."""

    url: str = "http://localhost:8081"
    basic_auth_user: str | None = None
    basic_auth_password: SecretStr | None = None
    record_types: dict[str, RecordTypeConfig] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_basic_auth_pair(self) -> Self:
        """Basic auth needs both halves or neither."""
        if (self.basic_auth_user is None) != (self.basic_auth_password is None):
            msg = "basic_auth_user and basic_auth_password must be set together"
            raise ValueError(msg)
        return self


class BackoffConfig(BaseModel):
    """Retry delay strategy for sink delivery."""

    exponential: bool = True
    base: float = Field(default=23.0, gt=1.0)
    scale_factor: float = Field(default=1000.0, gt=0)
    fixed_delay: float = Field(default=0.001, ge=0.0)


class DeliveryConfig(BaseModel):
    """Batch sizing, retry ceiling and per-round deadline."""

    max_attempts: int = Field(default=5, ge=1)
    max_elapsed_seconds: float | None = Field(default=None, gt=0)
    # Firehose PutRecordBatch limits
    max_records: int = Field(default=500, ge=1)
    max_bytes: int = Field(default=4 * 1024 * 1024, ge=1)
    round_timeout_seconds: float | None = Field(default=300.0, gt=0)


class FirehoseSinkConfig(BaseModel):
    """Amazon Kinesis Data Firehose delivery stream."""

    delivery_stream_name: str
    region: str = "us-east-1"
    endpoint_url: str | None = None


class WebhookSinkConfig(BaseModel):
    """HTTP endpoint receiving newline-delimited batches."""

    url: str
    method: str = "POST"
    headers: dict[str, str] = Field(default_factory=dict)
    timeout_seconds: float = 30.0
    auth_token: SecretStr | None = None


class SinkConfig(BaseModel):
    """Configuration for the delivery sink."""

    sink_id: str = "default"
    sink_type: SinkType = SinkType.FIREHOSE
    firehose: FirehoseSinkConfig | None = None
    webhook: WebhookSinkConfig | None = None

    @model_validator(mode="after")
    def check_matching_sub_config(self) -> Self:
        """Ensure the sub-config matching sink_type is provided."""
        if self.sink_type == SinkType.FIREHOSE and self.firehose is None:
            msg = "firehose config is required when sink_type is 'firehose'"
            raise ValueError(msg)
        if self.sink_type == SinkType.WEBHOOK and self.webhook is None:
            msg = "webhook config is required when sink_type is 'webhook'"
            raise ValueError(msg)
        return self


class CheckpointConfig(BaseModel):
    """Where the watermark lives."""

    store_type: StoreType = StoreType.FILE
    path: str = "/tmp/clickstream-bookmark"
    table_name: str = "clickstream-watermarks"
    watermark_key: str = "clickstream"
    region: str = "us-east-1"


class DLQConfig(BaseModel):
    """Dead-letter topic for records that cannot be decoded at all."""

    enabled: bool = False
    bootstrap_servers: str = "localhost:9092"
    topic_suffix: str = Field(default="dlq", min_length=1)
    include_headers: bool = True
    flush_interval_seconds: float = Field(default=0.0, ge=0.0)


class LoggingConfig(BaseModel):
    """structlog rendering options."""

    level: str = "INFO"
    json_output: bool = True
    log_environment: bool = True


class PlatformConfig(BaseModel, extra="forbid"):
    """Root configuration for the ingestion pipeline."""

    registry: RegistryConfig = RegistryConfig()
    backoff: BackoffConfig = BackoffConfig()
    delivery: DeliveryConfig = DeliveryConfig()
    sink: SinkConfig
    checkpoint: CheckpointConfig = CheckpointConfig()
    dlq: DLQConfig = DLQConfig()
    logging: LoggingConfig = LoggingConfig()
