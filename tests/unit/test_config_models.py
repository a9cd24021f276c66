"""Unit tests for configuration models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from clickstream_ingest.config.models import (
    BackoffConfig,
    DeliveryConfig,
    FirehoseSinkConfig,
    PlatformConfig,
    RecordTypeConfig,
    RegistryConfig,
    SinkConfig,
    SinkType,
    WebhookSinkConfig,
)


def _firehose_sink() -> SinkConfig:
    return SinkConfig(firehose=FirehoseSinkConfig(delivery_stream_name="clicks"))


class TestRecordTypeConfig:
    def test_dotted_path_accepted(self):
        cfg = RecordTypeConfig(model="clickstream_ingest.streaming.records.ClickEvent")
        assert cfg.reader_schema is None

    @pytest.mark.parametrize("model", ["ClickEvent", "bad path.Click", ".Click"])
    def test_invalid_path_rejected(self, model):
        with pytest.raises(ValidationError, match="dotted import path"):
            RecordTypeConfig(model=model)


class TestRegistryConfig:
    def test_basic_auth_pair(self):
        cfg = RegistryConfig(basic_auth_user="u", basic_auth_password="p")
        assert cfg.basic_auth_password.get_secret_value() == "p"

    def test_basic_auth_half_rejected(self):
        with pytest.raises(ValidationError, match="set together"):
            RegistryConfig(basic_auth_user="u")


class TestBackoffConfig:
    def test_defaults(self):
        cfg = BackoffConfig()
        assert cfg.exponential is True
        assert cfg.base == 23
        assert cfg.scale_factor == 1000
        assert cfg.fixed_delay == 0.001

    def test_base_must_exceed_one(self):
        with pytest.raises(ValidationError):
            BackoffConfig(base=1)


class TestDeliveryConfig:
    def test_firehose_limits(self):
        cfg = DeliveryConfig()
        assert cfg.max_records == 500
        assert cfg.max_bytes == 4 * 1024 * 1024

    def test_attempts_at_least_one(self):
        with pytest.raises(ValidationError):
            DeliveryConfig(max_attempts=0)


class TestSinkConfig:
    def test_firehose_requires_sub_config(self):
        with pytest.raises(ValidationError, match="firehose config is required"):
            SinkConfig(sink_type=SinkType.FIREHOSE)

    def test_webhook_requires_sub_config(self):
        with pytest.raises(ValidationError, match="webhook config is required"):
            SinkConfig(sink_type=SinkType.WEBHOOK)

    def test_webhook_sink(self):
        cfg = SinkConfig(
            sink_type=SinkType.WEBHOOK,
            webhook=WebhookSinkConfig(url="http://example.com", auth_token="t"),
        )
        assert cfg.webhook.method == "POST"
        assert cfg.webhook.auth_token.get_secret_value() == "t"


class TestPlatformConfig:
    def test_sink_required(self):
        with pytest.raises(ValidationError):
            PlatformConfig()

    def test_defaults(self):
        cfg = PlatformConfig(sink=_firehose_sink())
        assert cfg.checkpoint.path == "/tmp/clickstream-bookmark"
        assert cfg.dlq.enabled is False
        assert cfg.logging.json_output is True

    def test_extra_keys_forbidden(self):
        with pytest.raises(ValidationError):
            PlatformConfig(sink=_firehose_sink(), kafka={})
