"""Unit tests for logging setup and invocation diagnostics."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import patch

from clickstream_ingest.config.models import LoggingConfig
from clickstream_ingest.observability.logging import (
    configure_logging,
    log_invocation,
    redacted_environment,
)


class TestRedactedEnvironment:
    def test_masks_secret_like_keys(self):
        env = redacted_environment(
            {
                "AWS_REGION": "us-east-1",
                "AWS_SECRET_ACCESS_KEY": "abc",
                "AWS_SESSION_TOKEN": "def",
                "DB_PASSWORD": "ghi",
            }
        )
        assert env == {
            "AWS_REGION": "us-east-1",
            "AWS_SECRET_ACCESS_KEY": "***",
            "AWS_SESSION_TOKEN": "***",
            "DB_PASSWORD": "***",
        }

    def test_defaults_to_process_environment(self, monkeypatch):
        monkeypatch.setenv("CLICKSTREAM_TEST_VAR", "visible")
        assert redacted_environment()["CLICKSTREAM_TEST_VAR"] == "visible"


class TestLogInvocation:
    def test_logs_environment_context_and_event(self):
        context = SimpleNamespace(
            aws_request_id="req-1",
            function_name="clickstream",
            function_version="$LATEST",
            memory_limit_in_mb=512,
        )
        with patch("clickstream_ingest.observability.logging.logger") as mock_logger:
            log_invocation({"eventSource": "aws:kafka"}, context)

        events = [c.args[0] for c in mock_logger.info.call_args_list]
        assert events == [
            "invocation.environment",
            "invocation.context",
            "invocation.event",
        ]
        assert mock_logger.info.call_args_list[1].kwargs["request_id"] == "req-1"
        assert mock_logger.info.call_args_list[2].kwargs["event_source"] == "aws:kafka"

    def test_without_context(self):
        with patch("clickstream_ingest.observability.logging.logger") as mock_logger:
            log_invocation({}, None)

        events = [c.args[0] for c in mock_logger.info.call_args_list]
        assert "invocation.context" not in events


def test_configure_logging_console_and_json():
    configure_logging(LoggingConfig(json_output=False, level="debug"))
    configure_logging(LoggingConfig())
    configure_logging()
