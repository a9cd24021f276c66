"""Unit tests for MSK trigger event parsing."""

from __future__ import annotations

import base64
import json
from pathlib import Path

import pytest

from clickstream_ingest.streaming.events import RawEvent, dispatch_size, parse_msk_event

EXAMPLE_EVENT = Path(__file__).resolve().parents[2] / "examples" / "msk-event.json"


def _entry(offset: int, value: bytes = b"v", partition: int = 0) -> dict:
    return {
        "topic": "clickstream",
        "partition": partition,
        "offset": offset,
        "timestamp": 1700000000000,
        "key": None,
        "value": base64.b64encode(value).decode(),
    }


class TestParseMskEvent:
    def test_groups_by_partition_key(self):
        event = {
            "records": {
                "clickstream-0": [_entry(1), _entry(2)],
                "clickstream-1": [_entry(9, partition=1)],
            }
        }

        dispatch = parse_msk_event(event)

        assert list(dispatch) == ["clickstream-0", "clickstream-1"]
        assert [e.offset for e in dispatch["clickstream-0"]] == [1, 2]
        assert dispatch["clickstream-1"][0].partition_key == "clickstream-1"
        assert dispatch_size(dispatch) == 3

    def test_decodes_base64_payload_and_key(self):
        entry = _entry(1, b"\x00\x01payload")
        entry["key"] = base64.b64encode(b"user-1").decode()

        raw = parse_msk_event({"records": {"clickstream-0": [entry]}})["clickstream-0"][0]

        assert raw.value == b"\x00\x01payload"
        assert raw.key == b"user-1"
        assert raw.timestamp == 1700000000000

    def test_missing_value_is_empty_payload(self):
        entry = _entry(1)
        del entry["value"]
        raw = parse_msk_event({"records": {"p": [entry]}})["p"][0]
        assert raw.value == b""

    def test_invalid_base64_rejected(self):
        entry = _entry(1)
        entry["value"] = "not base64!!"
        with pytest.raises(ValueError, match="Invalid base64"):
            parse_msk_event({"records": {"p": [entry]}})

    def test_missing_records_rejected(self):
        with pytest.raises(ValueError, match="records"):
            parse_msk_event({"eventSource": "aws:kafka"})

    def test_example_event(self):
        dispatch = parse_msk_event(json.loads(EXAMPLE_EVENT.read_text()))
        assert dispatch_size(dispatch) == 2
        assert dispatch["clickstream-0"][0].key == b"user-1"


def test_raw_event_is_immutable():
    raw = RawEvent(topic="t", partition=0, offset=1, value=b"")
    with pytest.raises(AttributeError):
        raw.offset = 2  # type: ignore[misc]
