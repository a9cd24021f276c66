"""Raw event envelope and MSK trigger event parsing.

A dispatch is a mapping from partition key (``"<topic>-<partition>"``) to the
ordered raw events of that partition, exactly as the MSK Lambda trigger
delivers them.
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

Dispatch = Mapping[str, Sequence["RawEvent"]]


@dataclass(frozen=True, slots=True)
class RawEvent:
    """Undecoded event as supplied by the transport."""

    topic: str
    partition: int
    offset: int  # stream position
    value: bytes
    key: bytes | None = None
    timestamp: int | None = None  # epoch millis

    @property
    def partition_key(self) -> str:
        return f"{self.topic}-{self.partition}"


def _b64(value: str | None) -> bytes | None:
    if value is None:
        return None
    try:
        return base64.b64decode(value, validate=True)
    except binascii.Error as exc:
        msg = f"Invalid base64 payload: {exc}"
        raise ValueError(msg) from exc


def parse_msk_event(event: Mapping[str, Any]) -> dict[str, list[RawEvent]]:
    """Convert an ``aws:kafka`` trigger event into a dispatch mapping."""
    records = event.get("records")
    if not isinstance(records, Mapping):
        msg = "MSK event has no 'records' mapping"
        raise ValueError(msg)

    dispatch: dict[str, list[RawEvent]] = {}
    for partition_key, entries in records.items():
        events: list[RawEvent] = []
        for entry in entries:
            value = _b64(entry.get("value"))
            events.append(
                RawEvent(
                    topic=entry["topic"],
                    partition=int(entry["partition"]),
                    offset=int(entry["offset"]),
                    value=value if value is not None else b"",
                    key=_b64(entry.get("key")),
                    timestamp=entry.get("timestamp"),
                )
            )
        dispatch[partition_key] = events
    return dispatch


def dispatch_size(dispatch: Dispatch) -> int:
    """Total number of raw events across all partitions."""
    return sum(len(events) for events in dispatch.values())
