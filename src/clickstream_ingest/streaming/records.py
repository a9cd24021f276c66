"""Typed record models for registered topics."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class ClickEvent(BaseModel):
    """A single clickstream interaction, as produced by the web tier."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    ip: str
    eventtimestamp: int
    devicetype: str
    event_type: str
    product_type: str
    userid: int
    globalseq: int
    prevglobalseq: int
