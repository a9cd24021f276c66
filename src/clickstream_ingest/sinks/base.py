"""Abstract batch sink protocol.

New sink types implement this protocol to plug into delivery without
modifying core code.  ``send`` must raise ``RetryableSinkError`` for
transient failures and ``FatalSinkError`` for permanent ones.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class BatchSink(Protocol):
    """Protocol that every delivery sink must satisfy."""

    @property
    def sink_id(self) -> str:
        """Unique identifier for this sink instance."""
        ...

    async def start(self) -> None:
        """Initialize resources (clients, connections)."""
        ...

    async def send(self, records: list[str]) -> None:
        """Transmit all *records* in one call."""
        ...

    async def stop(self) -> None:
        """Release resources."""
        ...

    async def health(self) -> dict[str, Any]:
        """Return a health-check status dict."""
        ...
