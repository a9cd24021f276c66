"""Webhook (HTTP POST) sink connector."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from clickstream_ingest.config.models import SinkConfig
from clickstream_ingest.errors import FatalSinkError, RetryableSinkError

logger = structlog.get_logger()


class WebhookSink:
    """Posts each batch as one newline-delimited body."""

    def __init__(self, config: SinkConfig) -> None:
        self._config = config
        self._webhook = config.webhook
        if self._webhook is None:
            msg = "WebhookSink requires a webhook sub-config"
            raise ValueError(msg)
        self._client: httpx.AsyncClient | None = None

    @property
    def sink_id(self) -> str:
        return self._config.sink_id

    async def start(self) -> None:
        headers: dict[str, str] = {
            "Content-Type": "application/x-ndjson",
            **self._webhook.headers,
        }
        if self._webhook.auth_token is not None:
            headers["Authorization"] = (
                f"Bearer {self._webhook.auth_token.get_secret_value()}"
            )
        self._client = httpx.AsyncClient(
            headers=headers,
            timeout=httpx.Timeout(self._webhook.timeout_seconds),
        )
        logger.info("webhook_sink.started", sink_id=self.sink_id, url=self._webhook.url)

    async def send(self, records: list[str]) -> None:
        if self._client is None:
            msg = "WebhookSink not started — call start() first"
            raise RuntimeError(msg)
        if not records:
            return

        body = "".join(f"{record}\n" for record in records)
        try:
            response = await self._client.request(
                method=self._webhook.method,
                url=self._webhook.url,
                content=body.encode(),
            )
        except httpx.TransportError as exc:
            raise RetryableSinkError(f"Webhook transport error: {exc}") from exc

        status = response.status_code
        if status == 429 or status >= 500:
            msg = f"Webhook returned {status}"
            raise RetryableSinkError(msg)
        if status >= 400:
            msg = f"Webhook rejected batch with {status}: {response.text[:200]}"
            raise FatalSinkError(msg)

    async def stop(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        logger.info("webhook_sink.stopped", sink_id=self.sink_id)

    async def health(self) -> dict[str, Any]:
        return {
            "sink_id": self.sink_id,
            "type": "webhook",
            "status": "running" if self._client is not None else "stopped",
            "url": self._webhook.url,
        }
