"""Amazon Kinesis Data Firehose sink connector."""

from __future__ import annotations

import asyncio
from typing import Any

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from clickstream_ingest.config.models import FirehoseSinkConfig, SinkConfig
from clickstream_ingest.errors import FatalSinkError, RetryableSinkError

logger = structlog.get_logger()

_RETRYABLE_CODES = frozenset(
    {
        "ServiceUnavailableException",
        "ThrottlingException",
        "LimitExceededException",
        "InternalFailure",
        "InternalServerError",
        "RequestTimeout",
    }
)


class FirehoseSink:
    """Sends batches with ``PutRecordBatch``, one newline-terminated record each."""

    def __init__(self, config: SinkConfig, client: Any = None) -> None:
        self._config = config
        if config.firehose is None:
            msg = "FirehoseSink requires a firehose sub-config"
            raise ValueError(msg)
        self._firehose: FirehoseSinkConfig = config.firehose
        self._client = client

    @property
    def sink_id(self) -> str:
        return self._config.sink_id

    def _get_client(self):  # noqa: ANN202
        if self._client is None:
            import boto3

            self._client = boto3.client(
                "firehose",
                region_name=self._firehose.region,
                endpoint_url=self._firehose.endpoint_url,
            )
        return self._client

    async def start(self) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._get_client)
        logger.info(
            "firehose_sink.started",
            sink_id=self.sink_id,
            delivery_stream=self._firehose.delivery_stream_name,
        )

    async def send(self, records: list[str]) -> None:
        if not records:
            return
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._put_batch, records)

    def _put_batch(self, records: list[str]) -> None:
        client = self._get_client()
        entries = [{"Data": f"{record}\n".encode()} for record in records]
        try:
            resp = client.put_record_batch(
                DeliveryStreamName=self._firehose.delivery_stream_name,
                Records=entries,
            )
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "")
            if code in _RETRYABLE_CODES:
                raise RetryableSinkError(f"Firehose {code}: {exc}") from exc
            raise FatalSinkError(f"Firehose {code}: {exc}") from exc
        except BotoCoreError as exc:
            raise RetryableSinkError(f"Firehose transport error: {exc}") from exc

        failed_count = resp.get("FailedPutCount", 0)
        if failed_count:
            results = resp.get("RequestResponses", [])
            failed = [
                record
                for record, result in zip(records, results, strict=False)
                if result.get("ErrorCode")
            ]
            codes = sorted({r["ErrorCode"] for r in results if r.get("ErrorCode")})
            msg = f"Firehose rejected {failed_count}/{len(records)} records: {codes}"
            raise RetryableSinkError(msg, failed_records=failed or None)

    async def stop(self) -> None:
        self._client = None
        logger.info("firehose_sink.stopped", sink_id=self.sink_id)

    async def health(self) -> dict[str, Any]:
        return {
            "sink_id": self.sink_id,
            "type": "firehose",
            "status": "running" if self._client is not None else "stopped",
            "delivery_stream": self._firehose.delivery_stream_name,
        }
