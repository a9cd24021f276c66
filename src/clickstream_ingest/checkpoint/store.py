"""Single-value durable watermark stores.

Both stores expose ``read() -> int | None`` and ``write(position)`` with
overwrite semantics.  ``read`` returning ``None`` means no watermark has
been written yet, which is not an error.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import structlog

from clickstream_ingest.config.models import CheckpointConfig, StoreType
from clickstream_ingest.errors import CheckpointWriteError

logger = structlog.get_logger()


@runtime_checkable
class WatermarkStore(Protocol):
    def read(self) -> int | None: ...

    def write(self, position: int) -> None: ...


class FileWatermarkStore:
    """Watermark kept as a single line in a local file.

    Writes go to a temp file in the same directory followed by
    ``os.replace()``, so readers see either the old or the new value.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> int | None:
        try:
            text = self._path.read_text().strip()
        except FileNotFoundError:
            return None
        if not text:
            return None
        try:
            return int(text)
        except ValueError as exc:
            msg = f"Corrupt watermark in {self._path}: {text!r}"
            raise ValueError(msg) from exc

    def write(self, position: int) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(
                dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w") as f:
                    f.write(f"{position}\n")
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp, self._path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as exc:
            msg = f"Failed to write watermark {position} to {self._path}: {exc}"
            raise CheckpointWriteError(msg) from exc


class DynamoDBWatermarkStore:
    """Watermark kept as one item in a DynamoDB table.

    Table schema:
        - Partition key: ``watermark_key`` (S)
        - Attribute: ``position`` (N)
    """

    def __init__(self, config: CheckpointConfig, client: Any = None) -> None:
        self._table_name = config.table_name
        self._key = config.watermark_key
        self._region = config.region
        self._client = client

    def _get_client(self):  # noqa: ANN202
        if self._client is None:
            import boto3

            self._client = boto3.client("dynamodb", region_name=self._region)
        return self._client

    def read(self) -> int | None:
        client = self._get_client()
        resp = client.get_item(
            TableName=self._table_name,
            Key={"watermark_key": {"S": self._key}},
            ConsistentRead=True,
        )
        item = resp.get("Item")
        if item and "position" in item:
            return int(item["position"]["N"])
        return None

    def write(self, position: int) -> None:
        client = self._get_client()
        try:
            client.put_item(
                TableName=self._table_name,
                Item={
                    "watermark_key": {"S": self._key},
                    "position": {"N": str(position)},
                },
            )
        except Exception as exc:
            logger.exception(
                "checkpoint.put_failed",
                table=self._table_name,
                key=self._key,
                position=position,
            )
            msg = f"Failed to write watermark {position} to {self._table_name}"
            raise CheckpointWriteError(msg) from exc

    def ensure_table(self) -> None:
        """Create the watermark table if it doesn't exist."""
        client = self._get_client()
        try:
            client.describe_table(TableName=self._table_name)
            logger.info("checkpoint.table_exists", table=self._table_name)
        except client.exceptions.ResourceNotFoundException:
            client.create_table(
                TableName=self._table_name,
                KeySchema=[{"AttributeName": "watermark_key", "KeyType": "HASH"}],
                AttributeDefinitions=[
                    {"AttributeName": "watermark_key", "AttributeType": "S"}
                ],
                BillingMode="PAY_PER_REQUEST",
            )
            logger.info("checkpoint.table_created", table=self._table_name)
            waiter = client.get_waiter("table_exists")
            waiter.wait(TableName=self._table_name)


def create_store(config: CheckpointConfig) -> WatermarkStore:
    """Create a watermark store from configuration."""
    if config.store_type == StoreType.FILE:
        return FileWatermarkStore(config.path)
    if config.store_type == StoreType.DYNAMODB:
        return DynamoDBWatermarkStore(config)
    msg = f"Unknown watermark store type: {config.store_type}"
    raise ValueError(msg)
