"""AWS Lambda entry point for MSK trigger events.

The pipeline and its event loop are created once per execution environment
and reused across invocations, so sink clients and the loaded watermark
survive between warm starts.  The MSK event source mapping owns the consumer
offsets, so the resume position from ``Pipeline.start()`` is only logged; the
persisted watermark records how far delivery has been confirmed.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Any

import structlog

from clickstream_ingest.config.loader import load_platform_config
from clickstream_ingest.observability.logging import configure_logging, log_invocation
from clickstream_ingest.pipeline.runner import Pipeline
from clickstream_ingest.streaming.events import dispatch_size, parse_msk_event

logger = structlog.get_logger()

_loop: asyncio.AbstractEventLoop | None = None
_pipeline: Pipeline | None = None


def _get_loop() -> asyncio.AbstractEventLoop:
    global _loop
    if _loop is None or _loop.is_closed():
        _loop = asyncio.new_event_loop()
    return _loop


def _get_pipeline() -> Pipeline:
    global _pipeline
    if _pipeline is None:
        config = load_platform_config()
        configure_logging(config.logging)
        pipeline = Pipeline(config)
        _get_loop().run_until_complete(pipeline.start())
        _pipeline = pipeline
    return _pipeline


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    pipeline = _get_pipeline()
    if pipeline.config.logging.log_environment:
        log_invocation(event, context)

    request_id = getattr(context, "aws_request_id", None) or str(uuid.uuid4())
    dispatch = parse_msk_event(event)
    logger.info(
        "handler.processing",
        request_id=request_id,
        records=dispatch_size(dispatch),
    )
    results = _get_loop().run_until_complete(pipeline.dispatch(dispatch, request_id))
    return {
        "request_id": request_id,
        "partitions": len(results),
        "records": sum(r.records for r in results),
        "dead_lettered": sum(r.dead_lettered for r in results),
        "watermark": pipeline.barrier.watermark,
    }
