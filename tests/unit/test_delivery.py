"""Unit tests for resilient sink delivery."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from clickstream_ingest.config.models import DeliveryConfig
from clickstream_ingest.delivery.backoff import BackoffPolicy
from clickstream_ingest.delivery.batch import BatchSequence
from clickstream_ingest.delivery.delivery import SinkDelivery
from clickstream_ingest.errors import FatalSinkError, RetryableSinkError


def _sink(side_effect=None) -> AsyncMock:
    sink = AsyncMock()
    sink.sink_id = "test-sink"
    sink.send.side_effect = side_effect
    return sink


class _RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.mark.asyncio
class TestSinkDelivery:
    async def test_success_on_first_attempt(self):
        sink = _sink()
        sleep = _RecordingSleep()
        delivery = SinkDelivery(sink, BackoffPolicy(), sleep=sleep)

        await delivery.deliver_batch(["a", "b"], 0, "req-1", 1)

        sink.send.assert_awaited_once_with(["a", "b"])
        assert sleep.delays == []

    async def test_two_retryable_failures_then_success(self):
        sink = _sink(
            [RetryableSinkError("busy"), RetryableSinkError("busy"), None]
        )
        sleep = _RecordingSleep()
        policy = BackoffPolicy(exponential=True)
        delivery = SinkDelivery(sink, policy, max_attempts=5, sleep=sleep)

        await delivery.deliver_batch(["a"], 0, "req-1", 1)

        assert sink.send.await_count == 3
        assert sleep.delays == [policy.delay(0, True), policy.delay(1, True)]

    async def test_start_attempt_offsets_backoff_curve(self):
        sink = _sink([RetryableSinkError("busy"), None])
        sleep = _RecordingSleep()
        policy = BackoffPolicy()
        delivery = SinkDelivery(sink, policy, sleep=sleep)

        await delivery.deliver_batch(["a"], 2, "req-1", 1)

        assert sleep.delays == [policy.delay(2)]

    async def test_fixed_delay_when_exponential_disabled(self):
        sink = _sink([RetryableSinkError("x"), RetryableSinkError("x"), None])
        sleep = _RecordingSleep()
        delivery = SinkDelivery(
            sink, BackoffPolicy(exponential=False, fixed_delay=0.25), sleep=sleep
        )

        await delivery.deliver_batch(["a"], 0, "req-1", 1)

        assert sleep.delays == [0.25, 0.25]

    async def test_retry_ceiling_surfaces_fatal_error(self):
        sink = _sink(RetryableSinkError("down"))
        sleep = _RecordingSleep()
        delivery = SinkDelivery(sink, BackoffPolicy(), max_attempts=3, sleep=sleep)

        with pytest.raises(FatalSinkError, match="after 3 attempts") as exc_info:
            await delivery.deliver_batch(["a"], 0, "req-1", 7)

        assert isinstance(exc_info.value.__cause__, RetryableSinkError)
        assert sink.send.await_count == 3
        assert len(sleep.delays) == 2

    async def test_fatal_error_not_retried(self):
        sink = _sink(FatalSinkError("malformed"))
        sleep = _RecordingSleep()
        delivery = SinkDelivery(sink, BackoffPolicy(), sleep=sleep)

        with pytest.raises(FatalSinkError, match="malformed"):
            await delivery.deliver_batch(["a"], 0, "req-1", 1)

        assert sink.send.await_count == 1
        assert sleep.delays == []

    async def test_unexpected_error_not_retried(self):
        sink = _sink(RuntimeError("not started"))
        delivery = SinkDelivery(sink, BackoffPolicy(), sleep=_RecordingSleep())

        with pytest.raises(RuntimeError):
            await delivery.deliver_batch(["a"], 0, "req-1", 1)
        assert sink.send.await_count == 1

    async def test_partial_failure_resends_only_failed_records(self):
        sent: list[list[str]] = []

        async def _send(records: list[str]) -> None:
            sent.append(list(records))
            if len(sent) == 1:
                raise RetryableSinkError("partial", failed_records=["b"])

        sink = _sink(_send)
        delivery = SinkDelivery(sink, BackoffPolicy(), sleep=_RecordingSleep())

        await delivery.deliver_batch(["a", "b", "c"], 0, "req-1", 1)

        assert sent == [["a", "b", "c"], ["b"]]

    async def test_success_resets_batch_sequence(self):
        sequence = BatchSequence()
        sequence.next()
        sequence.next()
        delivery = SinkDelivery(
            _sink(), BackoffPolicy(), sequence=sequence, sleep=_RecordingSleep()
        )

        await delivery.deliver_batch(["a"], 0, "req-1", 2)

        assert sequence.current == 0

    async def test_failure_keeps_batch_sequence(self):
        sequence = BatchSequence()
        sequence.next()
        delivery = SinkDelivery(
            _sink(FatalSinkError("x")),
            BackoffPolicy(),
            sequence=sequence,
            sleep=_RecordingSleep(),
        )

        with pytest.raises(FatalSinkError):
            await delivery.deliver_batch(["a"], 0, "req-1", 1)
        assert sequence.current == 1

    async def test_invalid_max_attempts(self):
        with pytest.raises(ValueError):
            SinkDelivery(_sink(), BackoffPolicy(), max_attempts=0)

    async def test_from_config(self):
        delivery = SinkDelivery.from_config(
            _sink(), BackoffPolicy(), DeliveryConfig(max_attempts=2)
        )
        assert delivery._max_attempts == 2
        assert delivery.sink.sink_id == "test-sink"
