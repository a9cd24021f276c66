"""Retry delay policy for sink delivery.

The exponential curve is steep (base 23): attempt 0 waits 2 ms,
attempt 2 about a second, attempt 4 close to ten minutes.  There is no cap
and no jitter, so callers bound the total wait with an attempt ceiling.
"""

from __future__ import annotations

from dataclasses import dataclass

from tenacity import RetryCallState

from clickstream_ingest.config.models import BackoffConfig


@dataclass(frozen=True, slots=True)
class BackoffPolicy:
    exponential: bool = True
    base: float = 23.0
    scale_factor: float = 1000.0
    fixed_delay: float = 0.001

    @classmethod
    def from_config(cls, config: BackoffConfig) -> BackoffPolicy:
        return cls(
            exponential=config.exponential,
            base=config.base,
            scale_factor=config.scale_factor,
            fixed_delay=config.fixed_delay,
        )

    def delay(self, attempt: int, use_exponential: bool | None = None) -> float:
        """Seconds to wait before retrying after failed attempt *attempt*."""
        if attempt < 0:
            msg = f"attempt must be non-negative, got {attempt}"
            raise ValueError(msg)
        exponential = self.exponential if use_exponential is None else use_exponential
        if not exponential:
            return self.fixed_delay
        return 2 * self.base**attempt / self.scale_factor

    def __call__(self, retry_state: RetryCallState) -> float:
        """tenacity wait hook; ``attempt_number`` is 1-based."""
        return self.delay(retry_state.attempt_number - 1)
