"""
Retry Policy

Bounded exponential backoff with full jitter for meter reads.
"""

import asyncio
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from pzem_gateway.common.config import RetrySettings
from pzem_gateway.common.logging_setup import get_service_logger
from .error_classifier import is_transient
from .register_map import DEFAULT_BACKOFF_BASE_MS, DEFAULT_MAX_RETRIES

logger = get_service_logger("device.retry")

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Exponential backoff from base_delay_ms, jittered, at most max_retries retries"""
    base_delay_ms: int = DEFAULT_BACKOFF_BASE_MS
    max_retries: int = DEFAULT_MAX_RETRIES

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            self.max_retries = 0

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> "RetryPolicy":
        return cls(
            base_delay_ms=settings.backoff_base_ms,
            max_retries=settings.max_retries,
        )

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, retry_number: int) -> float:
        """Seconds to wait before retry number retry_number (0-based)"""
        ceiling = self.base_delay_ms * (2 ** retry_number)
        return ceiling * random.random() / 1000

    async def run(
        self,
        action: Callable[[], Awaitable[T]],
        should_retry: Callable[[BaseException], bool] = is_transient,
    ) -> T:
        """
        Run action, retrying while should_retry(error) holds.

        The last attempt's error propagates unchanged.
        """
        for attempt in range(self.max_attempts):
            try:
                return await action()
            except Exception as e:
                if attempt >= self.max_retries or not should_retry(e):
                    raise
                delay = self.delay_for(attempt)
                logger.debug(
                    f"Attempt {attempt + 1}/{self.max_attempts} failed: {e}, "
                    f"retrying in {delay * 1000:.0f}ms"
                )
                await asyncio.sleep(delay)

        # max_attempts is always >= 1, so the loop returns or raises
        raise RuntimeError("retry loop exited without a result")
