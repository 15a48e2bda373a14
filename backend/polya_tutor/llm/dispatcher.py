"""Single-flight dispatcher in front of the model router.

Every outbound call, from every session, is serialized through one lock:
at most one network call is in flight and waiting callers are served in
arrival order. Consecutive calls are separated by a quiescence delay, and a
rate-limit failure is retried exactly once after a longer cooldown.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from ..core.exceptions import AllRoutesExhausted, GenerationError
from .client import Prompt
from .router import ModelRouter

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def is_rate_limit_signal(exc: BaseException) -> bool:
    """True for quota-like failures, including a cascade that ended on one."""
    if isinstance(exc, GenerationError):
        return exc.is_quota_like
    if isinstance(exc, AllRoutesExhausted):
        return exc.rate_limited
    return False


class RateLimitedDispatcher:
    """
    Serialize calls onto one logical channel and absorb rate-limit bursts.

    Args:
        router: Model router performing the actual cascade
        delay_seconds: Quiescence delay between consecutive calls
        cooldown_seconds: Wait before retrying a rate-limited call
        retries: Number of retries after a rate-limit failure
        sleep: Awaitable sleep, injectable for tests
    """

    def __init__(
        self,
        router: ModelRouter,
        delay_seconds: float,
        cooldown_seconds: float,
        retries: int = 1,
        sleep: Sleep = asyncio.sleep,
    ):
        self._router = router
        self.delay_seconds = delay_seconds
        self.cooldown_seconds = cooldown_seconds
        self.retries = retries
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._ready_at = 0.0

    @property
    def router(self) -> ModelRouter:
        return self._router

    async def dispatch(self, prompt: Prompt) -> Optional[str]:
        """
        Queue one prompt behind every earlier call.

        Returns:
            Generated text, or None when the rate-limit retry also failed.
            Callers must treat None as "no content available".

        Raises:
            Any non-rate-limit error from the router, without cooldown.
        """
        async with self._lock:
            await self._wait_until_ready()
            attempt = 0
            while True:
                try:
                    return await self._router.dispatch(prompt)
                except Exception as exc:
                    if not is_rate_limit_signal(exc):
                        raise
                    if attempt >= self.retries:
                        logger.warning(f"Retry after cooldown failed, returning no content: {exc}")
                        return None
                    attempt += 1
                    logger.warning(
                        f"Rate limited, cooling down {self.cooldown_seconds:.1f}s "
                        f"before retry {attempt}/{self.retries}"
                    )
                    await self._sleep(self.cooldown_seconds)
                finally:
                    self._ready_at = time.monotonic() + self.delay_seconds

    async def _wait_until_ready(self) -> None:
        remaining = self._ready_at - time.monotonic()
        if remaining > 0:
            await self._sleep(remaining)
