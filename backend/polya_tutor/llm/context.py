"""Process-wide routing context: credential pool, model router and dispatcher.

Built once per process and handed by reference to every session, so all
outbound calls share the same counters and the same single-flight queue.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..core.clock import Clock
from ..core.config import Settings
from ..core.exceptions import MissingConfiguration
from .client import Generate, LangChainGenerator
from .credentials import CredentialPool
from .dispatcher import RateLimitedDispatcher, Sleep
from .router import ModelRouter, ModelSpec

logger = logging.getLogger(__name__)


@dataclass
class RoutingContext:
    """Handles to the shared routing components."""

    pool: CredentialPool
    router: ModelRouter
    dispatcher: RateLimitedDispatcher

    def usage_report(self) -> dict:
        return {
            "credentials": self.pool.usage_stats(),
            "available_credentials": self.pool.available_count(),
            "total_requests": self.pool.total_requests,
            "models": self.router.usage_info(),
            "rotation_log": self.pool.rotation_log(),
        }


def build_routing_context(
    settings: Settings,
    generate: Optional[Generate] = None,
    clock: Optional[Clock] = None,
    sleep: Optional[Sleep] = None,
) -> RoutingContext:
    """
    Build the routing context from settings.

    Args:
        settings: Application settings
        generate: Outbound call override (defaults to the ChatOpenAI generator)
        clock: Clock override for day-boundary resets
        sleep: Sleep override for the dispatcher

    Raises:
        MissingConfiguration: If no API keys or no models are configured.
    """
    secrets = settings.api_keys_list
    if not secrets:
        raise MissingConfiguration("GEMINI_API_KEYS is not configured")

    models = [
        ModelSpec(name=name, daily_budget=budget, priority=index)
        for index, (name, budget) in enumerate(settings.model_budgets_list)
    ]
    if not models:
        raise MissingConfiguration("GEMINI_MODELS is not configured")

    pool = CredentialPool(secrets, clock=clock, log_capacity=settings.ROTATION_LOG_CAPACITY)
    router = ModelRouter(
        pool,
        models,
        generate or LangChainGenerator.from_settings(settings),
        clock=clock,
    )
    dispatcher_kwargs = {"sleep": sleep} if sleep is not None else {}
    dispatcher = RateLimitedDispatcher(
        router,
        delay_seconds=settings.DISPATCH_DELAY_SECONDS,
        cooldown_seconds=settings.RATE_LIMIT_COOLDOWN_SECONDS,
        retries=settings.RATE_LIMIT_RETRIES,
        **dispatcher_kwargs,
    )

    logger.info(
        f"Routing context ready: {len(pool)} credential(s), "
        f"models={[spec.name for spec in models]}"
    )
    return RoutingContext(pool=pool, router=router, dispatcher=dispatcher)
