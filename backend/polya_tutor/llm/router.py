"""Two-dimensional (model x credential) fallback cascade.

For every outbound call the router tries models in priority order under the
current credential. Quota-like and not-found-like failures make a model dead
for that credential for the rest of the call. Once every model is dead or
over budget for a credential, it is marked exhausted and the pool rotates; a
credential that only failed transiently is rotated away from but keeps its
quota flag clear. A (model, credential) pair is never attempted twice within
one ``dispatch`` call.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from ..core.clock import Clock, SystemClock, current_day
from ..core.exceptions import (
    AllRoutesExhausted,
    ErrorKind,
    GenerationError,
    MissingConfiguration,
)
from .client import Generate, Prompt, classify_generation_error
from .credentials import Credential, CredentialPool

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelSpec:
    """A model name with its daily call budget; lower priority is tried first."""

    name: str
    daily_budget: int
    priority: int = 0


class ModelRouter:
    """
    Pick a model for the current credential and cascade through fallbacks.

    Args:
        pool: Credential pool shared with the rest of the process
        models: Model specs; tried by ascending priority, then list order
        generate: Outbound call ``generate(model_name, secret, prompt) -> text``
        clock: Clock used for the daily budget reset
    """

    def __init__(
        self,
        pool: CredentialPool,
        models: Sequence[ModelSpec],
        generate: Generate,
        clock: Optional[Clock] = None,
    ):
        if not models:
            raise MissingConfiguration("No models configured")

        self._pool = pool
        self._models: List[ModelSpec] = sorted(models, key=lambda spec: spec.priority)
        self._generate = generate
        self._clock = clock or SystemClock()
        self._usage: Dict[str, int] = {spec.name: 0 for spec in self._models}
        self._last_reset_day: date = current_day(self._clock)

    @property
    def models(self) -> List[ModelSpec]:
        return list(self._models)

    @property
    def pool(self) -> CredentialPool:
        return self._pool

    def usage(self, model_name: str) -> int:
        return self._usage.get(model_name, 0)

    def daily_reset(self) -> bool:
        """Zero the per-model counters when the calendar day has changed."""
        today = current_day(self._clock)
        if today == self._last_reset_day:
            return False
        for name in self._usage:
            self._usage[name] = 0
        self._last_reset_day = today
        logger.info(f"Daily model usage reset for {today.isoformat()}")
        return True

    def _over_budget(self, spec: ModelSpec) -> bool:
        return self._usage[spec.name] >= spec.daily_budget

    def _all_unavailable(self, unavailable: Set[str]) -> bool:
        """True when every model is over budget or dead for the current credential."""
        return all(self._over_budget(spec) or spec.name in unavailable for spec in self._models)

    def _next_eligible(
        self,
        credential: Credential,
        unavailable: Set[str],
        attempted: Set[Tuple[str, str]],
    ) -> Optional[ModelSpec]:
        for spec in self._models:
            if self._over_budget(spec):
                continue
            if spec.name in unavailable or (spec.name, credential.id) in attempted:
                continue
            return spec
        return None

    async def dispatch(self, prompt: Prompt) -> str:
        """
        Send one prompt through the cascade.

        Returns:
            The generated text from the first (model, credential) pair that succeeds.

        Raises:
            AllRoutesExhausted: If no untried pair is left.
            NoCredentialAvailable: If the pool is empty or has no active key.
        """
        self.daily_reset()
        self._pool.current()

        rotation_budget = self._pool.active_count()
        unavailable: Set[str] = set()
        attempted: Set[Tuple[str, str]] = set()
        last_error: Optional[GenerationError] = None
        transient_failures: Set[str] = set()

        for _ in range(rotation_budget):
            credential = self._pool.current()

            while True:
                spec = self._next_eligible(credential, unavailable, attempted)
                if spec is None:
                    break

                attempted.add((spec.name, credential.id))
                try:
                    text = await self._generate(spec.name, credential.secret, prompt)
                except Exception as exc:
                    error = classify_generation_error(exc, spec.name)
                else:
                    self._usage[spec.name] += 1
                    self._pool.record_success()
                    logger.info(
                        f"Used {spec.name} with {credential.id} "
                        f"({self._usage[spec.name]}/{spec.daily_budget})"
                    )
                    return text

                last_error = error
                if error.kind in (ErrorKind.QUOTA, ErrorKind.NOT_FOUND):
                    unavailable.add(spec.name)
                else:
                    transient_failures.add(credential.id)
                logger.warning(
                    f"{spec.name} failed with {credential.id} ({error.kind.value}): {error.message}"
                )

            if all(self._over_budget(spec) for spec in self._models):
                logger.warning("Every model has reached its daily budget")
                break

            # A credential whose failures include a transient one still has quota.
            if self._all_unavailable(unavailable) or credential.id not in transient_failures:
                self._pool.mark_exhausted(last_error or "No eligible model")
            else:
                logger.info(f"{credential.id} failed transiently, rotating without marking it exhausted")
            if not self._pool.rotate_next():
                break
            unavailable.clear()

        raise AllRoutesExhausted(last_error, self._pool.available_count())

    def usage_info(self) -> List[Dict[str, Any]]:
        """Per-model daily usage against budget."""
        self.daily_reset()
        return [
            {
                "name": spec.name,
                "used": self._usage[spec.name],
                "budget": spec.daily_budget,
                "available": not self._over_budget(spec),
            }
            for spec in self._models
        ]

    def reset_usage(self) -> None:
        for name in self._usage:
            self._usage[name] = 0
