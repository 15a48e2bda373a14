"""
Pytest configuration and fixtures for the Polya tutor tests.
"""

import sys
from collections import deque
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, AsyncGenerator, Dict, List, Optional, Tuple

import pytest
from httpx import ASGITransport, AsyncClient

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from polya_tutor.api import tutor as tutor_api
from polya_tutor.core.config import Settings
from polya_tutor.llm.context import RoutingContext, build_routing_context
from polya_tutor.llm.credentials import CredentialPool
from polya_tutor.llm.dispatcher import RateLimitedDispatcher
from polya_tutor.llm.router import ModelRouter, ModelSpec
from polya_tutor.main import app


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2026, 3, 2, 9, 0, 0)

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class ScriptedGenerator:
    """
    Outbound call double.

    ``fail_pairs`` maps (model, secret) to an exception raised on every call
    to that pair; other calls consume ``outcomes`` in order, then ``default``.
    """

    def __init__(
        self,
        *outcomes: Any,
        fail_pairs: Optional[Dict[Tuple[str, str], BaseException]] = None,
        default: str = "[IDLE] Bạn hãy cho mình biết đề bài đã cho những gì nhé?",
    ):
        self.outcomes = deque(outcomes)
        self.fail_pairs = dict(fail_pairs or {})
        self.default = default
        self.calls: List[Tuple[str, str, Any]] = []

    async def __call__(self, model_name: str, secret: str, prompt: Any) -> str:
        self.calls.append((model_name, secret, prompt))
        if (model_name, secret) in self.fail_pairs:
            raise self.fail_pairs[(model_name, secret)]
        outcome = self.outcomes.popleft() if self.outcomes else self.default
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    @property
    def pairs(self) -> List[Tuple[str, str]]:
        return [(model, secret) for model, secret, _ in self.calls]


class FakeDispatcher:
    """Dispatcher double returning scripted replies; None once they run out."""

    def __init__(self, *replies: Any):
        self.replies = deque(replies)
        self.prompts: List[Any] = []

    async def dispatch(self, prompt: Any) -> Optional[str]:
        self.prompts.append(prompt)
        if not self.replies:
            return None
        reply = self.replies.popleft()
        if isinstance(reply, BaseException):
            raise reply
        return reply


class SleepRecorder:
    """Awaitable sleep that records durations without waiting."""

    def __init__(self):
        self.durations: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.durations.append(seconds)


def build_router(
    secrets: List[str],
    models: List[Tuple[str, int]],
    generator: ScriptedGenerator,
    clock: Optional[FakeClock] = None,
) -> ModelRouter:
    """Router over a fresh pool, models tried in list order."""
    clock = clock or FakeClock()
    pool = CredentialPool(secrets, clock=clock)
    specs = [ModelSpec(name=name, daily_budget=budget, priority=index) for index, (name, budget) in enumerate(models)]
    return ModelRouter(pool, specs, generator, clock=clock)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def test_settings() -> Settings:
    """Settings with two keys, two models and no pacing delays."""
    return Settings(
        GEMINI_API_KEYS="test-key-aaaa1111,test-key-bbbb2222",
        GEMINI_MODELS="model-lite:5,model-pro:5",
        DISPATCH_DELAY_SECONDS=0,
        RATE_LIMIT_COOLDOWN_SECONDS=0,
        RATE_LIMIT_RETRIES=1,
        LANGSMITH_TRACING=False,
    )


@pytest.fixture
def scripted_generator() -> ScriptedGenerator:
    return ScriptedGenerator()


@pytest.fixture
def routing_context(
    test_settings: Settings,
    scripted_generator: ScriptedGenerator,
    fake_clock: FakeClock,
    sleep_recorder: SleepRecorder,
) -> RoutingContext:
    """Routing context wired to the scripted generator."""
    return build_routing_context(
        test_settings,
        generate=scripted_generator,
        clock=fake_clock,
        sleep=sleep_recorder,
    )


@pytest.fixture
def dispatcher(routing_context: RoutingContext) -> RateLimitedDispatcher:
    return routing_context.dispatcher


@pytest.fixture
async def async_client(routing_context: RoutingContext) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client bound to the scripted routing context."""
    app.dependency_overrides[tutor_api.get_routing_context] = lambda: routing_context
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client
    app.dependency_overrides.clear()
    tutor_api._tutor_sessions.clear()
