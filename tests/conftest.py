"""
Pytest Configuration and Fixtures

Fixed clock, in-memory store, engine and fake coaches shared by all tests.
"""
import asyncio
from datetime import date, datetime, time, timedelta

import pytest

from wellbeing_engine.core.ai_service import AICoach, AINetworkError, CoachService, PromptContext
from wellbeing_engine.core.database import EventStore
from wellbeing_engine.core.models import CheckIn
from wellbeing_engine.services.engine import WellbeingEngine
from wellbeing_engine.utils.datetime_utils import Clock

# Thursday
TODAY = date(2025, 6, 12)
NOW = datetime(2025, 6, 12, 10, 0)
FALLBACK = "Take a breath. Your coach will be back shortly."


class FakeNow:
    """Controllable time source for Clock."""

    def __init__(self, current: datetime):
        self.current = current

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class EchoCoach(AICoach):
    """Returns a canned reply and records every context it receives."""

    def __init__(self, reply: str = "You're doing great. One small step tomorrow."):
        self.reply = reply
        self.contexts = []

    async def respond(self, context: PromptContext) -> str:
        self.contexts.append(context)
        return self.reply


class FailingCoach(AICoach):
    async def respond(self, context: PromptContext) -> str:
        raise AINetworkError("connection refused")


class SlowCoach(AICoach):
    """Blocks until released; signals when the call has started."""

    def __init__(self):
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def respond(self, context: PromptContext) -> str:
        self.started.set()
        await self.release.wait()
        return "late reply"


@pytest.fixture
def fake_now():
    return FakeNow(NOW)


@pytest.fixture
def clock(fake_now):
    return Clock("UTC", now_func=fake_now)


@pytest.fixture
def store():
    """In-memory store."""
    return EventStore()


@pytest.fixture
def echo_coach():
    return EchoCoach()


@pytest.fixture
def engine(store, clock, echo_coach):
    return WellbeingEngine(
        store,
        clock=clock,
        coach_service=CoachService(echo_coach, timeout=1.0, fallback_message=FALLBACK)
    )


@pytest.fixture
def make_check_in():
    """Factory for check-ins on a given day, created at 9:00 that day."""
    def factory(day: date, mood: str = "good", hour: int = 9, **fields) -> CheckIn:
        return CheckIn.create(mood, day, created_at=datetime.combine(day, time(hour)), **fields)
    return factory


@pytest.fixture
def days_ago():
    def factory(n: int) -> date:
        return TODAY - timedelta(days=n)
    return factory
