"""
Pytest configuration and fixtures for Tutor Guard tests.
"""

import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import List

import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from tutor_guard.core.config import Settings
from tutor_guard.core.feature_flags import FeatureFlags
from tutor_guard.core.resilience import ResilienceExecutor
from tutor_guard.middleware import TutorMiddleware
from tutor_guard.profile import InMemoryProfileStore
from tutor_guard.session import SessionContext, make_assistant_message, make_user_message


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingSleeper:
    """Async sleeper that records requested delays instead of waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeper() -> RecordingSleeper:
    return RecordingSleeper()


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def executor(sleeper: RecordingSleeper, clock: FakeClock) -> ResilienceExecutor:
    """Executor with no real backoff and a short timeout."""
    return ResilienceExecutor(timeout_seconds=0.05, sleeper=sleeper, clock=clock)


@pytest.fixture
def session_context(clock: FakeClock) -> SessionContext:
    return SessionContext(user_id="student-1", clock=clock)


@pytest.fixture
def add_user_message(clock: FakeClock):
    """Append a user message stamped with the fake clock."""
    def _add(session: SessionContext, content: str) -> None:
        session.add_message(make_user_message(content, user_id=session.user_id, timestamp=clock()))
    return _add


@pytest.fixture
def add_assistant_message(clock: FakeClock):
    """Append an assistant message stamped with the fake clock."""
    def _add(session: SessionContext, content: str) -> None:
        session.add_message(make_assistant_message(content, user_id=session.user_id, timestamp=clock()))
    return _add


@pytest.fixture
def opted_in_document() -> dict:
    """Stored profile document (camelCase keys) for an opted-in user."""
    return {
        "schemaVersion": 1,
        "userId": "student-1",
        "displayName": "Sam",
        "learningPreferences": {
            "visual": 0.8,
            "auditory": 0.3,
            "kinesthetic": 0.4,
            "reading": 0.5,
            "preferredDepth": "detailed",
        },
        "skillScores": {"subjectMastery": {"algebra": 0.7}},
        "optInFlags": {"profileStorage": True},
    }


@pytest.fixture
def profile_store(opted_in_document: dict) -> InMemoryProfileStore:
    return InMemoryProfileStore({"student-1": opted_in_document})


@pytest.fixture
def all_flags() -> FeatureFlags:
    return FeatureFlags.development()


@pytest.fixture
def middleware(
    profile_store: InMemoryProfileStore,
    all_flags: FeatureFlags,
    sleeper: RecordingSleeper,
    test_settings: Settings,
) -> TutorMiddleware:
    """Middleware with every validation enabled and no real backoff."""
    return TutorMiddleware(
        profile_store=profile_store,
        feature_flags=all_flags,
        executor=ResilienceExecutor(timeout_seconds=0.5, sleeper=sleeper),
        settings=test_settings,
    )
