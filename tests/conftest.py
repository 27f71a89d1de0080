import os
import sys
from datetime import datetime, time, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

# Add the repository root to sys.path so the summit_sms package imports
ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

import pytest
import pytest_asyncio
from sqlmodel import SQLModel
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker

from summit_sms.models.users import Profile
from summit_sms.models.habit import HabitTrackingConfig, ScheduledHabit, HabitEntry, TRACKING_BOOLEAN, TRACKING_METRIC  # noqa: F401
from summit_sms.models.conversation import PendingClarification, FollowupLogEntry, BackupSession  # noqa: F401
from summit_sms.models.sms_message import SmsMessage  # noqa: F401
from summit_sms.services.sms_service import SmsSender

# Wednesday 2026-03-04, 12:00 in America/Chicago
NOW = datetime(2026, 3, 4, 18, 0, tzinfo=timezone.utc)
TODAY = NOW.date()
WEDNESDAY = 3
PHONE = "+15550001111"


class FakeTwilioClient:
    """Stands in for twilio.rest.Client; `messages.create` records what was sent."""

    def __init__(self, failures=None):
        self.sent = []
        self.attempts = 0
        self.failures = list(failures or [])
        self.messages = self

    def create(self, to, from_, body):
        self.attempts += 1
        if self.failures:
            raise self.failures.pop(0)
        self.sent.append({"to": to, "from_": from_, "body": body})
        return SimpleNamespace(sid=f"SM{len(self.sent):04d}", status="queued")

    @property
    def bodies(self):
        return [m["body"] for m in self.sent]


def llm_response(content: str):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def fake_llm(*contents):
    """An OpenAI-style client whose chat completions return `contents` in order."""
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=[llm_response(c) for c in contents])
    return client


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'summit_test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_twilio():
    return FakeTwilioClient()


@pytest.fixture
def sender(fake_twilio, session_factory):
    return SmsSender(
        client=fake_twilio,
        from_number="+15005550006",
        session_factory=session_factory,
        sleep=AsyncMock(),
    )


@pytest_asyncio.fixture
async def sam(db_session):
    """
    Sam tracks "Meditate" (yes/no) and "Water" (oz, target 64), both
    scheduled for Wednesday in that order.
    """
    profile = Profile(
        first_name="Sam",
        last_name="Rivera",
        phone=PHONE,
        timezone="America/Chicago",
        sms_opt_in=True,
        tracking_followup_time=time(12, 5),
    )
    db_session.add(profile)
    await db_session.flush()

    db_session.add_all([
        HabitTrackingConfig(user_id=profile.id, habit_name="Meditate", tracking_type=TRACKING_BOOLEAN),
        HabitTrackingConfig(
            user_id=profile.id,
            habit_name="Water",
            tracking_type=TRACKING_METRIC,
            metric_unit="oz",
            metric_target=64.0,
        ),
    ])
    await db_session.flush()
    db_session.add_all([
        ScheduledHabit(user_id=profile.id, habit_name="Meditate", day_of_week=WEDNESDAY),
        ScheduledHabit(user_id=profile.id, habit_name="Water", day_of_week=WEDNESDAY),
    ])
    await db_session.commit()
    return profile
