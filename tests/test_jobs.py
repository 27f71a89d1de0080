import asyncio
from datetime import datetime, time, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from summit_sms.models.clarification import MetricValueContext
from summit_sms.scheduler import jobs
from summit_sms.scheduler.jobs import send_scheduled_followup, within_followup_window
from summit_sms.services.chainer import ConversationChainer
from summit_sms.services.habit_service import HabitService
from summit_sms.services.pending_service import PendingClarificationService
from summit_sms.utils.local_time import local_moment
from summit_sms.models.users import Profile
from conftest import NOW, TODAY


def test_followup_window():
    profile = Profile(timezone="America/Chicago", tracking_followup_time=time(12, 10))
    moment = local_moment(profile.timezone, NOW)  # 12:00 local
    assert within_followup_window(profile, moment, 15)
    assert not within_followup_window(profile, moment, 5)
    assert not within_followup_window(Profile(timezone="UTC"), moment, 15)


@pytest.mark.asyncio
async def test_scheduled_followup_walks_through_habits(db_session, sam, sender, fake_twilio):
    chainer = ConversationChainer(sender)

    assert await send_scheduled_followup(db_session, sam, chainer, NOW, 15) == "Meditate"
    assert fake_twilio.bodies == ['Hi Sam! Did you complete "Meditate" today? Reply Y or N']

    # still waiting on Meditate
    assert await send_scheduled_followup(db_session, sam, chainer, NOW, 15) is None

    meditate = await HabitService.get_config(db_session, sam.id, "Meditate")
    await HabitService.log_value(db_session, meditate, TODAY, completed=True)
    await db_session.commit()

    assert await send_scheduled_followup(db_session, sam, chainer, NOW, 15) == "Water"
    assert fake_twilio.bodies[-1] == 'Hi Sam! How many oz for "Water" today? Reply with a number'


@pytest.mark.asyncio
async def test_scheduled_followup_outside_window(db_session, sam, sender, fake_twilio):
    evening = NOW + timedelta(hours=8)
    assert await send_scheduled_followup(db_session, sam, ConversationChainer(sender), evening, 15) is None
    assert fake_twilio.sent == []


@pytest.mark.asyncio
async def test_followup_sweep_job(monkeypatch, session_factory, sam, sender, fake_twilio):
    monkeypatch.setattr("summit_sms.scheduler.jobs.AsyncSessionLocal", session_factory)
    monkeypatch.setattr(
        "summit_sms.scheduler.jobs.datetime",
        type("FrozenDatetime", (datetime,), {"now": classmethod(lambda cls, tz=None: NOW)}),
    )

    await jobs.followup_sweep_job(sender)

    assert fake_twilio.bodies == ['Hi Sam! Did you complete "Meditate" today? Reply Y or N']


@pytest.mark.asyncio
async def test_purge_expired_clarifications_job(monkeypatch, db_session, session_factory, sam):
    await PendingClarificationService.create(
        db_session, sam.id, MetricValueContext(habit_name="Water"), now=datetime.now(timezone.utc) - timedelta(days=1)
    )
    await db_session.commit()
    monkeypatch.setattr("summit_sms.scheduler.jobs.AsyncSessionLocal", session_factory)

    await jobs.purge_expired_clarifications_job()

    async with session_factory() as session:
        assert await PendingClarificationService.count_active(session, sam.id, datetime(2000, 1, 1, tzinfo=timezone.utc)) == 0


def test_purge_job_logs_and_rolls_back_on_error(monkeypatch):
    fake_session = AsyncMock()
    fake_session.execute = AsyncMock(side_effect=RuntimeError("db down"))
    monkeypatch.setattr("summit_sms.scheduler.jobs.AsyncSessionLocal", lambda: fake_session)

    asyncio.run(jobs.purge_expired_clarifications_job())

    fake_session.rollback.assert_awaited_once()
    fake_session.close.assert_awaited_once()
    fake_session.commit.assert_not_awaited()
