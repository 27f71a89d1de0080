import pytest

from summit_sms.services.chainer import ConversationChainer
from summit_sms.services.followup_service import FollowupService
from summit_sms.services.habit_service import HabitService
from summit_sms.services.turn import Turn
from summit_sms.utils.local_time import local_moment
from conftest import NOW, TODAY


def _turn(session, profile):
    return Turn(session=session, profile=profile, body="", moment=local_moment(profile.timezone, NOW), now=NOW)


async def _log(session, user_id, name, **value):
    config = await HabitService.get_config(session, user_id, name)
    await HabitService.log_value(session, config, TODAY, **value)
    await session.commit()


@pytest.mark.asyncio
async def test_chain_asks_first_unanswered_in_schedule_order(db_session, sam, sender, fake_twilio):
    chainer = ConversationChainer(sender)

    assert await chainer.chain(_turn(db_session, sam)) == "Meditate"
    assert fake_twilio.bodies == ['Did you complete "Meditate" today? Reply Y or N']
    assert await FollowupService.habits_followed_up(db_session, sam.id, TODAY) == ["Meditate"]


@pytest.mark.asyncio
async def test_not_done_counts_as_answered(db_session, sam, sender, fake_twilio):
    await _log(db_session, sam.id, "Meditate", completed=False)

    assert await ConversationChainer(sender).chain(_turn(db_session, sam)) == "Water"


@pytest.mark.asyncio
async def test_chaining_terminates(db_session, sam, sender, fake_twilio):
    await _log(db_session, sam.id, "Meditate", completed=True)
    await _log(db_session, sam.id, "Water", metric_value=10.0)

    assert await ConversationChainer(sender).chain(_turn(db_session, sam)) is None
    assert fake_twilio.sent == []


@pytest.mark.asyncio
async def test_disabled_habits_are_skipped(db_session, sam, sender):
    meditate = await HabitService.get_config(db_session, sam.id, "Meditate")
    meditate.tracking_enabled = False
    db_session.add(meditate)
    await db_session.commit()

    config = await ConversationChainer.next_habit(db_session, sam.id, local_moment(sam.timezone, NOW))
    assert config.habit_name == "Water"


@pytest.mark.asyncio
async def test_failed_send_is_not_recorded(db_session, sam, sender, fake_twilio):
    fake_twilio.failures = [ValueError("bad request")] * 4

    assert await ConversationChainer(sender).chain(_turn(db_session, sam)) is None
    assert await FollowupService.habits_followed_up(db_session, sam.id, TODAY) == []
