import pytest
from sqlmodel import select

from summit_sms.models.clarification import (
    UnitConversionContext,
    HabitSelectionContext,
    MetricValueContext,
    BooleanConfirmationContext,
)
from summit_sms.models.habit import HabitEntry
from summit_sms.services.chainer import ConversationChainer
from summit_sms.services.pending_resolver import PendingResolver, match_candidate
from summit_sms.services.pending_service import PendingClarificationService
from summit_sms.services.turn import Turn, TurnActions
from summit_sms.utils.local_time import local_moment
from conftest import NOW


def test_match_candidate_by_index_and_substring():
    candidates = ["Water", "Walk the dog"]
    assert match_candidate("2", candidates) == "Walk the dog"
    assert match_candidate("3", candidates) is None
    assert match_candidate("water!", candidates) == "Water"
    assert match_candidate("walk", candidates) == "Walk the dog"
    assert match_candidate("I did the water one", candidates) == "Water"
    assert match_candidate("read", candidates) is None


async def _resolve(session, profile, sender, context, body):
    await PendingClarificationService.create(session, profile.id, context, now=NOW)
    await session.commit()
    pending = await PendingClarificationService.find_active(session, profile.id, NOW)

    actions = TurnActions(sender)
    resolver = PendingResolver(actions, ConversationChainer(sender))
    turn = Turn(session=session, profile=profile, body=body, moment=local_moment(profile.timezone, NOW), now=NOW)
    return await resolver.resolve(turn, pending)


async def _entry(session, user_id, habit_name):
    result = await session.execute(
        select(HabitEntry)
        .where(HabitEntry.user_id == user_id, HabitEntry.habit_name == habit_name)
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


@pytest.mark.asyncio
async def test_invalid_ratio_reasks_and_keeps_value(db_session, sam, sender, fake_twilio):
    context = UnitConversionContext(habit_name="Water", user_unit="bottles", user_value=2, target_unit="oz")

    assert await _resolve(db_session, sam, sender, context, "0") is True

    pending = await PendingClarificationService.find_active(db_session, sam.id, NOW)
    assert PendingClarificationService.parse_context(pending) == context
    assert fake_twilio.bodies[0].startswith("Sorry, I didn't catch that. Quick question")
    assert await _entry(db_session, sam.id, "Water") is None


@pytest.mark.asyncio
async def test_selection_of_metric_habit_without_value_asks_for_number(db_session, sam, sender, fake_twilio):
    context = HabitSelectionContext(candidates=["Water", "Meditate"])

    assert await _resolve(db_session, sam, sender, context, "1") is True

    pending = await PendingClarificationService.find_active(db_session, sam.id, NOW)
    assert pending.kind == "metric_value_needed"
    assert fake_twilio.bodies == ['How many oz for "Water" today? Reply with a number']


@pytest.mark.asyncio
async def test_selection_with_value_logs_and_chains(db_session, sam, sender, fake_twilio):
    context = HabitSelectionContext(candidates=["Water", "Meditate"], value=12.0)

    assert await _resolve(db_session, sam, sender, context, "water") is True

    assert (await _entry(db_session, sam.id, "Water")).metric_value == 12.0
    assert await PendingClarificationService.count_active(db_session, sam.id, NOW) == 0
    assert fake_twilio.bodies[-1] == 'Did you complete "Meditate" today? Reply Y or N'


@pytest.mark.asyncio
async def test_unmatched_selection_lists_same_candidates(db_session, sam, sender, fake_twilio):
    context = HabitSelectionContext(candidates=["Water", "Meditate"], value=True)

    await _resolve(db_session, sam, sender, context, "the other one")

    pending = await PendingClarificationService.find_active(db_session, sam.id, NOW)
    assert PendingClarificationService.parse_context(pending).candidates == ["Water", "Meditate"]
    assert "1. Water\n2. Meditate" in fake_twilio.bodies[0]


@pytest.mark.asyncio
async def test_metric_value_accepts_number(db_session, sam, sender, fake_twilio):
    await _resolve(db_session, sam, sender, MetricValueContext(habit_name="Water", unit="oz"), "64 oz")

    assert (await _entry(db_session, sam.id, "Water")).metric_value == 64.0
    assert fake_twilio.bodies[0] == 'Logged 64 oz for "Water". You hit your target! Great job, Sam!'


@pytest.mark.asyncio
async def test_metric_value_reprompts_on_text(db_session, sam, sender, fake_twilio):
    context = MetricValueContext(habit_name="Water", unit="oz")

    assert await _resolve(db_session, sam, sender, context, "a lot") is True

    assert await PendingClarificationService.count_active(db_session, sam.id, NOW) == 1
    pending = await PendingClarificationService.find_active(db_session, sam.id, NOW)
    assert pending.kind == "metric_value_needed"
    assert PendingClarificationService.parse_context(pending) == context
    assert await _entry(db_session, sam.id, "Water") is None
    assert fake_twilio.bodies == ["Sorry, I didn't catch that. How many oz for \"Water\" today? Reply with a number"]


@pytest.mark.asyncio
async def test_boolean_confirmation(db_session, sam, sender, fake_twilio):
    await _resolve(db_session, sam, sender, BooleanConfirmationContext(habit_name="Meditate"), "👎")

    assert (await _entry(db_session, sam.id, "Meditate")).completed is False
    assert fake_twilio.bodies[0] == (
        'Got it, Sam. "Meditate" marked as not done today. Tomorrow\'s a new day!'
    )


@pytest.mark.asyncio
async def test_boolean_confirmation_reprompts(db_session, sam, sender, fake_twilio):
    await _resolve(db_session, sam, sender, BooleanConfirmationContext(habit_name="Meditate"), "hmm")

    assert await PendingClarificationService.count_active(db_session, sam.id, NOW) == 1
    assert fake_twilio.bodies == ["Sorry, I didn't catch that. Did you complete \"Meditate\" today? Reply Y or N"]


@pytest.mark.asyncio
async def test_already_consumed_question_is_not_acted_on(db_session, sam, sender, fake_twilio):
    user_id = sam.id
    await PendingClarificationService.create(db_session, sam.id, MetricValueContext(habit_name="Water"), now=NOW)
    await db_session.commit()
    pending = await PendingClarificationService.find_active(db_session, sam.id, NOW)
    await PendingClarificationService.consume(db_session, pending)
    await db_session.commit()

    resolver = PendingResolver(TurnActions(sender), ConversationChainer(sender))
    turn = Turn(session=db_session, profile=sam, body="10", moment=local_moment(sam.timezone, NOW), now=NOW)

    assert await resolver.resolve(turn, pending) is True
    assert fake_twilio.sent == []
    assert await _entry(db_session, user_id, "Water") is None
