import pytest
from sqlmodel import select

from summit_sms.models.habit import HabitEntry
from summit_sms.services.habit_service import HabitService
from conftest import TODAY, WEDNESDAY


async def _config(session, user_id, name):
    return await HabitService.get_config(session, user_id, name)


@pytest.mark.asyncio
async def test_log_value_is_an_upsert(db_session, sam):
    water = await _config(db_session, sam.id, "Water")

    await HabitService.log_value(db_session, water, TODAY, metric_value=20.0)
    await db_session.commit()
    entry = await HabitService.log_value(db_session, water, TODAY, metric_value=32.0, source="sms_smart")
    await db_session.commit()

    assert entry.metric_value == 32.0
    assert entry.entry_source == "sms_smart"
    rows = (await db_session.execute(select(HabitEntry).where(HabitEntry.user_id == sam.id))).scalars().all()
    assert len(rows) == 1


@pytest.mark.asyncio
async def test_repeated_write_leaves_same_state(db_session, sam):
    meditate = await _config(db_session, sam.id, "Meditate")
    first = await HabitService.log_value(db_session, meditate, TODAY, completed=True)
    second = await HabitService.log_value(db_session, meditate, TODAY, completed=True)
    await db_session.commit()

    assert first.id == second.id
    assert second.completed is True
    assert second.metric_value is None


@pytest.mark.asyncio
async def test_log_value_rejects_missing_value(db_session, sam):
    water = await _config(db_session, sam.id, "Water")
    meditate = await _config(db_session, sam.id, "Meditate")
    with pytest.raises(ValueError):
        await HabitService.log_value(db_session, water, TODAY, completed=True)
    with pytest.raises(ValueError):
        await HabitService.log_value(db_session, meditate, TODAY, metric_value=1.0)


@pytest.mark.asyncio
async def test_log_value_rejects_disabled_tracking(db_session, sam):
    water = await _config(db_session, sam.id, "Water")
    water.tracking_enabled = False
    db_session.add(water)
    await db_session.commit()

    with pytest.raises(ValueError):
        await HabitService.log_value(db_session, water, TODAY, metric_value=8.0)
    assert [c.habit_name for c in await HabitService.list_enabled_configs(db_session, sam.id)] == ["Meditate"]


@pytest.mark.asyncio
async def test_answered_includes_not_done(db_session, sam):
    meditate = await _config(db_session, sam.id, "Meditate")
    await HabitService.log_value(db_session, meditate, TODAY, completed=False)
    await db_session.commit()

    assert await HabitService.answered_habit_names(db_session, sam.id, TODAY) == {"Meditate"}


@pytest.mark.asyncio
async def test_scheduled_habit_names_keep_schedule_order(db_session, sam):
    assert await HabitService.scheduled_habit_names(db_session, sam.id, WEDNESDAY) == ["Meditate", "Water"]
    assert await HabitService.scheduled_habit_names(db_session, sam.id, 0) == []
