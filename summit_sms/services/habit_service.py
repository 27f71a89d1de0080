from __future__ import annotations
from typing import List, Optional, Set
from datetime import date, datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.dialects import postgresql, sqlite
from sqlmodel import select
from loguru import logger

from ..models.habit import HabitTrackingConfig, ScheduledHabit, HabitEntry

_ENTRY_KEY = ["user_id", "habit_name", "entry_date"]
_ENTRY_UPDATABLE = ("completed", "metric_value", "entry_source", "updated_at")


class HabitService:
    """
    Read access to the habit registry and idempotent writes to the entry store.
    """

    @staticmethod
    async def get_config(session: AsyncSession, user_id: int, habit_name: str) -> Optional[HabitTrackingConfig]:
        result = await session.execute(
            select(HabitTrackingConfig).where(
                HabitTrackingConfig.user_id == user_id,
                HabitTrackingConfig.habit_name == habit_name,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def list_enabled_configs(session: AsyncSession, user_id: int) -> List[HabitTrackingConfig]:
        result = await session.execute(
            select(HabitTrackingConfig)
            .where(
                HabitTrackingConfig.user_id == user_id,
                HabitTrackingConfig.tracking_enabled == True,
            )
            .order_by(HabitTrackingConfig.id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def scheduled_habit_names(session: AsyncSession, user_id: int, weekday: int) -> List[str]:
        """Habit names planned for `weekday` (Sunday = 0), in schedule order."""
        result = await session.execute(
            select(ScheduledHabit.habit_name)
            .where(
                ScheduledHabit.user_id == user_id,
                ScheduledHabit.day_of_week == weekday,
            )
            .order_by(ScheduledHabit.id)
        )
        names: List[str] = []
        for name in result.scalars().all():
            if name not in names:
                names.append(name)
        return names

    @staticmethod
    async def entries_for_day(session: AsyncSession, user_id: int, entry_date: date) -> List[HabitEntry]:
        result = await session.execute(
            select(HabitEntry)
            .where(HabitEntry.user_id == user_id, HabitEntry.entry_date == entry_date)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    @staticmethod
    async def answered_habit_names(session: AsyncSession, user_id: int, entry_date: date) -> Set[str]:
        """Habits with a logged value today. A "not done" answer counts as answered."""
        entries = await HabitService.entries_for_day(session, user_id, entry_date)
        return {e.habit_name for e in entries if e.is_answered}

    @staticmethod
    async def log_value(
        session: AsyncSession,
        config: HabitTrackingConfig,
        entry_date: date,
        *,
        completed: Optional[bool] = None,
        metric_value: Optional[float] = None,
        source: str = "sms",
    ) -> HabitEntry:
        """
        Upsert the entry for (user, habit, entry_date). A second write for the
        same key overwrites the first.
        """
        if not config.tracking_enabled:
            raise ValueError(f"Tracking is disabled for habit '{config.habit_name}'")

        if config.is_metric:
            if metric_value is None:
                raise ValueError(f"Habit '{config.habit_name}' needs a metric value")
            completed = None
        else:
            if completed is None:
                raise ValueError(f"Habit '{config.habit_name}' needs a yes/no value")
            metric_value = None

        values = {
            "user_id": config.user_id,
            "habit_name": config.habit_name,
            "entry_date": entry_date,
            "completed": completed,
            "metric_value": metric_value,
            "entry_source": source,
            "updated_at": datetime.now(timezone.utc),
        }
        await HabitService._upsert_entry(session, values)

        result = await session.execute(
            select(HabitEntry)
            .where(
                HabitEntry.user_id == config.user_id,
                HabitEntry.habit_name == config.habit_name,
                HabitEntry.entry_date == entry_date,
            )
            .execution_options(populate_existing=True)
        )
        entry = result.scalar_one()
        logger.info(
            "Logged {} for user {} habit '{}' on {} (source={})",
            metric_value if config.is_metric else completed,
            config.user_id, config.habit_name, entry_date, source,
        )
        return entry

    @staticmethod
    async def _upsert_entry(session: AsyncSession, values: dict) -> None:
        dialect = session.get_bind().dialect.name
        if dialect == "postgresql":
            stmt = postgresql.insert(HabitEntry.__table__).values(**values)
        elif dialect == "sqlite":
            stmt = sqlite.insert(HabitEntry.__table__).values(**values)
        else:
            raise NotImplementedError(f"Entry upsert is not supported on '{dialect}'")

        stmt = stmt.on_conflict_do_update(
            index_elements=_ENTRY_KEY,
            set_={col: stmt.excluded[col] for col in _ENTRY_UPDATABLE},
        )
        await session.execute(stmt)
