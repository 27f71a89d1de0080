from __future__ import annotations
from typing import List, Optional
from datetime import date, datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..models.conversation import FollowupLogEntry


class FollowupService:
    """Append-only log of proactive follow-up questions."""

    @staticmethod
    async def record(
        session: AsyncSession,
        user_id: int,
        habit_name: str,
        followup_date: date,
        message: str,
        now: Optional[datetime] = None,
    ) -> FollowupLogEntry:
        entry = FollowupLogEntry(
            user_id=user_id,
            habit_name=habit_name,
            followup_date=followup_date,
            message_sent=message,
            sent_at=now or datetime.now(timezone.utc),
        )
        session.add(entry)
        await session.flush()
        return entry

    @staticmethod
    async def latest_for_day(session: AsyncSession, user_id: int, followup_date: date) -> Optional[FollowupLogEntry]:
        result = await session.execute(
            select(FollowupLogEntry)
            .where(
                FollowupLogEntry.user_id == user_id,
                FollowupLogEntry.followup_date == followup_date,
            )
            .order_by(FollowupLogEntry.id.desc())
            .limit(1)
        )
        return result.scalars().first()

    @staticmethod
    async def habits_followed_up(session: AsyncSession, user_id: int, followup_date: date) -> List[str]:
        result = await session.execute(
            select(FollowupLogEntry.habit_name).where(
                FollowupLogEntry.user_id == user_id,
                FollowupLogEntry.followup_date == followup_date,
            )
        )
        return list(result.scalars().all())
