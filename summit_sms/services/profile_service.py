from __future__ import annotations
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select
from loguru import logger

from ..models.users import Profile


async def find_by_phone(session: AsyncSession, phone: str) -> Optional[Profile]:
    """Exact match on the stored E.164 number."""
    if not phone:
        return None
    result = await session.execute(select(Profile).where(Profile.phone == phone))
    return result.scalars().first()


async def opt_out_of_sms(session: AsyncSession, profile: Profile) -> None:
    profile.sms_opt_in = False
    profile.touch()
    session.add(profile)
    await session.flush()
    logger.info("User {} opted out of SMS", profile.id)


async def list_followup_profiles(session: AsyncSession) -> List[Profile]:
    """Users who get the scheduled evening follow-up."""
    result = await session.execute(
        select(Profile).where(
            Profile.sms_opt_in == True,
            Profile.phone != None,
            Profile.tracking_followup_time != None,
        )
    )
    return list(result.scalars().all())
