from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import AsyncSessionLocal
from ..config import settings
from ..models.users import Profile
from ..utils.local_time import LocalMoment, local_moment
from ..services.habit_service import HabitService
from ..services.followup_service import FollowupService
from ..services.pending_service import PendingClarificationService
from ..services.profile_service import list_followup_profiles
from ..services.sms_service import SmsSender
from ..services.chainer import ConversationChainer
from ..services import replies


def within_followup_window(profile: Profile, moment: LocalMoment, window_minutes: int) -> bool:
    """True when the local clock is within `window_minutes` of the profile's follow-up time."""
    if profile.tracking_followup_time is None:
        return False
    target = datetime.combine(moment.today, profile.tracking_followup_time, tzinfo=moment.now.tzinfo)
    # compare on the same day only; a window crossing midnight is not followed
    delta = abs((moment.now - target).total_seconds())
    return delta <= window_minutes * 60


async def _has_unanswered_followup(session: AsyncSession, user_id: int, moment: LocalMoment) -> bool:
    asked = await FollowupService.habits_followed_up(session, user_id, moment.today)
    if not asked:
        return False
    answered = await HabitService.answered_habit_names(session, user_id, moment.today)
    return any(name not in answered for name in asked)


async def send_scheduled_followup(
    session: AsyncSession,
    profile: Profile,
    chainer: ConversationChainer,
    now_utc: Optional[datetime] = None,
    window_minutes: Optional[int] = None,
) -> Optional[str]:
    """
    Sends the daily follow-up for one user if it is due. Returns the habit
    asked about, or None when nothing was sent.
    """
    window = settings.FOLLOWUP_WINDOW_MINUTES if window_minutes is None else window_minutes
    moment = local_moment(profile.timezone, now_utc)
    if not within_followup_window(profile, moment, window):
        return None

    if await _has_unanswered_followup(session, profile.id, moment):
        logger.info("User {} has an unanswered followup today; skipping", profile.id)
        return None

    config = await ConversationChainer.next_habit(session, profile.id, moment, skip_followed_up=True)
    if config is None:
        return None

    message = replies.scheduled_followup_message(config, profile.display_first_name)
    sent = await chainer.ask(session, profile, config, moment, message)
    return config.habit_name if sent else None


async def followup_sweep_job(sender: Optional[SmsSender] = None):
    """Periodic follow-up sweep across opted-in users."""
    logger.info("Running followup_sweep_job")
    chainer = ConversationChainer(sender or SmsSender())
    now = datetime.now(timezone.utc)

    session = AsyncSessionLocal()
    try:
        user_ids = [p.id for p in await list_followup_profiles(session)]
    except Exception as e:
        logger.exception("Error listing followup candidates: {}", e)
        return
    finally:
        await session.close()

    sent = 0
    for user_id in user_ids:
        session = AsyncSessionLocal()
        try:
            profile = await session.get(Profile, user_id)
            if profile is None:
                continue
            if await send_scheduled_followup(session, profile, chainer, now):
                sent += 1
        except Exception as e:
            logger.exception("Error sending scheduled followup to user {}: {}", user_id, e)
            await session.rollback()
        finally:
            await session.close()
    logger.info("followup_sweep_job sent {} followups to {} candidates", sent, len(user_ids))


async def purge_expired_clarifications_job():
    """Delete clarifications past their expiry."""
    logger.info("Running purge_expired_clarifications_job")
    session = AsyncSessionLocal()
    try:
        deleted = await PendingClarificationService.purge_expired(session)
        await session.commit()
        logger.info("Deleted {} expired clarifications", deleted)
    except Exception as e:
        logger.exception("Error during purge_expired_clarifications_job: {}", e)
        await session.rollback()
    finally:
        await session.close()
