from __future__ import annotations
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from ..models.users import Profile
from ..models.habit import HabitTrackingConfig
from ..utils.local_time import LocalMoment
from .habit_service import HabitService
from .followup_service import FollowupService
from .sms_service import SmsSender
from .turn import Turn
from . import replies


class ConversationChainer:
    """
    After a successful log, asks about the next habit still due today.
    One question per inbound message at most.
    """

    def __init__(self, sender: SmsSender):
        self.sender = sender

    @staticmethod
    async def next_habit(
        session: AsyncSession,
        user_id: int,
        moment: LocalMoment,
        skip_followed_up: bool = False,
    ) -> Optional[HabitTrackingConfig]:
        """
        First habit scheduled for the local weekday that is tracked and has no
        answer today. With `skip_followed_up`, habits already asked about
        today are passed over as well.
        """
        scheduled = await HabitService.scheduled_habit_names(session, user_id, moment.weekday)
        if not scheduled:
            return None

        configs = {c.habit_name: c for c in await HabitService.list_enabled_configs(session, user_id)}
        answered = await HabitService.answered_habit_names(session, user_id, moment.today)
        asked = set()
        if skip_followed_up:
            asked = set(await FollowupService.habits_followed_up(session, user_id, moment.today))

        for name in scheduled:
            if name in configs and name not in answered and name not in asked:
                return configs[name]
        return None

    async def ask(
        self,
        session: AsyncSession,
        profile: Profile,
        config: HabitTrackingConfig,
        moment: LocalMoment,
        message: str,
    ) -> bool:
        result = await self.sender.send(
            profile.phone,
            message,
            user_id=profile.id,
            user_name=profile.full_name,
        )
        if not result.success:
            return False

        await FollowupService.record(session, profile.id, config.habit_name, moment.today, message)
        await session.commit()
        logger.info("Sent followup for '{}' to user {}", config.habit_name, profile.id)
        return True

    async def chain(self, turn: Turn) -> Optional[str]:
        """Returns the habit asked about, if any."""
        try:
            config = await self.next_habit(turn.session, turn.user_id, turn.moment)
            if config is None:
                logger.info("No further habits due today for user {}", turn.user_id)
                return None
            sent = await self.ask(turn.session, turn.profile, config, turn.moment, replies.followup_question(config))
            return config.habit_name if sent else None
        except Exception as e:
            logger.exception("Error in followup chaining for user {}: {}", turn.user_id, e)
            await turn.session.rollback()
            return None
