from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from ..models.users import Profile
from ..models.habit import HabitEntry, HabitTrackingConfig
from ..models.clarification import ClarificationContext, question_for
from ..utils.local_time import LocalMoment
from .habit_service import HabitService
from .pending_service import PendingClarificationService
from .sms_service import SmsSender, SendResult
from . import replies


@dataclass
class Turn:
    """One inbound message from a known user, with their local calendar view."""
    session: AsyncSession
    profile: Profile
    body: str
    moment: LocalMoment
    now: datetime
    message_sid: Optional[str] = None

    @property
    def user_id(self) -> int:
        return self.profile.id

    @property
    def first_name(self) -> str:
        return self.profile.display_first_name


class TurnActions:
    """
    Side effects shared by every resolver: persist, then talk.
    Writes are committed before the corresponding SMS goes out.
    """

    def __init__(self, sender: SmsSender):
        self.sender = sender

    async def reply(self, turn: Turn, body: str) -> SendResult:
        return await self.sender.send(
            turn.profile.phone,
            body,
            user_id=turn.user_id,
            user_name=turn.profile.full_name,
        )

    async def record(
        self,
        turn: Turn,
        config: HabitTrackingConfig,
        *,
        completed: Optional[bool] = None,
        metric_value: Optional[float] = None,
        source: str = "sms",
    ) -> HabitEntry:
        entry = await HabitService.log_value(
            turn.session,
            config,
            turn.moment.today,
            completed=completed,
            metric_value=metric_value,
            source=source,
        )
        await turn.session.commit()
        return entry

    async def confirm(
        self,
        turn: Turn,
        config: HabitTrackingConfig,
        entry: HabitEntry,
        ack: Optional[str] = None,
    ) -> SendResult:
        return await self.reply(turn, ack or replies.confirmation(config, entry, turn.first_name))

    async def ask(self, turn: Turn, context: ClarificationContext, reprompt: bool = False) -> SendResult:
        """Open (or re-open) a clarification and send its question."""
        await PendingClarificationService.create(turn.session, turn.user_id, context, now=turn.now)
        await turn.session.commit()
        question = question_for(context)
        if reprompt:
            logger.info("Re-prompting user {} for {}", turn.user_id, context.kind)
            question = replies.reprompt(question)
        return await self.reply(turn, question)
