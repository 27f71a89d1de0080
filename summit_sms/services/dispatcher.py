from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from ..llm.smart_parser import SmartParser
from ..integrations.backup_plan import BackupPlanClient
from ..models.conversation import FollowupLogEntry
from ..models.habit import HabitEntry, HabitTrackingConfig
from ..models.parse_result import ParsedHabit
from ..models.clarification import (
    ClarificationContext,
    UnitConversionContext,
    HabitSelectionContext,
    MetricValueContext,
    BooleanConfirmationContext,
)
from ..utils.local_time import local_moment
from ..utils.reply_parser import parse_reply
from ..utils.units import lookup_conversion
from .habit_service import HabitService
from .pending_service import PendingClarificationService
from .followup_service import FollowupService
from .message_log_service import MessageLogService
from .profile_service import find_by_phone
from .sms_service import SmsSender
from .chainer import ConversationChainer
from .pending_resolver import PendingResolver
from .command_router import CommandRouter
from .turn import Turn, TurnActions
from . import replies

# Dispatch outcomes, mostly for logs and tests
UNKNOWN_SENDER = "unknown_sender"
DUPLICATE = "duplicate"
EMPTY_MESSAGE = "empty_message"
CRISIS = "crisis"
COMMAND = "command"
CLARIFICATION = "clarification"
FOLLOWUP = "followup"
SMART = "smart"
NOT_UNDERSTOOD = "not_understood"
FAILED = "failed"


@dataclass
class InboundMessage:
    sender: str
    body: str
    message_sid: Optional[str] = None
    # raw webhook fields, forwarded as-is to collaborators
    form: Dict[str, str] = field(default_factory=dict)


class InboundDispatcher:
    """
    Entry point for one inbound SMS. Identifies the user, then tries, in
    order: keyword commands, the open clarification, today's follow-up
    question, and finally the smart parser. The first one that handles the
    message wins.
    """

    def __init__(
        self,
        sender: Optional[SmsSender] = None,
        smart_parser: Optional[SmartParser] = None,
        backup_client: Optional[BackupPlanClient] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        sender = sender or SmsSender()
        self.actions = TurnActions(sender)
        self.chainer = ConversationChainer(sender)
        self.resolver = PendingResolver(self.actions, self.chainer)
        self.commands = CommandRouter(self.actions, backup_client)
        self.smart_parser = smart_parser or SmartParser()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def dispatch(self, session: AsyncSession, message: InboundMessage) -> str:
        now = self.clock()
        if message.message_sid and await MessageLogService.inbound_exists(session, message.message_sid):
            logger.info("Inbound SMS {} already handled; ignoring redelivery", message.message_sid)
            return DUPLICATE

        profile = await find_by_phone(session, message.sender)

        try:
            await MessageLogService.log_inbound(
                session,
                phone=message.sender,
                body=message.body,
                twilio_sid=message.message_sid,
                user_id=profile.id if profile else None,
                user_name=profile.full_name if profile else None,
            )
            await session.commit()
        except IntegrityError:
            # a concurrent delivery of the same MessageSid logged it first
            await session.rollback()
            logger.info("Inbound SMS {} logged by a concurrent delivery; ignoring", message.message_sid)
            return DUPLICATE

        if profile is None:
            logger.info("No user found for phone {}; not replying", message.sender)
            return UNKNOWN_SENDER
        if not message.body.strip():
            return EMPTY_MESSAGE

        moment = local_moment(profile.timezone, now)
        turn = Turn(
            session=session,
            profile=profile,
            body=message.body.strip(),
            moment=moment,
            now=now,
            message_sid=message.message_sid,
        )
        logger.info(
            "Message from user {} on local {} ({}): \"{}\"",
            profile.id, moment.today, moment.tz_name, turn.body[:80],
        )

        try:
            return await self._route(turn, message)
        except Exception as e:
            logger.exception("Error handling inbound SMS from user {}: {}", profile.id, e)
            await session.rollback()
            return FAILED

    async def _route(self, turn: Turn, message: InboundMessage) -> str:
        if await self.commands.handle_crisis(turn):
            return CRISIS
        if await self.commands.route(turn, message.form):
            return COMMAND

        pending = await PendingClarificationService.find_active(turn.session, turn.user_id, turn.now)
        if pending is not None and await self.resolver.resolve(turn, pending):
            return CLARIFICATION

        followup = await FollowupService.latest_for_day(turn.session, turn.user_id, turn.moment.today)
        if followup is not None and await self._answer_followup(turn, followup):
            return FOLLOWUP

        return await self._smart(turn)

    async def _answer_followup(self, turn: Turn, followup: FollowupLogEntry) -> bool:
        config = await HabitService.get_config(turn.session, turn.user_id, followup.habit_name)
        if config is None or not config.tracking_enabled:
            logger.info("Tracking not enabled for followup habit '{}'", followup.habit_name)
            return False

        parsed = parse_reply(turn.body, config.tracking_type, config.metric_unit, config.unit_conversions)
        if parsed is None:
            logger.info("Reply to '{}' followup is not a direct answer; trying smart parser", config.habit_name)
            return False

        entry = await self.actions.record(
            turn, config, completed=parsed.completed, metric_value=parsed.metric_value, source="sms",
        )
        await self.actions.confirm(turn, config, entry)
        await self.chainer.chain(turn)
        return True

    async def _smart(self, turn: Turn) -> str:
        configs = await HabitService.list_enabled_configs(turn.session, turn.user_id)
        result = await self.smart_parser.parse(turn.body, turn.first_name, configs)
        if not result.understood:
            logger.info("Message from user {} not understood as habit logging; staying silent", turn.user_id)
            return NOT_UNDERSTOOD

        by_name = {c.habit_name: c for c in configs}
        logged: List[Tuple[HabitTrackingConfig, HabitEntry]] = []
        clarification: Optional[ClarificationContext] = None

        for item in result.habits:
            config = by_name.get(item.habit_name) if item.habit_name else None
            if item.needs_clarification:
                if item.clarification_type == "unit_conversion" and config is not None:
                    ratio = lookup_conversion(config.unit_conversions, item.user_unit)
                    if ratio is not None:
                        entry = await self.actions.record(
                            turn, config, metric_value=item.user_value * ratio, source="sms_smart",
                        )
                        logged.append((config, entry))
                        continue
                if clarification is None:
                    clarification = self._clarification_for(item, config)
                continue

            if config is None:
                continue
            entry = await self.actions.record(
                turn,
                config,
                completed=None if config.is_metric else item.value,
                metric_value=item.value if config.is_metric else None,
                source="sms_smart",
            )
            logged.append((config, entry))

        if logged:
            ack = result.reply or " ".join(
                replies.confirmation(config, entry, turn.first_name) for config, entry in logged
            )
            await self.actions.reply(turn, ack)

        if clarification is not None:
            await self.actions.ask(turn, clarification)
            return CLARIFICATION

        if not logged:
            return NOT_UNDERSTOOD

        await self.chainer.chain(turn)
        return SMART

    @staticmethod
    def _clarification_for(item: ParsedHabit, config: Optional[HabitTrackingConfig]) -> Optional[ClarificationContext]:
        if item.clarification_type == "habit_selection":
            return HabitSelectionContext(candidates=item.candidates, value=item.value)
        if config is None:
            return None
        if item.clarification_type == "unit_conversion":
            return UnitConversionContext(
                habit_name=config.habit_name,
                user_unit=item.user_unit,
                user_value=item.user_value,
                target_unit=config.metric_unit or "units",
            )
        if item.clarification_type == "metric_value_needed":
            return MetricValueContext(habit_name=config.habit_name, unit=config.metric_unit)
        return BooleanConfirmationContext(habit_name=config.habit_name)
