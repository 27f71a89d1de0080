from __future__ import annotations
import re
from typing import List, Optional

from loguru import logger

from ..models.conversation import PendingClarification
from ..models.habit import HabitTrackingConfig
from ..models.clarification import (
    UnitConversionContext,
    HabitSelectionContext,
    MetricValueContext,
    BooleanConfirmationContext,
)
from ..utils.reply_parser import parse_number, parse_reply
from ..models.habit import TRACKING_BOOLEAN
from .habit_service import HabitService
from .pending_service import PendingClarificationService
from .chainer import ConversationChainer
from .turn import Turn, TurnActions

SOURCE = "sms_clarification"

_INDEX = re.compile(r"^\d+$")


def match_candidate(reply: str, candidates: List[str]) -> Optional[str]:
    """
    A 1-based index into `candidates`, or the first candidate that contains
    the reply or is contained in it (case-insensitive).
    """
    text = reply.strip().lower().strip(".!?")
    if not text:
        return None
    if _INDEX.match(text):
        index = int(text)
        if 1 <= index <= len(candidates):
            return candidates[index - 1]
        return None
    for candidate in candidates:
        name = candidate.lower()
        if name in text or text in name:
            return candidate
    return None


class PendingResolver:
    """
    Answers the open clarification for a user. The record is deleted as it is
    picked up, in the same transaction as whatever the answer produces.
    """

    def __init__(self, actions: TurnActions, chainer: ConversationChainer):
        self.actions = actions
        self.chainer = chainer

    async def resolve(self, turn: Turn, pending: PendingClarification) -> bool:
        """Returns False when the record was unusable and the message should fall through."""
        context = PendingClarificationService.parse_context(pending)
        if context is None:
            await PendingClarificationService.consume(turn.session, pending)
            await turn.session.commit()
            return False

        if not await PendingClarificationService.consume(turn.session, pending):
            await turn.session.rollback()
            return True

        logger.info("Resolving {} clarification for user {}", context.kind, turn.user_id)
        if isinstance(context, UnitConversionContext):
            await self._unit_conversion(turn, context)
        elif isinstance(context, HabitSelectionContext):
            await self._habit_selection(turn, context)
        elif isinstance(context, MetricValueContext):
            await self._metric_value(turn, context)
        elif isinstance(context, BooleanConfirmationContext):
            await self._boolean_confirmation(turn, context)
        return True

    async def _tracked_config(self, turn: Turn, habit_name: str) -> Optional[HabitTrackingConfig]:
        config = await HabitService.get_config(turn.session, turn.user_id, habit_name)
        if config is None or not config.tracking_enabled:
            logger.info("Habit '{}' is no longer tracked for user {}; dropping clarification", habit_name, turn.user_id)
            await turn.session.commit()
            return None
        return config

    async def _log_and_chain(
        self,
        turn: Turn,
        config: HabitTrackingConfig,
        *,
        completed: Optional[bool] = None,
        metric_value: Optional[float] = None,
    ) -> None:
        entry = await self.actions.record(turn, config, completed=completed, metric_value=metric_value, source=SOURCE)
        await self.actions.confirm(turn, config, entry)
        await self.chainer.chain(turn)

    async def _unit_conversion(self, turn: Turn, context: UnitConversionContext) -> None:
        ratio = parse_number(turn.body)
        if ratio is None or ratio <= 0:
            await self.actions.ask(turn, context, reprompt=True)
            return
        config = await self._tracked_config(turn, context.habit_name)
        if config is None:
            return
        if not config.is_metric:
            await self._log_and_chain(turn, config, completed=context.user_value > 0)
            return
        await self._log_and_chain(turn, config, metric_value=context.user_value * ratio)

    async def _habit_selection(self, turn: Turn, context: HabitSelectionContext) -> None:
        chosen = match_candidate(turn.body, context.candidates)
        if chosen is None:
            await self.actions.ask(turn, context, reprompt=True)
            return
        config = await self._tracked_config(turn, chosen)
        if config is None:
            return

        value = context.value
        if config.is_metric:
            if isinstance(value, float) and value >= 0:
                await self._log_and_chain(turn, config, metric_value=value)
            else:
                await self.actions.ask(turn, MetricValueContext(habit_name=config.habit_name, unit=config.metric_unit))
            return

        if isinstance(value, float):
            value = value > 0
        if isinstance(value, bool):
            await self._log_and_chain(turn, config, completed=value)
        else:
            await self.actions.ask(turn, BooleanConfirmationContext(habit_name=config.habit_name))

    async def _metric_value(self, turn: Turn, context: MetricValueContext) -> None:
        value = parse_number(turn.body)
        if value is None:
            await self.actions.ask(turn, context, reprompt=True)
            return
        config = await self._tracked_config(turn, context.habit_name)
        if config is None:
            return
        if not config.is_metric:
            await self._log_and_chain(turn, config, completed=value > 0)
            return
        await self._log_and_chain(turn, config, metric_value=value)

    async def _boolean_confirmation(self, turn: Turn, context: BooleanConfirmationContext) -> None:
        parsed = parse_reply(turn.body, TRACKING_BOOLEAN)
        if parsed is None:
            await self.actions.ask(turn, context, reprompt=True)
            return
        config = await self._tracked_config(turn, context.habit_name)
        if config is None:
            return
        if config.is_metric:
            # habit switched to metric since the question was asked
            if parsed.completed:
                await self.actions.ask(turn, MetricValueContext(habit_name=config.habit_name, unit=config.metric_unit))
            else:
                await self._log_and_chain(turn, config, metric_value=0.0)
            return
        await self._log_and_chain(turn, config, completed=parsed.completed)
