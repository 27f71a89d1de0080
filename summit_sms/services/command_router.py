from __future__ import annotations
import re
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select
from loguru import logger

from ..config import settings
from ..integrations.backup_plan import BackupPlanClient
from ..models.conversation import BackupSession
from .profile_service import opt_out_of_sms
from .turn import Turn, TurnActions
from . import replies

CRISIS_PATTERNS = [
    re.compile(r"\b(kill\s*(my\s*)?self|suicide|suicidal)\b", re.IGNORECASE),
    re.compile(r"\b(want\s+to\s+die|wanna\s+die|ready\s+to\s+die)\b", re.IGNORECASE),
    re.compile(r"\b(end\s+(my\s+)?life|end\s+it\s+all)\b", re.IGNORECASE),
    re.compile(r"\b(self[\s-]?harm|hurt\s*(my\s*)?self|cutting\s*(my\s*)?self)\b", re.IGNORECASE),
    re.compile(r"\b(no\s+reason\s+to\s+live|better\s+off\s+dead)\b", re.IGNORECASE),
    re.compile(r"\b(overdose|od'?ing)\b", re.IGNORECASE),
]

OPT_OUT_KEYWORDS = {"STOP", "STOPALL", "UNSUBSCRIBE", "CANCEL", "END", "QUIT"}
HELP_KEYWORDS = {"HELP", "INFO"}
BACKUP_KEYWORD = "BACKUP"


def is_crisis_message(text: str) -> bool:
    return any(pattern.search(text) for pattern in CRISIS_PATTERNS)


def is_backup_command(text: str) -> bool:
    upper = text.strip().upper()
    return upper == BACKUP_KEYWORD or upper.startswith(BACKUP_KEYWORD + " ")


async def has_active_backup_session(session: AsyncSession, user_id: int, now: datetime) -> bool:
    result = await session.execute(
        select(BackupSession.id)
        .where(BackupSession.user_id == user_id, BackupSession.expires_at > now)
        .limit(1)
    )
    return result.first() is not None


class CommandRouter:
    """
    Keyword commands and the hand-off to the BACKUP conversation. These take
    precedence over any habit-logging interpretation.
    """

    def __init__(self, actions: TurnActions, backup_client: Optional[BackupPlanClient] = None):
        self.actions = actions
        self.backup_client = backup_client or BackupPlanClient(
            settings.BACKUP_PLAN_URL,
            settings.BACKUP_PLAN_TOKEN,
            timeout=settings.BACKUP_PLAN_TIMEOUT_SECONDS,
        )

    async def handle_crisis(self, turn: Turn) -> bool:
        if not is_crisis_message(turn.body):
            return False
        logger.warning("CRISIS MESSAGE detected from user {}: \"{}\"", turn.user_id, turn.body[:80])
        await self.actions.reply(turn, replies.CRISIS_RESPONSE)
        return True

    async def route(self, turn: Turn, form: Dict[str, str]) -> bool:
        upper = turn.body.strip().upper()

        if upper in OPT_OUT_KEYWORDS:
            # the gateway sends the opt-out confirmation itself
            await opt_out_of_sms(turn.session, turn.profile)
            await turn.session.commit()
            return True

        if upper in HELP_KEYWORDS:
            logger.info("User {} requested help via SMS", turn.user_id)
            await self.actions.reply(turn, replies.help_message(settings.SUPPORT_EMAIL))
            return True

        if is_backup_command(turn.body) or await has_active_backup_session(turn.session, turn.user_id, turn.now):
            await self._forward_backup(turn, form)
            return True

        return False

    async def _forward_backup(self, turn: Turn, form: Dict[str, str]) -> None:
        if not self.backup_client.configured:
            logger.warning("BACKUP request from user {} but BACKUP_PLAN_URL is not set", turn.user_id)
            return
        try:
            status = await self.backup_client.forward(form)
            logger.info("Forwarded BACKUP message for user {} (status {})", turn.user_id, status)
        except Exception as e:
            logger.exception("Error forwarding to backup plan service for user {}: {}", turn.user_id, e)
