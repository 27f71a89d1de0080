from __future__ import annotations
from typing import Optional
from datetime import datetime, timedelta, timezone
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import delete
from sqlmodel import select
from loguru import logger

from ..config import settings
from ..models.conversation import PendingClarification
from ..models.clarification import ClarificationContext, clarification_adapter


class PendingClarificationService:
    """
    Durable "waiting for an answer" records. At most one per user: creating a
    new one supersedes whatever was open. Expired rows are ignored on read.
    """

    @staticmethod
    async def create(
        session: AsyncSession,
        user_id: int,
        context: ClarificationContext,
        now: Optional[datetime] = None,
    ) -> PendingClarification:
        now = now or datetime.now(timezone.utc)
        await session.execute(delete(PendingClarification).where(PendingClarification.user_id == user_id))

        pending = PendingClarification(
            user_id=user_id,
            kind=context.kind,
            context=context.model_dump(mode="json"),
            created_at=now,
            expires_at=now + timedelta(minutes=settings.PENDING_CLARIFICATION_TTL_MINUTES),
        )
        session.add(pending)
        await session.flush()
        logger.info("Opened {} clarification {} for user {}", pending.kind, pending.id, user_id)
        return pending

    @staticmethod
    async def find_active(
        session: AsyncSession,
        user_id: int,
        now: Optional[datetime] = None,
    ) -> Optional[PendingClarification]:
        now = now or datetime.now(timezone.utc)
        result = await session.execute(
            select(PendingClarification)
            .where(
                PendingClarification.user_id == user_id,
                PendingClarification.expires_at > now,
            )
            .order_by(PendingClarification.id.desc())
            .limit(1)
        )
        return result.scalars().first()

    @staticmethod
    async def consume(session: AsyncSession, pending: PendingClarification) -> bool:
        """
        Delete the record. Returns False when another delivery of the same
        webhook already took it, in which case the caller must not act on it.
        """
        result = await session.execute(
            delete(PendingClarification).where(PendingClarification.id == pending.id)
        )
        if result.rowcount != 1:
            logger.info("Clarification {} already consumed", pending.id)
            return False
        return True

    @staticmethod
    def parse_context(pending: PendingClarification) -> Optional[ClarificationContext]:
        try:
            context = clarification_adapter.validate_python(pending.context or {})
        except ValidationError as e:
            logger.warning("Malformed clarification {} (kind={}): {}", pending.id, pending.kind, e)
            return None
        if context.kind != pending.kind:
            logger.warning("Clarification {} kind mismatch: {} vs {}", pending.id, pending.kind, context.kind)
            return None
        return context

    @staticmethod
    async def count_active(session: AsyncSession, user_id: int, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)
        result = await session.execute(
            select(PendingClarification.id).where(
                PendingClarification.user_id == user_id,
                PendingClarification.expires_at > now,
            )
        )
        return len(result.all())

    @staticmethod
    async def purge_expired(session: AsyncSession, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)
        result = await session.execute(
            delete(PendingClarification).where(PendingClarification.expires_at <= now)
        )
        return result.rowcount or 0
