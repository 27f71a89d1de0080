from __future__ import annotations
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..models.sms_message import SmsMessage, DIRECTION_INBOUND, DIRECTION_OUTBOUND


class MessageLogService:
    """Writes the sms_messages audit trail."""

    @staticmethod
    async def inbound_exists(session: AsyncSession, twilio_sid: str) -> bool:
        result = await session.execute(
            select(SmsMessage.id)
            .where(SmsMessage.direction == DIRECTION_INBOUND, SmsMessage.twilio_sid == twilio_sid)
            .limit(1)
        )
        return result.first() is not None

    @staticmethod
    async def log_inbound(
        session: AsyncSession,
        phone: str,
        body: str,
        twilio_sid: Optional[str],
        user_id: Optional[int] = None,
        user_name: Optional[str] = None,
    ) -> SmsMessage:
        row = SmsMessage(
            direction=DIRECTION_INBOUND,
            user_id=user_id,
            phone=phone,
            user_name=user_name,
            body=body,
            twilio_sid=twilio_sid,
            twilio_status="received",
        )
        session.add(row)
        await session.flush()
        return row

    @staticmethod
    async def log_outbound(
        session: AsyncSession,
        phone: str,
        body: str,
        status: str,
        twilio_sid: Optional[str] = None,
        error_message: Optional[str] = None,
        user_id: Optional[int] = None,
        user_name: Optional[str] = None,
        sent_by_type: str = "system",
    ) -> SmsMessage:
        row = SmsMessage(
            direction=DIRECTION_OUTBOUND,
            user_id=user_id,
            phone=phone,
            user_name=user_name,
            body=body,
            twilio_sid=twilio_sid,
            twilio_status=status,
            sent_by_type=sent_by_type,
            error_message=error_message[:500] if error_message else None,
        )
        session.add(row)
        await session.flush()
        return row
