from __future__ import annotations
import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from loguru import logger
from twilio.base.exceptions import TwilioRestException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client

from ..config import settings
from ..db import AsyncSessionLocal
from .message_log_service import MessageLogService


@dataclass
class SendResult:
    success: bool
    sid: Optional[str] = None
    status: Optional[str] = None
    error: Optional[str] = None


class SmsSender:
    """
    Sends SMS through Twilio with exponential backoff on rate limits and
    network errors, and records every final outcome in sms_messages.

    The audit row is written in its own session so it survives a rollback of
    the conversation turn that triggered the send.
    """

    def __init__(
        self,
        client: Optional[Client] = None,
        from_number: Optional[str] = None,
        session_factory: Callable[[], Any] = AsyncSessionLocal,
        max_retries: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._client = client
        self.from_number = from_number or settings.TWILIO_PHONE_NUMBER
        self.session_factory = session_factory
        self.max_retries = settings.SMS_MAX_RETRIES if max_retries is None else max_retries
        self._sleep = sleep

    def _get_client(self) -> Client:
        if self._client is None:
            self._client = Client(
                settings.TWILIO_ACCOUNT_SID,
                settings.TWILIO_AUTH_TOKEN,
                http_client=TwilioHttpClient(timeout=settings.SMS_TIMEOUT_SECONDS),
            )
        return self._client

    async def send(
        self,
        to: str,
        body: str,
        *,
        user_id: Optional[int] = None,
        user_name: Optional[str] = None,
        sent_by_type: str = "system",
    ) -> SendResult:
        result = await self._send_with_retry(to, body)
        if result.success:
            logger.info("SMS sent to {} (sid={})", to, result.sid)
        else:
            logger.error("SMS to {} failed: {}", to, result.error)

        await self._log(to, body, result, user_id=user_id, user_name=user_name, sent_by_type=sent_by_type)
        return result

    async def _send_with_retry(self, to: str, body: str) -> SendResult:
        for attempt in range(self.max_retries + 1):
            try:
                client = self._get_client()
                message = await asyncio.to_thread(
                    client.messages.create,
                    to=to,
                    from_=self.from_number,
                    body=body,
                )
                return SendResult(success=True, sid=message.sid, status=message.status or "sent")
            except TwilioRestException as e:
                if e.status == 429:
                    if attempt < self.max_retries:
                        delay = 2 ** attempt
                        logger.info("SMS rate limited, retrying in {}s (attempt {}/{})", delay, attempt + 1, self.max_retries)
                        await self._sleep(delay)
                        continue
                    return SendResult(success=False, status="failed", error="Rate limit exceeded after retries")
                return SendResult(success=False, status="failed", error=e.msg or f"Twilio API error: {e.status}")
            except Exception as e:
                if attempt < self.max_retries:
                    delay = 2 ** attempt
                    logger.info("SMS request failed ({}), retrying in {}s (attempt {}/{})", e, delay, attempt + 1, self.max_retries)
                    await self._sleep(delay)
                    continue
                return SendResult(success=False, status="failed", error=str(e) or e.__class__.__name__)
        return SendResult(success=False, status="failed", error="Max retries exceeded")

    async def _log(
        self,
        to: str,
        body: str,
        result: SendResult,
        *,
        user_id: Optional[int],
        user_name: Optional[str],
        sent_by_type: str,
    ) -> None:
        session = self.session_factory()
        try:
            await MessageLogService.log_outbound(
                session,
                phone=to,
                body=body,
                status=result.status or ("sent" if result.success else "failed"),
                twilio_sid=result.sid,
                error_message=result.error,
                user_id=user_id,
                user_name=user_name,
                sent_by_type=sent_by_type,
            )
            await session.commit()
        except Exception as e:
            logger.exception("Error logging outbound SMS to {}: {}", to, e)
            await session.rollback()
        finally:
            await session.close()
