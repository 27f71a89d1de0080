from __future__ import annotations
from typing import AsyncIterator, Dict
from datetime import datetime, timezone

from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import Response
from loguru import logger
from twilio.request_validator import RequestValidator

from .config import settings
from .db import init_db, AsyncSessionLocal
from .scheduler.scheduler_instance import start_scheduler, shutdown_scheduler, scheduler
from .services.dispatcher import InboundDispatcher, InboundMessage

EMPTY_TWIML = '<?xml version="1.0" encoding="UTF-8"?><Response></Response>'

dispatcher = InboundDispatcher()


async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # --- startup ---
    logger.remove()
    logger.add(lambda msg: print(msg, end=""), level=settings.LOG_LEVEL)

    await init_db()
    if settings.ENABLE_SCHEDULER:
        start_scheduler()

    logger.info("Inbound SMS webhook expected at {}", settings.inbound_webhook_url)
    logger.info("Summit SMS started successfully")

    yield

    # --- shutdown ---
    shutdown_scheduler()
    logger.info("Summit SMS shut down")


app = FastAPI(title="Summit SMS", lifespan=lifespan)


def twiml_response() -> Response:
    return Response(content=EMPTY_TWIML, media_type="text/xml", status_code=200)


def signature_is_valid(form: Dict[str, str], signature: str | None) -> bool:
    if not settings.TWILIO_AUTH_TOKEN:
        logger.warning("TWILIO_AUTH_TOKEN not set; skipping webhook signature validation")
        return True
    if not signature:
        return False
    validator = RequestValidator(settings.TWILIO_AUTH_TOKEN)
    return validator.validate(settings.inbound_webhook_url, form, signature)


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "scheduler_running": scheduler.running if scheduler else False,
        "jobs_count": len(scheduler.get_jobs()) if scheduler and scheduler.running else 0,
    }


@app.post("/sms/inbound")
async def sms_inbound(request: Request):
    raw = await request.form()
    form = {key: str(value) for key, value in raw.items()}

    if not signature_is_valid(form, request.headers.get("X-Twilio-Signature")):
        logger.warning("Invalid Twilio signature for message {}", form.get("MessageSid"))
        raise HTTPException(status_code=403, detail="Invalid signature")

    message = InboundMessage(
        sender=form.get("From", "").strip(),
        body=form.get("Body", ""),
        message_sid=form.get("MessageSid"),
        form=form,
    )
    logger.info("Inbound SMS {} from {}", message.message_sid, message.sender)

    session = AsyncSessionLocal()
    try:
        outcome = await dispatcher.dispatch(session, message)
        logger.info("Inbound SMS {} handled: {}", message.message_sid, outcome)
    except Exception as e:
        # the gateway always gets 200; a retry would double-log
        logger.exception("Unhandled error processing inbound SMS {}: {}", message.message_sid, e)
        await session.rollback()
    finally:
        await session.close()

    return twiml_response()
