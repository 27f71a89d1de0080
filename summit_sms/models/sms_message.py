from typing import Optional
from datetime import datetime, timezone
from sqlmodel import SQLModel, Field
from sqlalchemy import DateTime, Column, Index, text

DIRECTION_INBOUND = "inbound"
DIRECTION_OUTBOUND = "outbound"


class SmsMessage(SQLModel, table=True):
    """
    Audit trail of every message in and out of the SMS channel.
    """
    __tablename__ = "sms_messages"
    __table_args__ = (
        # a redelivered inbound webhook carries the same MessageSid
        Index(
            "uq_sms_messages_inbound_sid",
            "twilio_sid",
            unique=True,
            postgresql_where=text("direction = 'inbound'"),
            sqlite_where=text("direction = 'inbound'"),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    direction: str = Field(max_length=10, index=True)
    user_id: Optional[int] = Field(default=None, index=True, foreign_key="profiles.id")

    phone: str = Field(max_length=32, index=True)
    user_name: Optional[str] = Field(default=None, max_length=200)
    body: str = Field(max_length=1600)

    twilio_sid: Optional[str] = Field(default=None, max_length=64)
    twilio_status: Optional[str] = Field(default=None, max_length=30)
    sent_by_type: Optional[str] = Field(default=None, max_length=20)
    error_message: Optional[str] = Field(default=None, max_length=500)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
