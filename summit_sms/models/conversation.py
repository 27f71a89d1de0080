from typing import Optional
from datetime import datetime, date, timezone
from sqlmodel import SQLModel, Field
from sqlalchemy import DateTime, Column, JSON


class PendingClarification(SQLModel, table=True):
    """
    An engine-initiated question waiting for the user's next reply.
    Inert once `expires_at` has passed; deleted when picked up.
    """
    __tablename__ = "sms_pending_clarifications"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True, foreign_key="profiles.id")

    kind: str = Field(max_length=40)
    context: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    expires_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )


class FollowupLogEntry(SQLModel, table=True):
    """
    A proactive "how did X go today?" question. Append-only.
    """
    __tablename__ = "sms_followup_log"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True, foreign_key="profiles.id")
    habit_name: str = Field(max_length=200)

    # the user's local calendar day when the question went out
    followup_date: date = Field(index=True)
    message_sent: str = Field(max_length=1600)

    sent_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class BackupSession(SQLModel, table=True):
    """
    Owned by the BACKUP plan-adjustment flow. Only checked for existence here.
    """
    __tablename__ = "sms_backup_sessions"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True, foreign_key="profiles.id")
    step: str = Field(max_length=40)

    expires_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
