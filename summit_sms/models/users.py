from typing import Optional
from datetime import datetime, timezone, time
from sqlmodel import SQLModel, Field, UniqueConstraint
from sqlalchemy import DateTime, Column


class Profile(SQLModel, table=True):
    """
    A user as seen by the SMS channel. Owned by the profile CRUD surface;
    this engine only reads it, apart from the SMS opt-out flag.
    """
    __tablename__ = "profiles"
    __table_args__ = (UniqueConstraint("phone", name="uq_profiles_phone"),)

    id: Optional[int] = Field(default=None, primary_key=True)

    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)

    # E.164, matched exactly against the inbound sender
    phone: Optional[str] = Field(default=None, max_length=32, index=True)
    timezone: Optional[str] = Field(default=None, max_length=64)

    sms_opt_in: bool = Field(default=False)
    tracking_followup_time: Optional[time] = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    @property
    def full_name(self) -> Optional[str]:
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or None

    @property
    def display_first_name(self) -> str:
        return self.first_name or "there"

    def touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)
