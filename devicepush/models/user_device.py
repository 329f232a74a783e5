from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, DateTime, String, UniqueConstraint
from sqlmodel import Field, SQLModel


class UserDevice(SQLModel, table=True):
    """FCM registration tokens known for each user.

    A user may have several devices; the same token is stored once per user.
    """
    __tablename__ = "user_devices"
    __table_args__ = (
        UniqueConstraint("user_id", "fcm_token", name="uq_user_devices_user_token"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(
        sa_column=Column(String(255), nullable=False, index=True),
    )
    fcm_token: str = Field(
        sa_column=Column(String(512), nullable=False, index=True),
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    # Last successful FCM delivery
    last_used_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
