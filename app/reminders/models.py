"""
SQL storage for notification profiles (used by the ``sql`` directory backend)
"""
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, String

from app.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserNotificationRecord(Base):
    __tablename__ = "user_notification_profiles"

    user_id = Column(String, primary_key=True)
    fcm_token = Column(String, nullable=True, index=True)
    timezone = Column(String, nullable=True)
    schedules = Column(JSON, nullable=False, default=list)  # list of schedule entry dicts
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
