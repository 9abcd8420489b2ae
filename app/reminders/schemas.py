"""
Schemas for notification profiles, schedule entries and outbound payloads
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ScheduleEntry(BaseModel):
    """One recurring daily reminder definition"""
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    enabled: bool = False
    time: str = ""  # local wall clock "HH:MM", exact match
    title: Optional[str] = None
    body: Optional[str] = None


class UserNotificationProfile(BaseModel):
    """A user's stored notification configuration"""
    user_id: str
    delivery_token: Optional[str] = None
    timezone: Optional[str] = None
    schedules: List[ScheduleEntry] = Field(default_factory=list)

    @property
    def has_token(self) -> bool:
        return bool(self.delivery_token)


class NotificationContent(BaseModel):
    title: str
    body: str


class DisplayHints(BaseModel):
    icon: str
    badge: str
    vibrate: List[int]


class ReminderData(BaseModel):
    type: str = "meal_reminder"
    mealType: str
    deepLink: str


class PushPayload(BaseModel):
    """Rendered push message, independent of its recipient"""
    notification: NotificationContent
    data: Dict[str, str]
    displayHints: DisplayHints

    @property
    def title(self) -> str:
        return self.notification.title

    @property
    def body(self) -> str:
        return self.notification.body

    def to_wire(self, token: str) -> Dict[str, Any]:
        """Wire shape shared with the presentation worker."""
        return {
            "token": token,
            "notification": self.notification.model_dump(),
            "data": dict(self.data),
            "displayHints": self.displayHints.model_dump(),
        }


class DispatchRequest(BaseModel):
    """One send to perform in the current tick. Never persisted."""
    user_id: str
    token: str
    payload: PushPayload
