"""
Meal reminder message builder.

Known meal kinds always render their canonical French copy; any other schedule
id is a custom reminder that uses the entry's own title/body overrides.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple, Union

from .config import ReminderSettings, settings as default_settings
from .schemas import DisplayHints, NotificationContent, PushPayload, ReminderData, ScheduleEntry


class MealKind(str, Enum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    SNACK = "snack"
    DINNER = "dinner"


@dataclass(frozen=True)
class CustomReminder:
    tag: str
    title: Optional[str] = None
    body: Optional[str] = None


CANONICAL_MESSAGES: Dict[MealKind, Tuple[str, str]] = {
    MealKind.BREAKFAST: ("Petit-déjeuner", "Bonjour ! N'oublie pas de noter ton petit-déjeuner."),
    MealKind.LUNCH: ("Déjeuner", "C'est l'heure du déj ! Pense à logger ton repas."),
    MealKind.SNACK: ("Goûter", "Un petit goûter ? Note-le pour garder le cap !"),
    MealKind.DINNER: ("Dîner", "Bon appétit ! N'oublie pas de noter ton dîner."),
}

_missing = set(MealKind) - set(CANONICAL_MESSAGES)
if _missing:
    raise RuntimeError(f"No canonical message for meal kinds: {sorted(k.value for k in _missing)}")

DEFAULT_CUSTOM_BODY = "N'oublie pas de noter ton repas !"

REMINDER_TYPE = "meal_reminder"


def resolve_reminder(entry: ScheduleEntry) -> Union[MealKind, CustomReminder]:
    try:
        return MealKind(entry.id)
    except ValueError:
        return CustomReminder(tag=entry.id, title=entry.title, body=entry.body)


def render_content(reminder: Union[MealKind, CustomReminder], app_name: str = "NutriTrack") -> NotificationContent:
    if isinstance(reminder, MealKind):
        title, body = CANONICAL_MESSAGES[reminder]
        return NotificationContent(title=title, body=body)
    return NotificationContent(
        title=reminder.title or app_name,
        body=reminder.body or DEFAULT_CUSTOM_BODY,
    )


def display_hints(settings: Optional[ReminderSettings] = None) -> DisplayHints:
    cfg = settings or default_settings
    return DisplayHints(
        icon=cfg.NOTIFICATION_ICON,
        badge=cfg.NOTIFICATION_BADGE,
        vibrate=list(cfg.NOTIFICATION_VIBRATE),
    )


def build_payload(entry: ScheduleEntry, settings: Optional[ReminderSettings] = None) -> PushPayload:
    """Build the outbound push payload for a schedule entry."""
    cfg = settings or default_settings
    content = render_content(resolve_reminder(entry), app_name=cfg.APP_NAME)
    data = ReminderData(type=REMINDER_TYPE, mealType=entry.id, deepLink=cfg.APP_URL)
    return PushPayload(
        notification=content,
        data=data.model_dump(),
        displayHints=display_hints(cfg),
    )
