"""
Shared entry points for both triggers (HTTP endpoint and Celery beat).

Each run is a short, independent invocation: read a fresh snapshot of the
directory, do the work, return a JSON-serializable summary. Directory and
configuration errors propagate to the caller; per-message errors are part of
the summary.
"""
import logging
from datetime import datetime, timezone as dt_timezone
from typing import Any, Dict, Optional

from .config import ReminderSettings, settings as default_settings
from .directory import UserDirectory
from .dispatcher import dispatch_all
from .errors import MissingTokenError, ProfileNotFoundError
from .gateway import PushGateway
from .messages import display_hints
from .metrics import scheduler_matched_total, scheduler_scans_total
from .scanner import scan
from .schemas import NotificationContent, PushPayload
from .sweeper import sweep
from .timematch import to_utc_aware

logger = logging.getLogger(__name__)

TEST_TITLE = "Test NutriTrack"
TEST_BODY = "Si tu vois ce message, les notifications fonctionnent !"


def isoformat_z(dt: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a Z suffix."""
    return to_utc_aware(dt).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def run_reminder_scan(
    gateway: PushGateway,
    directory: UserDirectory,
    now: Optional[datetime] = None,
    settings: Optional[ReminderSettings] = None,
) -> Dict[str, Any]:
    cfg = settings or default_settings
    now = to_utc_aware(now or datetime.now(dt_timezone.utc))
    scheduler_scans_total.inc()

    profiles = directory.query_users_with_token()
    if not profiles:
        logger.info("[Trigger] No users with FCM tokens")
        return {
            "success": True,
            "message": "No users with FCM tokens",
            "sent": 0,
            "failed": 0,
            "total": 0,
            "time": isoformat_z(now),
        }

    requests = list(scan(now, profiles, cfg))
    scheduler_matched_total.inc(len(requests))
    logger.info("[Trigger] %s reminders due at %s across %s users", len(requests), isoformat_z(now), len(profiles))

    report = dispatch_all(
        requests,
        gateway,
        directory=directory if cfg.CLEAR_TOKENS_ON_DISPATCH else None,
        max_workers=cfg.DISPATCH_MAX_WORKERS,
    )
    return {
        "success": True,
        "time": isoformat_z(now),
        "sent": report.sent,
        "failed": report.failed,
        "total": report.total,
        "cleared": report.cleared,
        "failures": [f.to_dict() for f in report.failures],
    }


def run_token_sweep(
    gateway: PushGateway,
    directory: UserDirectory,
    settings: Optional[ReminderSettings] = None,
) -> Dict[str, Any]:
    cfg = settings or default_settings
    logger.info("[Sweep] Starting FCM token cleanup...")
    profiles = directory.query_users_with_token()
    report = sweep(profiles, gateway, directory, max_workers=cfg.DISPATCH_MAX_WORKERS)
    return {
        "success": True,
        "time": isoformat_z(datetime.now(dt_timezone.utc)),
        "cleaned": report.cleaned,
        "probed": report.probed,
        "failures": [f.to_dict() for f in report.failures],
    }


def send_test_notification(
    user_id: str,
    gateway: PushGateway,
    directory: UserDirectory,
    settings: Optional[ReminderSettings] = None,
) -> Dict[str, Any]:
    """Send a one-off test push to a single user. Gateway errors propagate."""
    cfg = settings or default_settings
    profile = directory.get_profile(user_id)
    if profile is None:
        raise ProfileNotFoundError(f"User document not found: {user_id}")
    if not profile.has_token:
        raise MissingTokenError(f"No FCM token found for user {user_id}")

    payload = PushPayload(
        notification=NotificationContent(title=TEST_TITLE, body=TEST_BODY),
        data={"type": "test", "deepLink": cfg.APP_URL},
        displayHints=display_hints(cfg),
    )
    message_id = gateway.send(profile.delivery_token, payload)
    logger.info("[Trigger] Test notification sent to user %s: %s", user_id, message_id)
    return {"success": True, "message": "Notification sent", "message_id": message_id}
