import logging
from datetime import datetime
from typing import Iterable, Iterator, Optional, Set, Tuple

from .config import ReminderSettings, settings as default_settings
from .messages import build_payload
from .schemas import DispatchRequest, UserNotificationProfile
from .timematch import local_hhmm

logger = logging.getLogger(__name__)


def scan(
    reference_instant: datetime,
    profiles: Iterable[UserNotificationProfile],
    settings: Optional[ReminderSettings] = None,
) -> Iterator[DispatchRequest]:
    """Yield a dispatch request for every enabled schedule entry due at reference_instant.

    Single pass over ``profiles``; call again with a fresh snapshot to rescan.
    """
    cfg = settings or default_settings
    seen: Set[Tuple[str, str]] = set()

    for profile in profiles:
        if not profile.has_token:
            continue

        try:
            user_time = local_hhmm(reference_instant, profile.timezone, cfg.DEFAULT_TIMEZONE)
        except Exception as e:
            logger.warning("[Scanner] Skipping user %s: cannot resolve local time: %s", profile.user_id, e)
            continue

        for entry in profile.schedules:
            if not entry.enabled or entry.time != user_time:
                continue
            key = (profile.user_id, entry.id)
            if key in seen:
                logger.debug("[Scanner] Duplicate entry %s for user %s ignored", entry.id, profile.user_id)
                continue
            seen.add(key)

            try:
                payload = build_payload(entry, cfg)
            except Exception as e:
                logger.warning("[Scanner] Could not build payload for user %s entry %s: %s", profile.user_id, entry.id, e)
                continue

            logger.debug("[Scanner] Queued for user %s: %s at %s", profile.user_id, entry.id, user_time)
            yield DispatchRequest(user_id=profile.user_id, token=profile.delivery_token, payload=payload)
