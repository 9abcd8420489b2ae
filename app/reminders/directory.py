"""
User directory backends.

Both backends expose the same three operations and treat ``fcm_token`` as the
only field the reminder engine ever writes. Clearing a token is a conditional
single-field update so concurrent schedule edits are never overwritten.
"""
import logging
from datetime import datetime, timezone as dt_timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

from pydantic import ValidationError
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from .config import ReminderSettings, settings as default_settings
from .errors import DirectoryQueryError
from .models import UserNotificationRecord
from .schemas import ScheduleEntry, UserNotificationProfile

logger = logging.getLogger(__name__)

TOKEN_FIELD = "fcmToken"
TIMEZONE_FIELD = "timezone"
SCHEDULES_FIELD = "notificationSchedules"


class UserDirectory(Protocol):
    def query_users_with_token(self) -> List[UserNotificationProfile]:
        ...

    def get_profile(self, user_id: str) -> Optional[UserNotificationProfile]:
        ...

    def clear_token(self, user_id: str, expected_token: str) -> bool:
        """Set the user's token to null if it still equals expected_token."""
        ...


def parse_schedules(user_id: str, raw: Any) -> List[ScheduleEntry]:
    if not isinstance(raw, list):
        return []
    entries: List[ScheduleEntry] = []
    for item in raw:
        try:
            entries.append(ScheduleEntry.model_validate(item))
        except ValidationError as e:
            logger.warning("[Directory] Dropping malformed schedule for user %s: %s", user_id, e.errors()[:1])
    return entries


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def profile_from_document(user_id: str, data: Optional[Dict[str, Any]]) -> UserNotificationProfile:
    if not isinstance(data, dict):
        data = {}
    return UserNotificationProfile(
        user_id=str(user_id),
        delivery_token=_text(data.get(TOKEN_FIELD)),
        timezone=_text(data.get(TIMEZONE_FIELD)),
        schedules=parse_schedules(str(user_id), data.get(SCHEDULES_FIELD)),
    )


def collect_profiles(rows: Iterable[Any], convert: Callable[[Any], UserNotificationProfile]) -> List[UserNotificationProfile]:
    """Convert stored rows, skipping any that cannot form a profile."""
    profiles: List[UserNotificationProfile] = []
    for row in rows:
        try:
            profiles.append(convert(row))
        except (ValidationError, TypeError, ValueError) as e:
            logger.warning("[Directory] Skipping malformed user record: %s", e)
    return profiles


class FirestoreUserDirectory:
    """Profiles stored as documents in a Firestore collection (``users`` by default)."""

    def __init__(self, client, collection: str = "users"):
        self.client = client
        self.collection = collection

    def _users(self):
        return self.client.collection(self.collection)

    def query_users_with_token(self) -> List[UserNotificationProfile]:
        from google.cloud.firestore_v1.base_query import FieldFilter

        try:
            docs = self._users().where(filter=FieldFilter(TOKEN_FIELD, "!=", None)).stream()
            return collect_profiles(docs, lambda doc: profile_from_document(doc.id, doc.to_dict()))
        except Exception as e:
            raise DirectoryQueryError(f"Failed to query users with tokens: {e}") from e

    def get_profile(self, user_id: str) -> Optional[UserNotificationProfile]:
        try:
            snap = self._users().document(user_id).get()
        except Exception as e:
            raise DirectoryQueryError(f"Failed to read user {user_id}: {e}") from e
        if not snap.exists:
            return None
        return profile_from_document(snap.id, snap.to_dict())

    def clear_token(self, user_id: str, expected_token: str) -> bool:
        from firebase_admin import firestore

        ref = self._users().document(user_id)

        @firestore.transactional
        def _clear(transaction) -> bool:
            snap = ref.get(transaction=transaction)
            if not snap.exists or (snap.to_dict() or {}).get(TOKEN_FIELD) != expected_token:
                return False
            transaction.update(ref, {TOKEN_FIELD: None})
            return True

        return _clear(self.client.transaction())


class SqlUserDirectory:
    """Profiles stored in the ``user_notification_profiles`` table."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    @staticmethod
    def _to_profile(row: UserNotificationRecord) -> UserNotificationProfile:
        return UserNotificationProfile(
            user_id=str(row.user_id),
            delivery_token=_text(row.fcm_token),
            timezone=_text(row.timezone),
            schedules=parse_schedules(str(row.user_id), row.schedules),
        )

    def query_users_with_token(self) -> List[UserNotificationProfile]:
        db = self.session_factory()
        try:
            stmt = (
                select(UserNotificationRecord)
                .where(UserNotificationRecord.fcm_token.is_not(None))
                .order_by(UserNotificationRecord.user_id)
            )
            return collect_profiles(db.execute(stmt).scalars(), self._to_profile)
        except Exception as e:
            raise DirectoryQueryError(f"Failed to query users with tokens: {e}") from e
        finally:
            db.close()

    def get_profile(self, user_id: str) -> Optional[UserNotificationProfile]:
        db = self.session_factory()
        try:
            row = db.get(UserNotificationRecord, user_id)
            return self._to_profile(row) if row else None
        except Exception as e:
            raise DirectoryQueryError(f"Failed to read user {user_id}: {e}") from e
        finally:
            db.close()

    def clear_token(self, user_id: str, expected_token: str) -> bool:
        db = self.session_factory()
        try:
            result = db.execute(
                update(UserNotificationRecord)
                .where(UserNotificationRecord.user_id == user_id)
                .where(UserNotificationRecord.fcm_token == expected_token)
                .values(fcm_token=None, updated_at=datetime.now(dt_timezone.utc))
            )
            db.commit()
            return result.rowcount > 0
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


def get_directory(settings: Optional[ReminderSettings] = None) -> UserDirectory:
    """Build the configured directory backend."""
    cfg = settings or default_settings
    if cfg.DIRECTORY_BACKEND == "sql":
        from app.db.session import SessionLocal

        return SqlUserDirectory(SessionLocal)

    from firebase_admin import firestore

    from .gateway import get_gateway

    return FirestoreUserDirectory(firestore.client(get_gateway().app), collection=cfg.USERS_COLLECTION)
