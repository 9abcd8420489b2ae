"""Pytest fixtures and fakes for the reminder engine tests."""

import threading
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

import pytest

from app.reminders.errors import GatewayError
from app.reminders.schemas import PushPayload, ScheduleEntry, UserNotificationProfile


class FakeGateway:
    """Scriptable push gateway.

    ``errors`` maps a token to the gateway error code its sends fail with;
    ``delays`` maps a token to seconds to sleep before answering.
    """

    def __init__(self, errors: Optional[Dict[str, str]] = None, delays: Optional[Dict[str, float]] = None):
        self.errors = dict(errors or {})
        self.delays = dict(delays or {})
        self.sent: List[Tuple[str, PushPayload, bool]] = []
        self.probed: List[str] = []
        self._lock = threading.Lock()

    def _answer(self, token: str) -> str:
        delay = self.delays.get(token)
        if delay:
            time.sleep(delay)
        code = self.errors.get(token)
        if code:
            raise GatewayError(code, f"rejected {token}")
        return f"projects/test/messages/{token}"

    def send(self, token: str, payload: PushPayload, dry_run: bool = False) -> str:
        with self._lock:
            self.sent.append((token, payload, dry_run))
        return self._answer(token)

    def probe(self, token: str) -> str:
        with self._lock:
            self.probed.append(token)
        return self._answer(token)


class InMemoryDirectory:
    """User directory over a dict of profiles; records every clear_token call."""

    def __init__(self, profiles: List[UserNotificationProfile]):
        self.profiles = {p.user_id: p for p in profiles}
        self.clear_calls: List[Tuple[str, str]] = []
        self._lock = threading.Lock()

    def query_users_with_token(self) -> List[UserNotificationProfile]:
        return [p.model_copy(deep=True) for p in self.profiles.values() if p.has_token]

    def get_profile(self, user_id: str) -> Optional[UserNotificationProfile]:
        p = self.profiles.get(user_id)
        return p.model_copy(deep=True) if p else None

    def clear_token(self, user_id: str, expected_token: str) -> bool:
        with self._lock:
            self.clear_calls.append((user_id, expected_token))
            p = self.profiles.get(user_id)
            if p is None or p.delivery_token != expected_token:
                return False
            self.profiles[user_id] = p.model_copy(update={"delivery_token": None})
            return True


def make_profile(user_id: str, token: Optional[str] = "tok", timezone_name: Optional[str] = "Europe/Paris", schedules=None) -> UserNotificationProfile:
    return UserNotificationProfile(
        user_id=user_id,
        delivery_token=token,
        timezone=timezone_name,
        schedules=[ScheduleEntry(**s) for s in (schedules or [])],
    )


@pytest.fixture
def march_first_7utc():
    """2024-03-01T07:00:00Z, i.e. 08:00 in Paris (UTC+1 before DST)."""
    return datetime(2024, 3, 1, 7, 0, tzinfo=timezone.utc)


@pytest.fixture
def breakfast_profile():
    return make_profile(
        "user-paris",
        token="token-paris",
        schedules=[{"id": "breakfast", "enabled": True, "time": "08:00"}],
    )
