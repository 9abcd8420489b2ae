"""
Error taxonomy for the reminder engine.

Invocation-wide failures are raised (configuration, authorization, directory).
Per-message failures are never raised past the dispatch join: they are
classified and recorded as report entries (see ``DispatchFailure`` and
``SweepProbeFailure``).
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ReminderError(Exception):
    """Base class for reminder engine errors."""


class ConfigurationError(ReminderError):
    """Push gateway credentials missing or invalid."""


class AuthorizationError(ReminderError):
    """Trigger secret mismatch."""


class DirectoryQueryError(ReminderError):
    """The user population could not be read."""


class ProfileNotFoundError(ReminderError):
    pass


class MissingTokenError(ReminderError):
    pass


class GatewayError(ReminderError):
    """A single gateway send was rejected.

    ``code`` uses the FCM error code form without the ``messaging/`` prefix,
    e.g. ``registration-token-not-registered``.
    """

    def __init__(self, code: str, message: str = ""):
        self.code = code
        self.message = message or code
        super().__init__(f"{code}: {self.message}")


class FailureReason(str, Enum):
    TOKEN_INVALID = "token-invalid"
    OTHER_TRANSIENT = "other-transient"

    @property
    def is_permanent(self) -> bool:
        return self is FailureReason.TOKEN_INVALID


PERMANENT_TOKEN_CODES = frozenset({
    "registration-token-not-registered",
    "invalid-registration-token",
})


def classify_error(code: Optional[str]) -> FailureReason:
    """Map a gateway error code to a failure reason."""
    if not code:
        return FailureReason.OTHER_TRANSIENT
    normalized = code.strip().lower()
    if normalized.startswith("messaging/"):
        normalized = normalized[len("messaging/"):]
    if normalized in PERMANENT_TOKEN_CODES:
        return FailureReason.TOKEN_INVALID
    return FailureReason.OTHER_TRANSIENT


@dataclass(frozen=True)
class DispatchFailure:
    """Report entry for one failed reminder send."""
    user_id: str
    reason: FailureReason
    code: str
    message: str = ""
    meal_type: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "reason": self.reason.value,
            "code": self.code,
            "message": self.message,
            "meal_type": self.meal_type,
        }


@dataclass(frozen=True)
class SweepProbeFailure:
    """Report entry for one failed dry-run token probe."""
    user_id: str
    reason: FailureReason
    code: str
    message: str = ""

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "reason": self.reason.value,
            "code": self.code,
            "message": self.message,
        }
