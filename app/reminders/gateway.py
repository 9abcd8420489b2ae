"""
Push gateway client backed by Firebase Cloud Messaging.

The gateway is initialized once per process through ``init_gateway`` which
returns an explicit result (client or ConfigurationError) instead of silently
skipping setup when credentials are absent.
"""
import json
import logging
import os
import threading
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

import firebase_admin
from firebase_admin import credentials, exceptions, messaging

from .config import ReminderSettings, settings as default_settings
from .errors import ConfigurationError, GatewayError
from .schemas import PushPayload

logger = logging.getLogger(__name__)

FIREBASE_APP_NAME = "nutritrack-reminders"
TOKEN_CHECK_DATA = {"type": "token_check"}


class PushGateway(Protocol):
    def send(self, token: str, payload: PushPayload, dry_run: bool = False) -> str:
        """Send one message; raise GatewayError on rejection."""
        ...

    def probe(self, token: str) -> str:
        """Validate a token with a dry-run send that displays nothing."""
        ...


def build_message(token: str, payload: PushPayload) -> messaging.Message:
    hints = payload.displayHints
    link = payload.data.get("deepLink")
    return messaging.Message(
        token=token,
        notification=messaging.Notification(title=payload.title, body=payload.body),
        data={k: str(v) for k, v in payload.data.items()},
        webpush=messaging.WebpushConfig(
            notification=messaging.WebpushNotification(
                icon=hints.icon,
                badge=hints.badge,
                vibrate=list(hints.vibrate),
            ),
            fcm_options=messaging.WebpushFCMOptions(link=link) if link else None,
        ),
    )


def to_gateway_error(exc: Exception) -> GatewayError:
    """Normalize a firebase_admin error into a GatewayError with an FCM-style code."""
    text = str(exc)
    if isinstance(exc, messaging.UnregisteredError):
        return GatewayError("registration-token-not-registered", text)
    if isinstance(exc, exceptions.InvalidArgumentError) and "registration token" in text.lower():
        return GatewayError("invalid-registration-token", text)
    if isinstance(exc, exceptions.FirebaseError):
        code = str(exc.code or "unknown").lower().replace("_", "-")
        return GatewayError(code, text)
    # SDK-side validation (e.g. empty token) raises ValueError before any request
    if isinstance(exc, ValueError) and "token" in text.lower():
        return GatewayError("invalid-registration-token", text)
    return GatewayError("unknown", text)


class FirebasePushGateway:
    def __init__(self, app: firebase_admin.App):
        self.app = app

    def send(self, token: str, payload: PushPayload, dry_run: bool = False) -> str:
        try:
            return messaging.send(build_message(token, payload), dry_run=dry_run, app=self.app)
        except (exceptions.FirebaseError, ValueError) as e:
            raise to_gateway_error(e) from e

    def probe(self, token: str) -> str:
        message = messaging.Message(token=token, data=dict(TOKEN_CHECK_DATA))
        try:
            return messaging.send(message, dry_run=True, app=self.app)
        except (exceptions.FirebaseError, ValueError) as e:
            raise to_gateway_error(e) from e


@dataclass(frozen=True)
class GatewayInit:
    """Result of gateway startup: exactly one of client / error is set."""
    client: Optional[FirebasePushGateway] = None
    error: Optional[ConfigurationError] = None

    @property
    def ok(self) -> bool:
        return self.client is not None

    def unwrap(self) -> FirebasePushGateway:
        if self.client is None:
            raise self.error or ConfigurationError("Push gateway not initialized")
        return self.client


def _credentials_source(cfg: ReminderSettings) -> Optional[str]:
    for value in (
        cfg.FCM_CREDENTIALS_JSON,
        os.getenv("FIREBASE_SERVICE_ACCOUNT"),
        os.getenv("GOOGLE_APPLICATION_CREDENTIALS_JSON"),
        os.getenv("GOOGLE_APPLICATION_CREDENTIALS"),
    ):
        if value and value.strip():
            return value.strip()
    return None


def _load_credential(cfg: ReminderSettings) -> credentials.Base:
    source = _credentials_source(cfg)
    if source is None:
        if cfg.FCM_PROJECT_ID:
            logger.info("[FCM] No service account provided; using application default credentials")
            return credentials.ApplicationDefault()
        raise ConfigurationError("FCM credentials not configured (REMINDER_FCM_CREDENTIALS_JSON / FIREBASE_SERVICE_ACCOUNT)")

    if source.startswith("{"):
        try:
            info: Dict = json.loads(source)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"FCM credentials JSON is malformed: {e}") from e
        if not info.get("project_id"):
            raise ConfigurationError("FCM credentials JSON has no project_id")
        try:
            return credentials.Certificate(info)
        except ValueError as e:
            raise ConfigurationError(f"FCM credentials rejected: {e}") from e

    if not os.path.exists(source):
        raise ConfigurationError(f"FCM credentials file not found: {source}")
    try:
        return credentials.Certificate(source)
    except (ValueError, IOError) as e:
        raise ConfigurationError(f"FCM credentials rejected: {e}") from e


def init_gateway(settings: Optional[ReminderSettings] = None) -> GatewayInit:
    """Initialize the Firebase app and wrap it in a gateway client."""
    cfg = settings or default_settings
    try:
        return GatewayInit(client=FirebasePushGateway(firebase_admin.get_app(FIREBASE_APP_NAME)))
    except ValueError:
        pass

    try:
        cred = _load_credential(cfg)
    except ConfigurationError as e:
        logger.error("[FCM] %s", e)
        return GatewayInit(error=e)

    options = {"projectId": cfg.FCM_PROJECT_ID} if cfg.FCM_PROJECT_ID else None
    try:
        app = firebase_admin.initialize_app(cred, options=options, name=FIREBASE_APP_NAME)
    except (ValueError, exceptions.FirebaseError) as e:
        logger.error("[FCM] Failed to initialize Firebase app: %r", e)
        return GatewayInit(error=ConfigurationError(f"Firebase initialization failed: {e}"))

    logger.info("✅ [FCM] Firebase app initialized | project_id=%s", app.project_id)
    return GatewayInit(client=FirebasePushGateway(app))


_gateway_init: Optional[GatewayInit] = None
_gateway_lock = threading.Lock()


def get_gateway() -> FirebasePushGateway:
    """Process-wide gateway client. Raises ConfigurationError if unavailable."""
    global _gateway_init
    with _gateway_lock:
        if _gateway_init is None:
            _gateway_init = init_gateway()
        return _gateway_init.unwrap()
