import hmac
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query
from pydantic import BaseModel, Field

from .config import settings
from .directory import UserDirectory, get_directory
from .errors import AuthorizationError
from .gateway import PushGateway, get_gateway
from .jobs import run_reminder_scan, run_token_sweep, send_test_notification


def verify_cron_secret(
    x_cron_secret: Optional[str] = Header(None),
    key: Optional[str] = Query(None),
) -> bool:
    """Compare the x-cron-secret header (or ?key=) with the configured secret, if any."""
    expected = settings.CRON_SECRET
    if not expected:
        return True
    provided = x_cron_secret or key or ""
    if not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        raise AuthorizationError("Unauthorized")
    return True


def gateway_dependency() -> PushGateway:
    return get_gateway()


def directory_dependency() -> UserDirectory:
    return get_directory()


class NotificationTestBody(BaseModel):
    user_id: str = Field(..., min_length=1)


router = APIRouter()
protected = APIRouter(dependencies=[Depends(verify_cron_secret)])


@protected.api_route("/send-notifications", methods=["GET", "POST"])
def send_notifications_endpoint(
    gateway: PushGateway = Depends(gateway_dependency),
    directory: UserDirectory = Depends(directory_dependency),
):
    return run_reminder_scan(gateway, directory)


@protected.api_route("/cleanup-tokens", methods=["GET", "POST"])
def cleanup_tokens_endpoint(
    gateway: PushGateway = Depends(gateway_dependency),
    directory: UserDirectory = Depends(directory_dependency),
):
    return run_token_sweep(gateway, directory)


@protected.post("/test-notification")
def test_notification_endpoint(
    body: NotificationTestBody,
    gateway: PushGateway = Depends(gateway_dependency),
    directory: UserDirectory = Depends(directory_dependency),
):
    return send_test_notification(body.user_id, gateway, directory)


@router.get("/health")
def health_check():
    return {"status": "healthy", "service": "reminders"}


router.include_router(protected)
