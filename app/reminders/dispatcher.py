"""
Concurrent fan-out of reminder sends.

Every request is sent independently on a thread pool and the call joins on all
outcomes; a failing or slow send never aborts the others. Failures are
classified, counted and returned in the report, never raised.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Tuple, TypeVar

from .config import settings
from .directory import UserDirectory
from .errors import DispatchFailure, FailureReason, GatewayError, classify_error
from .gateway import PushGateway
from .metrics import reminders_dispatch_failed_total, reminders_dispatch_success_total, tokens_cleared_total
from .schemas import DispatchRequest

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class SendOutcome:
    """Settled result of one send: either a message id or a classified error."""
    message_id: Optional[str] = None
    reason: Optional[FailureReason] = None
    code: str = ""
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.reason is None


@dataclass
class DispatchReport:
    sent: int = 0
    failed: int = 0
    total: int = 0
    cleared: int = 0
    failures: List[DispatchFailure] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "sent": self.sent,
            "failed": self.failed,
            "total": self.total,
            "cleared": self.cleared,
            "failures": [f.to_dict() for f in self.failures],
        }


def settle(call: Callable[[], str]) -> SendOutcome:
    """Run one gateway call and convert any error into a SendOutcome."""
    try:
        return SendOutcome(message_id=call())
    except GatewayError as e:
        return SendOutcome(reason=classify_error(e.code), code=e.code, error=e.message)
    except Exception as e:
        return SendOutcome(reason=FailureReason.OTHER_TRANSIENT, code="unknown", error=repr(e))


def fan_out(items: List[T], worker: Callable[[T], R], max_workers: Optional[int] = None) -> List[R]:
    """Apply worker to every item concurrently; results keep input order.

    ``worker`` must not raise (wrap calls with ``settle``).
    """
    if not items:
        return []
    width = min(max_workers or settings.DISPATCH_MAX_WORKERS, len(items))
    with ThreadPoolExecutor(max_workers=width, thread_name_prefix="reminder-send") as pool:
        return list(pool.map(worker, items))


def clear_invalid_token(directory: UserDirectory, user_id: str, token: str, source: str) -> bool:
    try:
        cleared = directory.clear_token(user_id, token)
    except Exception as e:
        logger.warning("[Directory] Failed to clear token for user %s: %s", user_id, e)
        return False
    if cleared:
        tokens_cleared_total.labels(source=source).inc()
        logger.info("[Directory] Cleared invalid token for user %s", user_id)
    return cleared


def dispatch_all(
    requests: Iterable[DispatchRequest],
    gateway: PushGateway,
    directory: Optional[UserDirectory] = None,
    max_workers: Optional[int] = None,
) -> DispatchReport:
    """Send every request and collect a report of all outcomes.

    When ``directory`` is given, tokens rejected as permanently invalid are
    cleared right away (conditional on the token being unchanged).
    """
    batch = list(requests)
    report = DispatchReport(total=len(batch))

    def _send(req: DispatchRequest) -> SendOutcome:
        return settle(lambda: gateway.send(req.token, req.payload))

    outcomes = fan_out(batch, _send, max_workers)

    invalid_tokens: List[Tuple[str, str]] = []
    for req, outcome in zip(batch, outcomes):
        if outcome.ok:
            report.sent += 1
            reminders_dispatch_success_total.inc()
            continue

        report.failed += 1
        reminders_dispatch_failed_total.labels(reason=outcome.reason.value).inc()
        report.failures.append(
            DispatchFailure(
                user_id=req.user_id,
                reason=outcome.reason,
                code=outcome.code,
                message=outcome.error,
                meal_type=req.payload.data.get("mealType"),
            )
        )
        logger.warning(
            "[Dispatch] Failed to send to user %s token %s...: %s (%s)",
            req.user_id, req.token[:20], outcome.code, outcome.reason.value,
        )
        if outcome.reason.is_permanent and (req.user_id, req.token) not in invalid_tokens:
            invalid_tokens.append((req.user_id, req.token))

    if directory is not None:
        for user_id, token in invalid_tokens:
            if clear_invalid_token(directory, user_id, token, source="dispatch"):
                report.cleared += 1

    logger.info("[Dispatch] Notifications sent: %s success, %s failed", report.sent, report.failed)
    return report
