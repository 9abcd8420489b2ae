import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from .directory import UserDirectory
from .dispatcher import SendOutcome, clear_invalid_token, fan_out, settle
from .errors import SweepProbeFailure
from .gateway import PushGateway
from .metrics import token_sweeps_total
from .schemas import UserNotificationProfile

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    cleaned: int = 0
    probed: int = 0
    failures: List[SweepProbeFailure] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "cleaned": self.cleaned,
            "probed": self.probed,
            "failures": [f.to_dict() for f in self.failures],
        }


def sweep(
    profiles: Iterable[UserNotificationProfile],
    gateway: PushGateway,
    directory: UserDirectory,
    max_workers: Optional[int] = None,
) -> SweepReport:
    """Dry-run every stored token and clear the ones the gateway rejects permanently."""
    candidates = [p for p in profiles if p.has_token]
    report = SweepReport(probed=len(candidates))
    token_sweeps_total.inc()

    def _probe(profile: UserNotificationProfile) -> SendOutcome:
        return settle(lambda: gateway.probe(profile.delivery_token))

    outcomes = fan_out(candidates, _probe, max_workers)

    for profile, outcome in zip(candidates, outcomes):
        if outcome.ok:
            continue
        report.failures.append(
            SweepProbeFailure(
                user_id=profile.user_id,
                reason=outcome.reason,
                code=outcome.code,
                message=outcome.error,
            )
        )
        if not outcome.reason.is_permanent:
            logger.warning("[Sweep] Probe failed for user %s (transient): %s", profile.user_id, outcome.code)
            continue
        if clear_invalid_token(directory, profile.user_id, profile.delivery_token, source="sweep"):
            report.cleaned += 1

    logger.info("[Sweep] Token cleanup complete. Removed %s invalid tokens out of %s", report.cleaned, report.probed)
    return report
