from typing import Optional

from celery import shared_task
from celery.utils.log import get_logger

from .config import settings
from .directory import get_directory
from .errors import ConfigurationError, DirectoryQueryError
from .gateway import get_gateway
from .jobs import run_reminder_scan, run_token_sweep

logger = get_logger(__name__)


# scans only match within their own minute
@shared_task(name="reminders.scan_and_dispatch", time_limit=max(settings.SCAN_INTERVAL_SECONDS, 30))
def scan_and_dispatch_task() -> Optional[dict]:
    """Scan for due meal reminders and push them. Returns the run summary."""
    try:
        summary = run_reminder_scan(get_gateway(), get_directory())
    except (ConfigurationError, DirectoryQueryError) as e:
        # No caller to report to; next beat retries
        logger.error("❌ [Reminders] Scan skipped: %s", e)
        return None
    logger.info(
        "🔔 [Reminders] Scan at %s: %s sent, %s failed",
        summary["time"], summary["sent"], summary["failed"],
    )
    return summary


@shared_task(name="reminders.cleanup_tokens")
def cleanup_tokens_task() -> Optional[dict]:
    """Probe every stored token and clear those rejected permanently."""
    try:
        return run_token_sweep(get_gateway(), get_directory())
    except (ConfigurationError, DirectoryQueryError) as e:
        logger.error("❌ [Sweep] Token cleanup skipped: %s", e)
        return None
