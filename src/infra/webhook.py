"""
Trigger notification webhook.

Every recorded firing can be POSTed to TRIGGER_WEBHOOK_URL. Delivery is
fire-and-forget on a daemon thread: it never delays or fails a trigger.
"""

import logging
import threading
import time
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import httpx

from src.engine.entities import JobView

logger = logging.getLogger(__name__)

# Webhook configuration
WEBHOOK_TIMEOUT_SECONDS = 30
WEBHOOK_MAX_RETRIES = 3
WEBHOOK_RETRY_BASE_DELAY = 1.0  # seconds
WEBHOOK_RETRY_MAX_DELAY = 10.0  # seconds


def build_trigger_payload(view: JobView) -> Dict[str, Any]:
    """
    Build webhook payload for one firing.

    Args:
        view: Job snapshot taken right after the firing was recorded

    Returns:
        Dictionary payload for webhook POST
    """
    return {
        "event": "triggered",
        "job_id": view.job_id,
        "owner_id": view.owner_id,
        "kind": view.kind.value,
        "trigger_count": view.trigger_count,
        "next_fire_time": view.next_fire_time,
        "active": view.active,
        "has_pending_schedule": view.has_pending_schedule,
        "timestamp": datetime.now().isoformat(),
    }


def send_webhook_sync(
    url: str,
    payload: Dict[str, Any],
    timeout: float = WEBHOOK_TIMEOUT_SECONDS,
    max_retries: int = WEBHOOK_MAX_RETRIES,
) -> tuple[bool, Optional[str]]:
    """
    Send webhook notification synchronously with retry logic.

    Args:
        url: Webhook URL to POST to
        payload: JSON body
        timeout: Request timeout in seconds
        max_retries: Maximum number of attempts

    Returns:
        Tuple of (success: bool, error_message: Optional[str])
    """
    last_error: Optional[str] = None
    job_id = str(payload.get("job_id", ""))

    for attempt in range(max_retries):
        try:
            with httpx.Client(timeout=timeout) as client:
                response = client.post(
                    url,
                    json=payload,
                    headers={
                        "Content-Type": "application/json",
                        "User-Agent": "JobEngine/1.0",
                        "X-Job-ID": job_id,
                        "X-Job-Event": payload.get("event", "triggered"),
                    },
                )

                if 200 <= response.status_code < 300:
                    logger.info(
                        f"Webhook sent for job {job_id} "
                        f"(attempt {attempt + 1}/{max_retries}, status={response.status_code})"
                    )
                    return True, None

                last_error = f"HTTP {response.status_code}: {response.text[:200]}"
                logger.warning(
                    f"Webhook failed for job {job_id} "
                    f"(attempt {attempt + 1}/{max_retries}): {last_error}"
                )

        except httpx.TimeoutException:
            last_error = f"Timeout after {timeout}s"
            logger.warning(
                f"Webhook timeout for job {job_id} "
                f"(attempt {attempt + 1}/{max_retries})"
            )

        except httpx.RequestError as e:
            last_error = f"Request error: {str(e)}"
            logger.warning(
                f"Webhook request error for job {job_id} "
                f"(attempt {attempt + 1}/{max_retries}): {e}"
            )

        # Exponential backoff before retry
        if attempt < max_retries - 1:
            delay = min(
                WEBHOOK_RETRY_BASE_DELAY * (2 ** attempt),
                WEBHOOK_RETRY_MAX_DELAY
            )
            logger.debug(f"Retrying webhook in {delay}s...")
            time.sleep(delay)

    logger.error(
        f"Webhook failed after {max_retries} attempts for job {job_id}: {last_error}"
    )
    return False, last_error


def fire_and_forget_webhook(url: str, view: JobView) -> bool:
    """
    Send a trigger notification on a background thread.

    Returns:
        True if the webhook thread was started, False if url was empty
    """
    if not url:
        return False

    payload = build_trigger_payload(view)
    thread = threading.Thread(
        target=send_webhook_sync,
        args=(url, payload),
        daemon=True,  # Daemon thread won't prevent process exit
    )
    thread.start()

    return True


def make_trigger_notifier(url: str) -> Callable[[JobView], None]:
    """Callback for JobEngine.set_on_trigger that posts to `url`."""

    def _notify(view: JobView) -> None:
        fire_and_forget_webhook(url, view)

    return _notify
