"""Retry strategies for collaborator calls."""

import logging

import aiosmtplib
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

logger = logging.getLogger(__name__)

# Transient failures worth another attempt when sending mail
TRANSIENT_SMTP_ERRORS = (
    ConnectionError,
    TimeoutError,
    aiosmtplib.SMTPConnectError,
    aiosmtplib.SMTPServerDisconnected,
    aiosmtplib.SMTPTimeoutError,
)


def get_notification_retry(attempts: int = 3, min_wait: float = 1.0, max_wait: float = 8.0):
    """
    Get retry strategy for best-effort notification dispatch.

    Only transient transport errors are retried; the last error is re-raised
    so the caller can log it.

    Args:
        attempts: Total number of attempts including the first
        min_wait: Minimum backoff in seconds
        max_wait: Maximum backoff in seconds

    Returns:
        Retry decorator configured for SMTP transport errors
    """
    return retry(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait) + wait_random(0, 1),
        retry=retry_if_exception_type(TRANSIENT_SMTP_ERRORS),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
