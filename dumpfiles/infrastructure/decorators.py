"""
Infrastructure-specific retry helpers for reading small remote resources
(listings and probes) that may fail transiently after being opened.

Fetchers never retry on their own; callers opt in through these helpers.
"""

import logging

from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..application.exceptions import ReadFailureError

logger = logging.getLogger(__name__)

# --- Defaults for Retry Logic ---
_RETRY_ATTEMPTS = 3
_RETRY_MIN_WAIT_SECONDS = 1
_RETRY_MAX_WAIT_SECONDS = 10


def _log_before_retry(retry_state):
    """Log the retry attempt with details about the exception and wait time."""
    exception = retry_state.outcome.exception()
    next_attempt_in = retry_state.next_action.sleep
    logger.warning(
        f"Retrying in {next_attempt_in:.2f}s due to "
        f"{type(exception).__name__}: {exception} "
        f"(attempt {retry_state.attempt_number})..."
    )


def retrying_on_read_failure(
    attempts: int = _RETRY_ATTEMPTS,
    min_wait: float = _RETRY_MIN_WAIT_SECONDS,
    max_wait: float = _RETRY_MAX_WAIT_SECONDS,
) -> Retrying:
    """
    Builds a retry controller for operations that may raise ReadFailureError.

    Not-found and wrong-accessor errors are never retried. After the last
    attempt the original ReadFailureError is re-raised.
    """
    return Retrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(ReadFailureError),
        before_sleep=_log_before_retry,
        reraise=True,
    )
