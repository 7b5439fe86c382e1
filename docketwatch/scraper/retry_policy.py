from __future__ import annotations

from typing import Optional

from .error_codes import ErrorCode
from .logging_utils import _scraper_event

RETRYABLE_ERROR_CODES = {
    ErrorCode.NETWORK,
}

NON_RETRYABLE_ERROR_CODES = {
    # The fetch timeout is already a generous ceiling.
    ErrorCode.TIMEOUT,
    ErrorCode.HTTP_401,
    ErrorCode.HTTP_403,
    ErrorCode.HTTP_404,
    ErrorCode.HTTP_4XX,
    ErrorCode.SITE_ERROR,
    ErrorCode.SITE_STRUCTURE,
    ErrorCode.CONFIG,
    ErrorCode.CORRUPT_STATE,
}


def compute_backoff_seconds(attempt_index: int) -> float:
    """Return a capped exponential backoff for the given attempt (1-based)."""

    return float(min(2 ** max(0, attempt_index - 1), 30))


def decide_retry(
    attempt_index: int,
    max_attempts: int,
    error: BaseException | None = None,
    *,
    error_code: Optional[str] = None,
) -> bool:
    """Decide whether a failed request attempt should be retried."""

    code = (error_code or "").strip()

    if attempt_index >= max_attempts:
        kind, will_retry = "capped", False
    elif code in NON_RETRYABLE_ERROR_CODES:
        kind, will_retry = "non_retryable", False
    elif code in RETRYABLE_ERROR_CODES:
        kind, will_retry = "retryable", True
    else:
        kind, will_retry = ("unknown" if code else "missing_error_code"), False

    _scraper_event(
        "state",
        phase="retry_decision",
        kind=kind,
        error_code=code or None,
        attempt=attempt_index,
        max_attempts=max_attempts,
        will_retry=will_retry,
        error_repr=repr(error) if error is not None else None,
    )
    return will_retry


__all__ = ["decide_retry", "compute_backoff_seconds", "NON_RETRYABLE_ERROR_CODES"]
