"""
Retry classification and wait-time policy for GitHub API calls.
"""

import time
from typing import Optional, Union

# Attempts per logical call (first try included)
MAX_RETRIES = 3

BACKOFF_BASE = 1.0
RATE_LIMIT_FALLBACK = 60.0
MIN_RATE_LIMIT_WAIT = 1.0

RATE_LIMIT_RESET_HEADER = "X-RateLimit-Reset"

# Matched case-insensitively against the text of a transport-level exception.
# The first five are the canonical set; the rest are how the same conditions
# read when raised by requests/urllib3/http.client.
TRANSIENT_ERROR_MARKERS = (
    "connection refused",
    "connection reset",
    "i/o timeout",
    "handshake timeout",
    "unexpected end of stream",
    "unexpected eof",
    "timed out",
    "incompleteread",
    "remote end closed connection",
)


def is_transient_error(error: Optional[BaseException]) -> bool:
    """Return True if a transport failure looks temporary and is safe to retry.

    Only the error description is inspected, so HTTP status handling stays in the
    executor. ``None`` is never transient.
    """
    if error is None:
        return False
    message = str(error).lower()
    return any(marker in message for marker in TRANSIENT_ERROR_MARKERS)


def backoff_delay(attempt: int, base: float = BACKOFF_BASE) -> float:
    """Exponential backoff for the zero-based retry index: 1s, 2s, 4s, 8s, ..."""
    return base * (2 ** attempt)


def rate_limit_delay(reset_header: Optional[Union[str, int]], now: Optional[float] = None) -> float:
    """Seconds to wait after a 429, derived from the ``X-RateLimit-Reset`` header.

    Args:
        reset_header: Raw header value, a Unix timestamp in seconds
        now: Current Unix time; defaults to ``time.time()``

    Returns:
        ``reset - now`` floored at one second, or ``RATE_LIMIT_FALLBACK`` when the
        header is missing or not an integer
    """
    if reset_header is None or reset_header == "":
        return RATE_LIMIT_FALLBACK
    try:
        reset_time = int(reset_header)
    except (TypeError, ValueError):
        return RATE_LIMIT_FALLBACK

    if now is None:
        now = time.time()
    return max(reset_time - now, MIN_RATE_LIMIT_WAIT)
