"""
Bounded retry for flaky RPC and API calls.
"""

import logging
import time

from .errors import MaxRetriesExceeded

logger = logging.getLogger("Retry")

NONCE_ERROR_CODES = ("NONCE_EXPIRED", "REPLACEMENT_UNDERPRICED")
NONCE_ERROR_MARKERS = ("nonce", "replacement fee", "replacement transaction underpriced")


def is_nonce_error(error):
    """True for nonce collisions and underpriced replacements."""
    if isinstance(error, MaxRetriesExceeded):
        return False
    code = getattr(error, "code", None)
    if code in NONCE_ERROR_CODES:
        return True
    message = str(error).lower()
    return any(marker in message for marker in NONCE_ERROR_MARKERS)


def retry(attempts, fn, delay=1.0, retry_if=None, sleep=time.sleep):
    """
    Call `fn` up to `attempts` times.

    With `retry_if`, only matching errors are retried and the wait grows
    linearly (delay * attempt). Without it, every error is retried after a
    fixed `delay`. The last error is re-raised.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    for i in range(attempts):
        try:
            return fn()
        except Exception as e:
            if i == attempts - 1:
                raise
            if retry_if is not None:
                if not retry_if(e):
                    raise
                wait = delay * (i + 1)
            else:
                wait = delay
            logger.info(f"🔁 Attempt {i + 1}/{attempts} failed ({e}). Retrying in {wait}s...")
            sleep(wait)
