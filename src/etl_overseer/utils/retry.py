from tenacity import retry, stop_after_attempt, wait_exponential, wait_random, retry_if_exception_type
from functools import wraps
import logging

import pymysql

# Connection-level failures only. Statements are never retried, a retried load could insert rows twice.
TRANSIENT_ERRORS = (pymysql.err.OperationalError, ConnectionError, TimeoutError)

def create_retry_decorator(logger: logging.Logger, attempts=3, wait=None, retry_on=TRANSIENT_ERRORS):
    """Create a retry decorator with logging for transient errors."""

    if wait is None:
        wait = wait_exponential(multiplier=1, min=4, max=16) + wait_random(0, 2)  # 4s → 16s delays after failures + jitter (random wait).

    def retry_decorator(func):
        @wraps(func)
        @retry(
            stop=stop_after_attempt(attempts),
            wait=wait,
            retry=retry_if_exception_type(retry_on),
            before_sleep=lambda retry_state: logger.warning(
                f"Retrying {func.__name__} after {retry_state.outcome.exception()} (attempt {retry_state.attempt_number})"
                ),
            reraise=True
            )
        def wrapper(*args, **kwargs):
            return func(*args, **kwargs)
        return wrapper

    return retry_decorator
