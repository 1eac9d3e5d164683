"""
Transaction helpers for swap actions.

- swap_atomic(): transaction.atomic() with a bounded lock wait, so no action
  blocks indefinitely on a locked row.
- retry_on_conflict: re-runs a whole transaction when the database reports a
  serialization failure, deadlock or lock timeout, with capped exponential
  backoff. After the last attempt the failure surfaces as SwapConflictError.
"""

import logging
import math
import random
import time
from contextlib import contextmanager
from functools import wraps

from django.conf import settings
from django.db import DEFAULT_DB_ALIAS, OperationalError, connections, transaction

from .exceptions import SwapConflictError

logger = logging.getLogger(__name__)

# SQLSTATE codes: serialization_failure, deadlock_detected, lock_not_available
RETRYABLE_SQLSTATES = {'40001', '40P01', '55P03'}
# MySQL: ER_LOCK_WAIT_TIMEOUT, ER_LOCK_DEADLOCK
RETRYABLE_MYSQL_CODES = {1205, 1213}
RETRYABLE_MESSAGES = (
    'deadlock',
    'database is locked',
    'database table is locked',
    'lock wait timeout',
    'could not serialize',
    'lock timeout',
)


def is_retryable(exc):
    """
    Return True if an OperationalError is a transient locking failure.

    Checks the driver's SQLSTATE (PostgreSQL) or error number (MySQL) and
    falls back to the message text (SQLite).
    """
    cause = exc.__cause__ or exc
    sqlstate = getattr(cause, 'sqlstate', None) or getattr(cause, 'pgcode', None)
    if sqlstate in RETRYABLE_SQLSTATES:
        return True

    args = getattr(cause, 'args', ())
    if args and isinstance(args[0], int) and args[0] in RETRYABLE_MYSQL_CODES:
        return True

    message = str(exc).lower()
    return any(fragment in message for fragment in RETRYABLE_MESSAGES)


def backoff_delay(attempt):
    """
    Seconds to wait before retry number `attempt` (1-based).

    Exponential from SWAP_TRANSACTION_BASE_DELAY, capped at
    SWAP_TRANSACTION_MAX_DELAY, with +/-25% jitter.
    """
    delay = min(
        settings.SWAP_TRANSACTION_MAX_DELAY,
        settings.SWAP_TRANSACTION_BASE_DELAY * (2 ** (attempt - 1)),
    )
    return delay * random.uniform(0.75, 1.25)


def apply_lock_timeout(using=DEFAULT_DB_ALIAS):
    """
    Bound how long the current transaction waits for row locks.

    SQLite serializes writers itself and uses the connection `timeout` option
    instead.
    """
    timeout_ms = settings.SWAP_LOCK_TIMEOUT_MS
    if not timeout_ms:
        return

    connection = connections[using]
    if connection.vendor == 'postgresql':
        with connection.cursor() as cursor:
            cursor.execute(f"SET LOCAL lock_timeout = {int(timeout_ms)}")
    elif connection.vendor == 'mysql':
        seconds = max(1, math.ceil(timeout_ms / 1000))
        with connection.cursor() as cursor:
            cursor.execute(f"SET SESSION innodb_lock_wait_timeout = {seconds}")


@contextmanager
def swap_atomic(using=DEFAULT_DB_ALIAS):
    """transaction.atomic() with the swap lock timeout applied."""
    with transaction.atomic(using=using):
        apply_lock_timeout(using)
        yield


def retry_on_conflict(func):
    """
    Retry `func` when its transaction fails with a transient locking error.

    Retrying only makes sense for the outermost transaction; inside an
    already open atomic block the error propagates unchanged so the caller's
    transaction can roll back.

    Raises:
        SwapConflictError: When every attempt failed with a retryable error
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        if connections[DEFAULT_DB_ALIAS].in_atomic_block:
            return func(*args, **kwargs)

        max_attempts = max(1, settings.SWAP_TRANSACTION_MAX_ATTEMPTS)
        for attempt in range(1, max_attempts + 1):
            try:
                return func(*args, **kwargs)
            except OperationalError as exc:
                if not is_retryable(exc):
                    raise
                if attempt == max_attempts:
                    logger.warning(
                        f"{func.__name__} gave up after {attempt} attempts: {exc}"
                    )
                    raise SwapConflictError(
                        'The swap request is busy. Please try again.',
                        code='lock_contention',
                    ) from exc
                delay = backoff_delay(attempt)
                logger.warning(
                    f"{func.__name__} hit a transient database error "
                    f"(attempt {attempt}/{max_attempts}), retrying in {delay:.3f}s: {exc}"
                )
                time.sleep(delay)

    return wrapper
