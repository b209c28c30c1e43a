"""
Storage failure handling.

Database timeouts and connection failures surface as ``Unavailable`` so
callers get a retryable error instead of a hang or a generic 500.
"""
import logging
import time
from functools import wraps

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction

from apps.core.exceptions import Unavailable

logger = logging.getLogger(__name__)


def storage_guard(read_only=False, backoff_seconds=0.05):
    """
    Translate storage failures raised by the wrapped call into ``Unavailable``.

    Args:
        read_only: The wrapped call is an idempotent read. Reads are retried
            ``READ_RETRY_ATTEMPTS`` times before giving up; writes never are.
        backoff_seconds: Base delay between attempts (doubles each retry).

    IntegrityError is left alone; callers map it to a domain error.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            retries = getattr(settings, 'READ_RETRY_ATTEMPTS', 1) if read_only else 0
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except IntegrityError:
                    raise
                except DatabaseError as e:
                    # A retry inside an open atomic block would run on a broken transaction
                    can_retry = attempt < retries and not transaction.get_connection().in_atomic_block
                    logger.warning(
                        f"Storage failure in {func.__name__}: {e.__class__.__name__}",
                        extra={
                            'operation': func.__name__,
                            'attempt': attempt + 1,
                            'will_retry': can_retry,
                        }
                    )
                    if not can_retry:
                        raise Unavailable(
                            details={'operation': func.__name__}
                        ) from e
                    time.sleep(backoff_seconds * (2 ** attempt))
                    attempt += 1
        return wrapper
    return decorator
