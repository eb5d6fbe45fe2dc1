# storefront/utils/retry.py
import logging

import redis
import requests
from tenacity import (
    Retrying,
    before_sleep_log,
    retry,
    retry_if_exception,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential,
    wait_fixed,
)

from storefront.utils.settings import GATEWAY_READ_ATTEMPTS, REDIS_ATTEMPTS, LOCK_POLL_SECONDS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def _transient_http(exc: BaseException) -> bool:
    """Network failures and 5xx answers; a 4xx will not change on retry."""
    if isinstance(exc, (requests.ConnectionError, requests.Timeout)):
        return True
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        return exc.response.status_code >= 500
    return False


def gateway_read_retry():
    # reads only, payment mutations are never retried
    return retry(
        reraise=True,
        stop=stop_after_attempt(GATEWAY_READ_ATTEMPTS),
        wait=wait_exponential(multiplier=0.3, min=0.3, max=3),
        retry=retry_if_exception(_transient_http),
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )


def redis_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(REDIS_ATTEMPTS),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(redis.RedisError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )


def lock_poll(wait: float) -> Retrying:
    """Poll a ``bool`` returning acquire until it succeeds or ``wait`` seconds pass; gives False on timeout."""
    return Retrying(
        stop=stop_after_delay(wait),
        wait=wait_fixed(LOCK_POLL_SECONDS),
        retry=retry_if_result(lambda acquired: not acquired),
        retry_error_callback=lambda state: False,
    )
