# checkout/utils/retry.py
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type
import requests
import redis

from checkout.domain.errors import TransientAuthorityError
from checkout.utils.settings import RECONCILE_MAX_ATTEMPTS


def http_retry(attempts: int = 3):
    #RequestException covers timeouts and dropped connections, TransientAuthorityError covers 5xx and 429
    return retry(
        reraise=True,
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=0.3, min=0.3, max=3),
        retry=retry_if_exception_type((requests.RequestException, TransientAuthorityError)),
    )


def reconcile_retry():
    return http_retry(attempts=RECONCILE_MAX_ATTEMPTS)


def redis_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(redis.RedisError),
    )
