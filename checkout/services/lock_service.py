# checkout/services/lock_service.py
import redis
from checkout.utils.retry import redis_retry
from checkout.utils.settings import REDIS_URL
from checkout.utils.logging import get_logger

logger = get_logger(__name__)

#compare-and-delete in one script, nobody can slip in between GET and DEL
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""


class LockService:
    """
    -one checkout attempt per cart session across worker processes
    -lock value is the attempt id, only the owner can release it
    -TTL so an abandoned attempt frees the session on its own
    """

    def __init__(self, url: str | None = None, client: redis.Redis | None = None):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @staticmethod
    def _key(session_id: str) -> str:
        return f"checkout:{session_id}:lock"

    @redis_retry()
    def acquire_checkout_lock(self, session_id: str, attempt_id: str, ttl: int) -> bool:
        key = self._key(session_id)
        logger.info(f"Acquire lock {key} for attempt {attempt_id}")
        #SET checkout:abc:lock "<attempt>" NX EX 1800
        return bool(
            self.redis.set(
                name=key,
                value=attempt_id,
                nx=True,
                ex=ttl,
            )
        )

    @redis_retry()
    def release_checkout_lock(self, session_id: str, attempt_id: str) -> bool:
        key = self._key(session_id)
        logger.info(f"Release lock {key} for attempt {attempt_id}")
        res = self.redis.eval(_RELEASE_LUA, 1, key, attempt_id)
        return bool(res)

    @redis_retry()
    def lock_owner(self, session_id: str) -> str | None:
        return self.redis.get(self._key(session_id))
