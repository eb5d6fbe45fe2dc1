import uuid
from contextlib import contextmanager

import redis
from redis.exceptions import RedisError

from storefront.domain.errors import Conflict, InternalError
from storefront.utils.retry import redis_retry, lock_poll
from storefront.utils.settings import (
    REDIS_URL,
    REDIS_SOCKET_TIMEOUT,
    LOCK_TTL_SECONDS,
    LOCK_WAIT_SECONDS,
)
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

# compare-and-delete: only the holder's token may release the key
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""


def cart_lock_key(user_id: int) -> str:
    return f"cart:{user_id}:lock"


def order_lock_key(order_id: str) -> str:
    return f"order:{order_id}:lock"


class LockService:
    """
    Per-key write serialization.
    - acquire: SET NX EX, the TTL frees keys of crashed holders
    - release: atomic compare-and-delete in Lua
    - hold: bounded wait, then Conflict
    """

    def __init__(self, url: str | None = None, client: redis.Redis | None = None):
        self.redis = client or redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
            socket_timeout=REDIS_SOCKET_TIMEOUT,
            socket_connect_timeout=REDIS_SOCKET_TIMEOUT,
        )

    @redis_retry()
    def acquire(self, key: str, token: str, ttl: int) -> bool:
        return bool(self.redis.set(name=key, value=token, nx=True, ex=ttl))

    @redis_retry()
    def release(self, key: str, token: str) -> bool:
        res = self.redis.eval(_RELEASE_LUA, 1, key, token)
        return bool(res)

    def _acquire_within(self, key: str, token: str, ttl: int, wait: float) -> bool:
        return lock_poll(wait)(self.acquire, key, token, ttl)

    @contextmanager
    def hold(self, key: str, ttl: int = LOCK_TTL_SECONDS, wait: float = LOCK_WAIT_SECONDS):
        token = uuid.uuid4().hex
        try:
            acquired = self._acquire_within(key, token, ttl, wait)
        except RedisError as e:
            logger.error(f"Lock backend unavailable for {key}: {e}")
            raise InternalError("Lock backend unavailable") from e

        if not acquired:
            logger.warning(f"Lock {key} still busy after {wait}s")
            raise Conflict("Resource is being modified by another request, retry later")

        try:
            yield token
        finally:
            try:
                self.release(key, token)
            except RedisError as e:
                # the TTL will free the key
                logger.warning(f"Failed to release lock {key}: {e}")
