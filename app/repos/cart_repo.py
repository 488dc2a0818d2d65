# app/repos/cart_repo.py
import json

import redis

from app.domain.cart import Cart
from app.utils.retry import redis_retry
from app.utils.settings import REDIS_URL, CART_TTL_SECONDS
from app.utils.logging import get_logger

logger = get_logger(__name__)


class CartRepo:
    """
    Koszyk sesji trzymany w redisie jako JSON pod kluczem cart:<session_id>.
    TTL odświeżany przy każdym zapisie.
    """

    def __init__(self, client: redis.Redis | None = None, ttl: int = CART_TTL_SECONDS):
        self.redis = client or redis.Redis.from_url(REDIS_URL, decode_responses=True)
        self.ttl = ttl

    @staticmethod
    def _key(session_id: str) -> str:
        return f"cart:{session_id}"

    @redis_retry()
    def load(self, session_id: str) -> Cart:
        raw = self.redis.get(self._key(session_id))
        if not raw:
            return Cart()
        return Cart.from_dict(json.loads(raw))

    @redis_retry()
    def save(self, session_id: str, cart: Cart) -> None:
        key = self._key(session_id)
        if cart.is_empty():
            self.redis.delete(key)
            return
        self.redis.set(name=key, value=json.dumps(cart.to_dict()), ex=self.ttl)
        logger.info(f"Saved cart {key} with {len(cart.lines)} lines")

    @redis_retry()
    def delete(self, session_id: str) -> None:
        self.redis.delete(self._key(session_id))
