# app/repos/settlement_queue.py
import json

import redis

from app.utils.retry import redis_retry
from app.utils.settings import REDIS_URL
from app.utils.logging import get_logger

logger = get_logger(__name__)

PENDING_KEY = "settlements:pending"


class SettlementQueue:
    """
    Kolejka zapłaconych zamówień, których nie udało się zapisać w ledgerze.
    Opróżniana przez task celery (app.tasks.reconcile).
    Element: {"order": <payload zamówienia>, "verified": bool}
    """

    def __init__(self, client: redis.Redis | None = None):
        self.redis = client or redis.Redis.from_url(REDIS_URL, decode_responses=True)

    @redis_retry()
    def push(self, order: dict, verified: bool) -> None:
        self.redis.rpush(PENDING_KEY, json.dumps({"order": order, "verified": verified}))
        logger.info(f"Queued settlement of order {order.get('orderId')} for retry")

    @redis_retry()
    def push_front(self, entry: dict) -> None:
        self.redis.lpush(PENDING_KEY, json.dumps(entry))

    @redis_retry()
    def pop(self) -> dict | None:
        raw = self.redis.lpop(PENDING_KEY)
        return json.loads(raw) if raw else None

    @redis_retry()
    def size(self) -> int:
        return int(self.redis.llen(PENDING_KEY))
