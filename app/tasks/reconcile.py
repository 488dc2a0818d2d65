# app/tasks/reconcile.py
from pydantic import ValidationError as PayloadError

from app.celery_worker import celery_app
from app.data.database import SessionLocal
from app.domain.errors import CheckoutError, PersistenceFailed
from app.domain.schemas import OrderIn
from app.repos.settlement_queue import SettlementQueue
from app.services.order_service import OrderService
from app.utils.logging import get_logger

logger = get_logger(__name__)

MAX_BATCH = 100


def drain_pending_settlements(queue: SettlementQueue, db) -> int:
    """Zapisuje zaległe rozliczenia, zwraca liczbę zapisanych."""
    ledger = OrderService(db)
    saved = 0

    for _ in range(MAX_BATCH):
        entry = queue.pop()
        if entry is None:
            break

        try:
            order = OrderIn.model_validate(entry["order"])
        except (KeyError, PayloadError) as e:
            logger.error(f"Dropping malformed settlement entry: {e}")
            continue

        try:
            if ledger.save(order, settlement_verified=bool(entry.get("verified"))).created:
                saved += 1
                logger.info(f"Recovered settlement of order {order.order_id}")
        except PersistenceFailed:
            #baza dalej nie działa - oddaj na początek kolejki i spróbuj w następnym cyklu
            queue.push_front(entry)
            logger.warning(f"Ledger still unavailable, order {order.order_id} stays queued")
            break
        except CheckoutError as e:
            logger.critical(
                f"Queued order {order.order_id} (payment {order.gateway_payment_id}) "
                f"cannot be recorded and needs manual reconciliation: {e.message}"
            )

    return saved


@celery_app.task(name="app.tasks.reconcile.retry_pending_settlements_task")
def retry_pending_settlements_task():
    logger.info("Retry pending settlements task started")

    db = SessionLocal()
    try:
        saved = drain_pending_settlements(SettlementQueue(), db)
        logger.info(f"Recovered {saved} pending settlements")
        return saved
    finally:
        db.close()
