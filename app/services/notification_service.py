# app/services/notification_service.py
from app.celery_worker import celery_app
from app.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Serwis do wysyłania powiadomień o zamówieniach.
    Używa Celery do asynchronicznego przetwarzania.
    """

    @staticmethod
    def send_order_confirmation(user_email: str, order_id: str, status: str):
        #zamówienie jest już zapisane - błąd brokera nie może cofnąć rozliczenia
        try:
            send_order_confirmation_task.delay(user_email, order_id, status)
        except Exception as e:
            logger.warning(f"Could not enqueue confirmation for order {order_id}: {e}")


@celery_app.task(name="app.services.notification_service.send_order_confirmation_task")
def send_order_confirmation_task(user_email: str, order_id: str, status: str):
    """
    Celery task - w prawdziwym systemie wysłałby email.
    Teraz tylko loguje.
    """
    logger.info(f"[NOTIFICATION] {user_email or 'unknown'}: order {order_id} recorded as {status}")

    return {"user_email": user_email, "order_id": order_id, "status": "sent"}
