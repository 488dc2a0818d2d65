# app/services/payment_service.py
import redis
import requests
from sqlalchemy.orm import Session

from app.domain.cart import available_stock
from app.domain.errors import (
    CheckoutError,
    GatewayUnavailable,
    NotFound,
    OutOfStock,
    PersistenceFailed,
    SettlementUnverified,
    ValidationError,
)
from app.domain.models import (
    OrderStatus,
    PaymentIntent,
    SettlementCallback,
    SettlementResult,
    to_minor_units,
    to_money,
)
from app.domain.schemas import OrderIn
from app.repos.settlement_queue import SettlementQueue
from app.services.gateway_client import PaymentGateway, new_receipt
from app.services.notification_service import NotificationService
from app.services.order_service import OrderService, validate_order
from app.services.product_client import ProductClient
from app.services.settlement import verify_settlement
from app.utils import settings
from app.utils.logging import get_logger

logger = get_logger(__name__)


class PaymentService:
    """
    Use case'y płatności po stronie serwera.

    1. create_transaction - intent w bramce na kwotę koszyka (x100)
    2. settle - weryfikacja callbacku bramki, ceny i stanu z katalogu
       + zapis w ledgerze (dokładnie raz)
    """

    def __init__(
        self,
        db: Session,
        gateway: PaymentGateway,
        catalog: ProductClient | None = None,
        queue: SettlementQueue | None = None,
        notifications: NotificationService | None = None,
    ):
        self.ledger = OrderService(db)
        self.gateway = gateway
        self.catalog = catalog or ProductClient()
        self.queue = queue or SettlementQueue()
        self.notifications = notifications or NotificationService()

    def create_transaction(self, amount, currency: str | None = None) -> PaymentIntent:
        currency = (currency or settings.DEFAULT_CURRENCY).upper()
        amount_minor = to_minor_units(amount)
        if amount_minor <= 0:
            raise ValidationError("Amount must be greater than 0")

        intent = self.gateway.create_intent(amount_minor, currency, new_receipt())
        logger.info(
            f"Created payment intent {intent.gateway_order_id} "
            f"for {intent.amount_minor_units} {intent.currency}"
        )
        return intent

    def settle(self, callback: SettlementCallback, order: OrderIn) -> SettlementResult:
        validate_order(order)

        verified = verify_settlement(callback, self.gateway.key_secret)
        if verified:
            logger.info(f"Signature verified for order {order.order_id} (payment {callback.gateway_payment_id})")
            status = order.status
        else:
            status = self._apply_unverified_policy(callback, order)

        #powtórzony zapis tego samego zamówienia nie sprawdza katalogu drugi raz
        if not self.ledger.is_recorded(order.order_id):
            self._check_catalog(callback, order)
        if verified:
            self._check_amount(callback, order)

        record = order.model_copy(
            update={
                "status": status,
                "gateway_order_id": callback.gateway_order_id or order.gateway_order_id,
                "gateway_payment_id": callback.gateway_payment_id or order.gateway_payment_id,
            }
        )

        try:
            saved = self.ledger.save(record, settlement_verified=verified)
        except PersistenceFailed:
            logger.critical(
                f"Payment received but order save failed: order {record.order_id}, "
                f"gateway payment {record.gateway_payment_id}, gateway order {record.gateway_order_id}"
            )
            self._queue_for_retry(record, verified)
            raise

        if saved.created:
            self.notifications.send_order_confirmation(record.user_email, saved.order_id, status.value)
        return SettlementResult(order_id=saved.order_id, status=status, verified=verified)

    def _check_catalog(self, callback: SettlementCallback, order: OrderIn) -> None:
        """Ceny i stan magazynu liczone po stronie serwera, nie z payloadu klienta."""
        try:
            for item in order.items:
                product = self.catalog.fetch_product(item.product_id)
                price = to_money(product["price"])
                if to_money(item.unit_price) != price:
                    raise ValidationError(
                        f"Price of {item.product_id} is {price}, order says {to_money(item.unit_price)}"
                    )

                available = available_stock(product, item.size)
                if item.quantity > available:
                    raise OutOfStock(available=available, in_cart=item.quantity)
        except NotFound as e:
            self._log_rejected_payment(callback, order, e.message)
            raise ValidationError(e.message) from e
        except CheckoutError as e:
            self._log_rejected_payment(callback, order, e.message)
            raise
        except (requests.RequestException, KeyError, ValueError) as e:
            logger.error(f"Catalog check failed for order {order.order_id}: {e}")
            raise GatewayUnavailable("Product catalog unavailable, please retry") from e

    @staticmethod
    def _log_rejected_payment(callback: SettlementCallback, order: OrderIn, reason: str) -> None:
        if callback.gateway_payment_id:
            logger.critical(
                f"Settlement of order {order.order_id} rejected after payment "
                f"{callback.gateway_payment_id}: {reason}"
            )

    def _check_amount(self, callback: SettlementCallback, order: OrderIn) -> None:
        """Kwota zapłacona w bramce musi być równa sumie zamówienia."""
        try:
            intent = self.gateway.fetch_intent(callback.gateway_order_id)
        except GatewayUnavailable:
            logger.critical(
                f"Could not confirm paid amount for order {order.order_id}, "
                f"gateway payment {callback.gateway_payment_id}"
            )
            raise

        expected = to_minor_units(order.total_amount)
        if intent.amount_minor_units != expected or intent.currency != order.currency.upper():
            logger.error(
                f"Amount mismatch for order {order.order_id}: gateway {intent.amount_minor_units} "
                f"{intent.currency}, order {expected} {order.currency} "
                f"(payment {callback.gateway_payment_id})"
            )
            raise ValidationError("Paid amount does not match order total")

    def _apply_unverified_policy(self, callback: SettlementCallback, order: OrderIn) -> OrderStatus:
        policy = settings.UNVERIFIED_SETTLEMENT_POLICY
        payment_id = callback.gateway_payment_id

        if policy == "accept" and not settings.PAYMENT_SANDBOX:
            logger.error("UNVERIFIED_SETTLEMENT_POLICY=accept is only honoured in sandbox mode, rejecting")
            policy = "reject"

        if policy == "review":
            logger.warning(
                f"Unverified settlement for order {order.order_id} (payment {payment_id}), "
                f"recording as PENDING for manual review"
            )
            return OrderStatus.PENDING

        if policy == "accept":
            logger.warning(
                f"SANDBOX: accepting unverified settlement for order {order.order_id} (payment {payment_id})"
            )
            return order.status

        logger.warning(f"Rejected unverified settlement for order {order.order_id} (payment {payment_id})")
        raise SettlementUnverified("Payment signature could not be verified")

    def _queue_for_retry(self, record: OrderIn, verified: bool) -> None:
        try:
            self.queue.push(record.model_dump(mode="json", by_alias=True), verified)
        except redis.RedisError as e:
            logger.critical(f"Could not queue order {record.order_id} for retry: {e}")
