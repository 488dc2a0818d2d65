# app/services/order_service.py
import hashlib
import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import NamedTuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.data.models.order import OrderModel
from app.data.models.order_item import OrderItemModel
from app.domain.errors import DuplicateOrder, InvalidOrder, NotFound, PersistenceFailed
from app.domain.models import to_money
from app.domain.schemas import OrderIn, OrderOut
from app.repos.order_repo import OrderRepo
from app.utils.logging import get_logger

logger = get_logger(__name__)


class SavedOrder(NamedTuple):
    order_id: str
    #False gdy zamówienie było już w ledgerze
    created: bool


REQUIRED_ADDRESS_FIELDS = (
    "full_name",
    "phone_number",
    "address_line1",
    "city",
    "state",
    "postal_code",
    "country",
)


def content_hash(order: OrderIn) -> str:
    """Odcisk treści zamówienia (bez created_at) do porównania powtórzonych zapisów."""
    payload = {
        "order_id": order.order_id,
        "user_id": order.user_id,
        "user_email": order.user_email,
        "status": order.status.value,
        "total_amount": str(to_money(order.total_amount)),
        "currency": order.currency,
        "shipping_address": order.shipping_address.model_dump(),
        "items": [
            {
                "product_id": item.product_id,
                "product_name": item.product_name,
                "quantity": item.quantity,
                "unit_price": str(to_money(item.unit_price)),
                "line_total": str(to_money(item.line_total)),
                "size": item.size,
                "image": item.image,
            }
            for item in order.items
        ],
        "gateway_order_id": order.gateway_order_id,
        "gateway_payment_id": order.gateway_payment_id,
    }
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


def validate_order(order: OrderIn) -> None:
    if not order.order_id.strip():
        raise InvalidOrder("Order ID is required")
    if not order.user_id.strip():
        raise InvalidOrder("User ID is required")
    if not order.items:
        raise InvalidOrder("Order must have at least one item")

    for item in order.items:
        if item.quantity < 1:
            raise InvalidOrder(f"Quantity for {item.product_id} must be at least 1")
        if to_money(item.unit_price * item.quantity) != to_money(item.line_total):
            raise InvalidOrder(
                f"Line total for {item.product_id} does not equal unit price x quantity"
            )

    items_total = sum((to_money(item.line_total) for item in order.items), Decimal("0.00"))
    if items_total != to_money(order.total_amount):
        raise InvalidOrder(
            f"Total amount {to_money(order.total_amount)} does not equal sum of items {items_total}"
        )

    address = order.shipping_address
    missing = [f for f in REQUIRED_ADDRESS_FIELDS if not (getattr(address, f) or "").strip()]
    if missing:
        raise InvalidOrder(f"Shipping address is missing: {', '.join(missing)}")


class OrderService:
    """
    Ledger zamówień - jedyne miejsce zapisujące zamówienia.
    order_id jest kluczem idempotencji: ten sam order_id z tą samą treścią
    zwraca istniejący rekord, z inną treścią -> DuplicateOrder.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = OrderRepo(db)

    def save(self, order: OrderIn, settlement_verified: bool = False) -> SavedOrder:
        validate_order(order)
        fingerprint = content_hash(order)

        try:
            existing = self.repo.get_order(order.order_id)
            if existing:
                return self._resolve_existing(existing, fingerprint)

            model = self._to_model(order, fingerprint, settlement_verified)
            created = self.repo.create_order(model)
        except IntegrityError:
            #równoległy zapis tego samego order_id
            self.repo.rollback()
            existing = self.repo.get_order(order.order_id)
            if existing is None:
                raise PersistenceFailed(f"Could not save order {order.order_id}")
            return self._resolve_existing(existing, fingerprint)
        except SQLAlchemyError as e:
            self.repo.rollback()
            logger.error(f"Ledger write failed for order {order.order_id}: {e}")
            raise PersistenceFailed(f"Could not save order {order.order_id}") from e

        logger.info(
            f"Order {created.order_id} saved for user {created.user_id} "
            f"({created.status}, {created.total_amount} {created.currency})"
        )
        return SavedOrder(created.order_id, created=True)

    def is_recorded(self, order_id: str) -> bool:
        return self.repo.get_order(order_id) is not None

    def get_order(self, order_id: str) -> OrderOut:
        order = self.repo.get_order(order_id)
        if not order:
            raise NotFound(f"Order {order_id} not found")
        return OrderOut.model_validate(order)

    def list_by_user(self, user_id: str) -> list[OrderOut]:
        return [OrderOut.model_validate(o) for o in self.repo.list_by_user(user_id)]

    def list_recent(self, limit: int = 20) -> list[OrderOut]:
        return [OrderOut.model_validate(o) for o in self.repo.list_recent(limit)]

    def _resolve_existing(self, existing: OrderModel, fingerprint: str) -> SavedOrder:
        if existing.content_hash == fingerprint:
            logger.info(f"Order {existing.order_id} already recorded, skipping write")
            return SavedOrder(existing.order_id, created=False)
        raise DuplicateOrder(
            f"Order {existing.order_id} already exists with different content"
        )

    @staticmethod
    def _to_model(order: OrderIn, fingerprint: str, settlement_verified: bool) -> OrderModel:
        return OrderModel(
            order_id=order.order_id,
            user_id=order.user_id,
            user_email=order.user_email,
            status=order.status.value,
            total_amount=to_money(order.total_amount),
            currency=order.currency,
            shipping_address=order.shipping_address.model_dump(),
            gateway_order_id=order.gateway_order_id,
            gateway_payment_id=order.gateway_payment_id,
            settlement_verified=settlement_verified,
            content_hash=fingerprint,
            created_at=order.created_at or datetime.now(timezone.utc),
            items=[
                OrderItemModel(
                    product_id=item.product_id,
                    product_name=item.product_name,
                    quantity=item.quantity,
                    unit_price=to_money(item.unit_price),
                    line_total=to_money(item.line_total),
                    size=item.size,
                    image=item.image,
                )
                for item in order.items
            ],
        )
