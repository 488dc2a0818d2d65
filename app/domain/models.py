# app/domain/models.py
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum


class OrderStatus(str, Enum):
    PAID = "PAID"
    PENDING = "PENDING"
    FAILED = "FAILED"


TWO_PLACES = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def to_minor_units(amount) -> int:
    """Kwota w groszach/paisach (x100), bez floatów."""
    return int((to_money(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class User:
    user_id: str
    email: str
    name: str = ""


@dataclass(frozen=True)
class PaymentIntent:
    gateway_order_id: str
    amount_minor_units: int
    currency: str


@dataclass(frozen=True)
class SettlementCallback:
    gateway_order_id: str | None = None
    gateway_payment_id: str | None = None
    signature: str | None = None


@dataclass(frozen=True)
class Completed:
    callback: SettlementCallback


@dataclass(frozen=True)
class Dismissed:
    reason: str = "dismissed"


PaymentOutcome = Completed | Dismissed


@dataclass(frozen=True)
class SettlementResult:
    order_id: str
    status: OrderStatus
    verified: bool
