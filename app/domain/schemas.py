# app/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from typing import List
from decimal import Decimal
from datetime import datetime

from app.domain.models import OrderStatus


class CamelModel(BaseModel):
    """JSON w camelCase, w Pythonie snake_case."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# =====================================================
# CART
# =====================================================
class CartItemIn(CamelModel):
    product_id: str = Field(..., min_length=1)
    size: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1)


class QuantityIn(CamelModel):
    quantity: int


class CartLineOut(CamelModel):
    product_id: str
    size: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    product_name: str = ""
    image: str | None = None


class CartOut(CamelModel):
    session_id: str
    items: List[CartLineOut]
    total: Decimal


# =====================================================
# ADDRESS
# =====================================================
class AddressSnapshot(CamelModel):
    full_name: str
    phone_number: str
    address_line1: str
    address_line2: str | None = None
    city: str
    state: str
    postal_code: str
    country: str


class Address(AddressSnapshot):
    user_id: str
    is_default: bool = True


# =====================================================
# ORDERS
# =====================================================
class OrderLineIn(CamelModel):
    product_id: str
    product_name: str = ""
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    size: str | None = None
    image: str | None = None


class OrderIn(CamelModel):
    order_id: str
    user_id: str
    user_email: str = ""
    status: OrderStatus = OrderStatus.PAID
    total_amount: Decimal
    currency: str = "INR"
    shipping_address: AddressSnapshot
    items: List[OrderLineIn] = []
    gateway_order_id: str | None = None
    gateway_payment_id: str | None = None
    created_at: datetime | None = None


class OrderOut(OrderIn):
    settlement_verified: bool = False
    created_at: datetime


class OrderSavedOut(CamelModel):
    success: bool = True
    order_id: str


# =====================================================
# PAYMENTS
# =====================================================
class CreateTransactionIn(CamelModel):
    amount: Decimal = Field(..., gt=0, description="Kwota w jednostkach głównych (np. INR)")
    currency: str | None = None


class PaymentIntentOut(BaseModel):
    id: str
    amount: int
    currency: str


class VerifyPaymentIn(CamelModel):
    gateway_order_id: str | None = None
    gateway_payment_id: str | None = None
    signature: str | None = None
    order: OrderIn


class VerifyPaymentOut(CamelModel):
    success: bool = True
    order_id: str
    status: OrderStatus
    verified: bool
