from sqlalchemy import Column, String, DateTime, Numeric, Boolean, JSON
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from app.data.database import Base


class OrderModel(Base):
    __tablename__ = "orders"

    #order_id generowany po stronie klienta = klucz idempotencji
    order_id = Column(String(64), primary_key=True)
    user_id = Column(String(128), nullable=False, index=True)
    user_email = Column(String(255), nullable=False, default="")

    status = Column(String(16), nullable=False, default="PENDING")  # PAID, PENDING, FAILED
    total_amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="INR")
    shipping_address = Column(JSON, nullable=False)

    gateway_order_id = Column(String(64), nullable=True, index=True)
    gateway_payment_id = Column(String(64), nullable=True)
    settlement_verified = Column(Boolean, nullable=False, default=False)
    content_hash = Column(String(64), nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), index=True)

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItemModel.id",
    )
