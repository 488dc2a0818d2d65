# app/api/routers/payments.py
from functools import lru_cache

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.data.database import get_db
from app.domain.models import SettlementCallback
from app.domain.schemas import (
    CreateTransactionIn,
    PaymentIntentOut,
    VerifyPaymentIn,
    VerifyPaymentOut,
)
from app.repos.settlement_queue import SettlementQueue
from app.services.gateway_client import PaymentGateway, get_gateway
from app.services.payment_service import PaymentService
from app.services.product_client import ProductClient, get_product_client

router = APIRouter(prefix="/payments", tags=["payments"])


@lru_cache
def get_settlement_queue() -> SettlementQueue:
    return SettlementQueue()


def get_service(
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
    catalog: ProductClient = Depends(get_product_client),
    queue: SettlementQueue = Depends(get_settlement_queue),
) -> PaymentService:
    return PaymentService(db=db, gateway=gateway, catalog=catalog, queue=queue)


@router.post("/create-transaction", response_model=PaymentIntentOut)
def create_transaction(payload: CreateTransactionIn, svc: PaymentService = Depends(get_service)):
    """Kwota w jednostkach głównych, do bramki idzie x100."""
    intent = svc.create_transaction(payload.amount, payload.currency)
    return PaymentIntentOut(
        id=intent.gateway_order_id,
        amount=intent.amount_minor_units,
        currency=intent.currency,
    )


@router.post("/verify", response_model=VerifyPaymentOut)
def verify_payment(payload: VerifyPaymentIn, svc: PaymentService = Depends(get_service)):
    """Weryfikacja callbacku bramki i zapis zamówienia (idempotentny po orderId)."""
    callback = SettlementCallback(
        gateway_order_id=payload.gateway_order_id,
        gateway_payment_id=payload.gateway_payment_id,
        signature=payload.signature,
    )
    result = svc.settle(callback, payload.order)
    return VerifyPaymentOut(order_id=result.order_id, status=result.status, verified=result.verified)
