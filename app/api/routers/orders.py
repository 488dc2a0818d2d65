# app/api/routers/orders.py
from typing import List

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.data.database import get_db
from app.domain.schemas import OrderIn, OrderOut, OrderSavedOut
from app.services.notification_service import NotificationService
from app.services.order_service import OrderService
from app.utils import settings
from app.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(db: Session = Depends(get_db)):
    return OrderService(db)


@router.post("", response_model=OrderSavedOut)
def save_order(payload: OrderIn, svc: OrderService = Depends(get_service)):
    """
    Bezpośredni zapis zamówienia z pominięciem weryfikacji bramki.
    Tylko w trybie sandbox.
    """
    if not settings.PAYMENT_SANDBOX:
        return JSONResponse(
            status_code=403,
            content={"success": False, "error": "Direct order save is only available in sandbox mode"},
        )

    logger.warning(f"SANDBOX: saving order {payload.order_id} without gateway verification")
    saved = svc.save(payload, settlement_verified=False)
    if saved.created:
        NotificationService.send_order_confirmation(payload.user_email, saved.order_id, payload.status.value)
    return OrderSavedOut(order_id=saved.order_id)


# konkretne ścieżki przed parametryzowanymi
@router.get("/recent/all", response_model=List[OrderOut])
def recent_orders(limit: int = Query(20, ge=1, le=100), svc: OrderService = Depends(get_service)):
    return svc.list_recent(limit)


@router.get("/user/{user_id}", response_model=List[OrderOut])
def user_orders(user_id: str, svc: OrderService = Depends(get_service)):
    return svc.list_by_user(user_id)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: str, svc: OrderService = Depends(get_service)):
    return svc.get_order(order_id)
