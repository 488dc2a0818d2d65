#app/api/routers/carts.py
from functools import lru_cache

from fastapi import APIRouter, Depends

from app.domain.schemas import CartItemIn, CartOut, QuantityIn
from app.repos.cart_repo import CartRepo
from app.services.cart_service import CartService
from app.services.product_client import ProductClient, get_product_client

router = APIRouter(prefix="/carts", tags=["carts"])


@lru_cache
def get_cart_repo() -> CartRepo:
    return CartRepo()


def get_service(
    repo: CartRepo = Depends(get_cart_repo),
    product_client: ProductClient = Depends(get_product_client),
) -> CartService:
    return CartService(repo=repo, product_client=product_client)


@router.get("/{session_id}", response_model=CartOut)
def get_cart(session_id: str, svc: CartService = Depends(get_service)):
    return svc.get_cart(session_id)


@router.post("/{session_id}/items", response_model=CartOut)
def add_item(session_id: str, payload: CartItemIn, svc: CartService = Depends(get_service)):
    return svc.add_item(
        session_id=session_id,
        product_id=payload.product_id,
        size=payload.size,
        quantity=payload.quantity,
    )


@router.put("/{session_id}/items/{product_id}/{size}", response_model=CartOut)
def set_quantity(
    session_id: str,
    product_id: str,
    size: str,
    payload: QuantityIn,
    svc: CartService = Depends(get_service),
):
    return svc.set_quantity(session_id, product_id, size, payload.quantity)


@router.delete("/{session_id}/items/{product_id}/{size}", response_model=CartOut)
def remove_item(session_id: str, product_id: str, size: str, svc: CartService = Depends(get_service)):
    return svc.remove_item(session_id, product_id, size)


@router.delete("/{session_id}", response_model=CartOut)
def clear_cart(session_id: str, svc: CartService = Depends(get_service)):
    return svc.clear(session_id)


@router.post("/{session_id}/validate", response_model=CartOut)
def validate_cart(session_id: str, svc: CartService = Depends(get_service)):
    """Sprawdza cały koszyk ze stanem magazynu przed checkoutem."""
    return svc.validate(session_id)
