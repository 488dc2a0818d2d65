# app/services/cart_service.py
from typing import Dict, Any

from app.domain.cart import Cart, available_stock
from app.repos.cart_repo import CartRepo
from app.services.product_client import ProductClient
from app.utils.logging import get_logger

logger = get_logger(__name__)


class CartService:
    """
    Use case'y koszyka sesji.
    commands (add, set_quantity, remove, clear) walidowane względem katalogu
    query (get) tylko odczyt
    """

    def __init__(self, repo: CartRepo, product_client: ProductClient):
        self.repo = repo
        self.product_client = product_client

    @staticmethod
    def to_dict(session_id: str, cart: Cart) -> Dict[str, Any]:
        return {
            "session_id": session_id,
            "items": [
                {
                    "product_id": line.product_id,
                    "size": line.size,
                    "quantity": line.quantity,
                    "unit_price": line.unit_price,
                    "line_total": line.line_total,
                    "product_name": line.product_name,
                    "image": line.image,
                }
                for line in cart.lines
            ],
            "total": cart.total(),
        }

    #query
    def get_cart(self, session_id: str) -> Dict[str, Any]:
        return self.to_dict(session_id, self.repo.load(session_id))

    #commands
    def add_item(self, session_id: str, product_id: str, size: str, quantity: int) -> Dict[str, Any]:
        cart = self.repo.load(session_id)

        logger.info(f"Pobieranie danych produktu {product_id} z product-service")
        product = self.product_client.fetch_product(product_id)

        cart.add(product, size, quantity)
        self.repo.save(session_id, cart)

        logger.info(f"Added {quantity} x {product_id} ({size}) to cart {session_id}")
        return self.to_dict(session_id, cart)

    def set_quantity(self, session_id: str, product_id: str, size: str, quantity: int) -> Dict[str, Any]:
        cart = self.repo.load(session_id)

        available = 0
        if quantity >= 1:
            available = available_stock(self.product_client.fetch_product(product_id), size)

        cart.set_quantity(product_id, size, quantity, available)
        self.repo.save(session_id, cart)
        return self.to_dict(session_id, cart)

    def remove_item(self, session_id: str, product_id: str, size: str) -> Dict[str, Any]:
        cart = self.repo.load(session_id)
        cart.remove(product_id, size)
        self.repo.save(session_id, cart)

        logger.info(f"Removed {product_id} ({size}) from cart {session_id}")
        return self.to_dict(session_id, cart)

    def clear(self, session_id: str) -> Dict[str, Any]:
        self.repo.delete(session_id)
        logger.info(f"Cleared cart {session_id}")
        return self.to_dict(session_id, Cart())

    def validate(self, session_id: str) -> Dict[str, Any]:
        """Sprawdzenie całego koszyka ze stanem na żywo przed checkoutem."""
        cart = self.repo.load(session_id)
        cart.revalidate(self.product_client)
        return self.to_dict(session_id, cart)
