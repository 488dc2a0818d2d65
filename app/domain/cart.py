# app/domain/cart.py
from dataclasses import dataclass, asdict
from decimal import Decimal
from typing import Callable, Iterable, Protocol

from app.domain.errors import NotFound, OutOfStock, ValidationError

# produkt bez mapy stock nie ma limitu (jak w katalogu)
DEFAULT_STOCK_LIMIT = 999


def available_stock(product: dict, size: str) -> int:
    stock = product.get("stock")
    if not stock:
        return DEFAULT_STOCK_LIMIT
    return int(stock.get(size) or 0)


class StockLookup(Protocol):
    def available_stock(self, product_id: str, size: str) -> int: ...


@dataclass
class CartLine:
    product_id: str
    size: str
    quantity: int
    unit_price: Decimal
    product_name: str = ""
    image: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.product_id, self.size)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class Cart:
    """
    Koszyk sesji: linie po kluczu (product_id, size).
    Każda mutacja jest walidowana względem stanu magazynu i powiadamia obserwatorów.
    Cena jednostkowa jest zamrażana przy dodaniu.
    """

    def __init__(self, lines: Iterable[CartLine] = ()):
        self._lines: dict[tuple[str, str], CartLine] = {}
        for line in lines:
            self._lines[line.key] = line
        self._observers: list[Callable[["Cart"], None]] = []

    @property
    def lines(self) -> list[CartLine]:
        return list(self._lines.values())

    def is_empty(self) -> bool:
        return not self._lines

    def quantity_of(self, product_id: str, size: str) -> int:
        line = self._lines.get((product_id, size))
        return line.quantity if line else 0

    def subscribe(self, callback: Callable[["Cart"], None]) -> Callable[[], None]:
        self._observers.append(callback)

        def unsubscribe():
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def _notify(self):
        for callback in list(self._observers):
            callback(self)

    # commands
    def add(self, product: dict, size: str, quantity: int = 1) -> CartLine:
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        product_id = str(product["id"])
        available = available_stock(product, size)
        in_cart = self.quantity_of(product_id, size)

        if in_cart + quantity > available:
            raise OutOfStock(available=available, in_cart=in_cart)

        line = self._lines.get((product_id, size))
        if line:
            line.quantity += quantity
        else:
            line = CartLine(
                product_id=product_id,
                size=size,
                quantity=quantity,
                unit_price=Decimal(str(product["price"])),
                product_name=product.get("name", ""),
                image=product.get("image"),
            )
            self._lines[line.key] = line

        self._notify()
        return line

    def set_quantity(self, product_id: str, size: str, quantity: int, available: int) -> CartLine | None:
        line = self._lines.get((product_id, size))
        if not line:
            raise NotFound(f"Item {product_id} ({size}) is not in the cart")

        if quantity < 1:
            self.remove(product_id, size)
            return None

        if quantity > available:
            raise OutOfStock(
                available=available,
                in_cart=line.quantity,
                message=f"Only {available} available in stock.",
            )

        line.quantity = quantity
        self._notify()
        return line

    def remove(self, product_id: str, size: str) -> None:
        if self._lines.pop((product_id, size), None) is not None:
            self._notify()

    def clear(self) -> None:
        self._lines.clear()
        self._notify()

    # queries
    def total(self) -> Decimal:
        return sum((line.line_total for line in self._lines.values()), Decimal("0.00"))

    def revalidate(self, catalog: StockLookup) -> None:
        """Sprawdza wszystkie linie ze stanem na żywo, pierwszy brak -> OutOfStock."""
        for line in self._lines.values():
            available = catalog.available_stock(line.product_id, line.size)
            if line.quantity > available:
                raise OutOfStock(
                    available=available,
                    in_cart=line.quantity,
                    message=(
                        f"{line.product_name or line.product_id} ({line.size}): "
                        f"only {available} available, {line.quantity} in cart."
                    ),
                )

    # serializacja do redisa
    def to_dict(self) -> dict:
        return {
            "lines": [
                {**asdict(line), "unit_price": str(line.unit_price)}
                for line in self._lines.values()
            ]
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Cart":
        return cls(
            CartLine(
                product_id=raw["product_id"],
                size=raw["size"],
                quantity=int(raw["quantity"]),
                unit_price=Decimal(raw["unit_price"]),
                product_name=raw.get("product_name", ""),
                image=raw.get("image"),
            )
            for raw in data.get("lines", [])
        )
