from decimal import Decimal

import pytest

from app.domain.cart import DEFAULT_STOCK_LIMIT, Cart, CartLine
from app.domain.errors import NotFound, OutOfStock, ValidationError

FRONTLINE = {"id": "frontline", "name": "Frontline Jersey", "price": 1000, "stock": {"M": 2, "L": 5}}
CROSSFADE = {"id": "crossfade", "name": "Crossfade Tee", "price": 500, "stock": {"M": 3}}
CAP = {"id": "matchday-cap", "name": "Matchday Cap", "price": 349.5}


class StockTable:
    def __init__(self, stock):
        self.stock = stock

    def available_stock(self, product_id, size):
        return self.stock.get((product_id, size), 0)


def expected_total(cart):
    return sum((line.unit_price * line.quantity for line in cart.lines), Decimal("0"))


class TestAdd:
    def test_add_over_stock_reports_available_and_in_cart(self):
        cart = Cart()
        cart.add(FRONTLINE, "M", 2)

        with pytest.raises(OutOfStock) as exc:
            cart.add(FRONTLINE, "M", 1)

        assert exc.value.available == 2
        assert exc.value.in_cart == 2
        assert cart.quantity_of("frontline", "M") == 2

    def test_add_merges_same_key(self):
        cart = Cart()
        cart.add(FRONTLINE, "L", 2)
        cart.add(FRONTLINE, "L", 3)

        assert len(cart.lines) == 1
        assert cart.quantity_of("frontline", "L") == 5

    def test_sizes_are_separate_lines(self):
        cart = Cart()
        cart.add(FRONTLINE, "M", 1)
        cart.add(FRONTLINE, "L", 1)

        assert {line.key for line in cart.lines} == {("frontline", "M"), ("frontline", "L")}

    def test_unknown_size_has_no_stock(self):
        with pytest.raises(OutOfStock) as exc:
            Cart().add(FRONTLINE, "XXL", 1)
        assert exc.value.available == 0

    def test_product_without_stock_map_is_unlimited(self):
        cart = Cart()
        cart.add(CAP, "ONE", DEFAULT_STOCK_LIMIT)

        with pytest.raises(OutOfStock):
            cart.add(CAP, "ONE", 1)

    def test_quantity_below_one_rejected(self):
        with pytest.raises(ValidationError):
            Cart().add(FRONTLINE, "M", 0)

    def test_unit_price_frozen_at_add(self):
        cart = Cart()
        cart.add(dict(CROSSFADE), "M", 1)
        cart.add({**CROSSFADE, "price": 900}, "M", 1)

        assert cart.lines[0].unit_price == Decimal("500")
        assert cart.total() == Decimal("1000")


class TestSetQuantityAndRemove:
    def test_set_quantity_within_stock(self):
        cart = Cart()
        cart.add(CROSSFADE, "M", 1)
        cart.set_quantity("crossfade", "M", 3, available=3)

        assert cart.quantity_of("crossfade", "M") == 3

    def test_set_quantity_over_stock_rejected_without_change(self):
        cart = Cart()
        cart.add(CROSSFADE, "M", 2)

        with pytest.raises(OutOfStock) as exc:
            cart.set_quantity("crossfade", "M", 4, available=3)

        assert exc.value.available == 3
        assert exc.value.in_cart == 2
        assert cart.quantity_of("crossfade", "M") == 2

    def test_set_quantity_below_one_removes(self):
        cart = Cart()
        cart.add(CROSSFADE, "M", 2)

        assert cart.set_quantity("crossfade", "M", 0, available=3) is None
        assert cart.is_empty()

    def test_set_quantity_for_missing_line(self):
        with pytest.raises(NotFound):
            Cart().set_quantity("crossfade", "M", 1, available=3)

    def test_remove_and_clear(self):
        cart = Cart()
        cart.add(CROSSFADE, "M", 1)
        cart.add(FRONTLINE, "L", 1)

        cart.remove("crossfade", "M")
        assert [line.key for line in cart.lines] == [("frontline", "L")]

        cart.clear()
        assert cart.is_empty()
        assert cart.total() == Decimal("0")


class TestTotal:
    def test_total_tracks_every_mutation(self):
        cart = Cart()
        steps = [
            lambda: cart.add(FRONTLINE, "L", 2),
            lambda: cart.add(CROSSFADE, "M", 1),
            lambda: cart.add(CAP, "ONE", 3),
            lambda: cart.set_quantity("crossfade", "M", 3, available=3),
            lambda: cart.remove("frontline", "L"),
            lambda: cart.set_quantity("matchday-cap", "ONE", 1, available=999),
            lambda: cart.add(FRONTLINE, "M", 2),
        ]
        for step in steps:
            step()
            assert cart.total() == expected_total(cart)

        assert cart.total() == Decimal("500") * 3 + Decimal("349.5") + Decimal("1000") * 2


class TestObservers:
    def test_successful_mutations_notify(self):
        cart = Cart()
        seen = []
        cart.subscribe(lambda c: seen.append(c.total()))

        cart.add(CROSSFADE, "M", 1)
        cart.set_quantity("crossfade", "M", 2, available=3)
        cart.remove("crossfade", "M")
        cart.clear()

        assert seen == [Decimal("500"), Decimal("1000"), Decimal("0"), Decimal("0")]

    def test_rejected_mutation_does_not_notify(self):
        cart = Cart()
        cart.add(FRONTLINE, "M", 2)
        seen = []
        cart.subscribe(seen.append)

        with pytest.raises(OutOfStock):
            cart.add(FRONTLINE, "M", 1)

        assert seen == []

    def test_unsubscribe(self):
        cart = Cart()
        seen = []
        unsubscribe = cart.subscribe(seen.append)
        unsubscribe()

        cart.add(CROSSFADE, "M", 1)
        assert seen == []


class TestRevalidateAndSerialization:
    def test_revalidate_against_live_stock(self):
        cart = Cart()
        cart.add(CROSSFADE, "M", 3)

        cart.revalidate(StockTable({("crossfade", "M"): 3}))
        with pytest.raises(OutOfStock) as exc:
            cart.revalidate(StockTable({("crossfade", "M"): 1}))

        assert exc.value.available == 1
        assert exc.value.in_cart == 3

    def test_dict_round_trip_keeps_prices_exact(self):
        cart = Cart([CartLine("matchday-cap", "ONE", 3, Decimal("349.50"), "Matchday Cap")])

        restored = Cart.from_dict(cart.to_dict())

        assert restored.lines == cart.lines
        assert restored.total() == Decimal("1048.50")
