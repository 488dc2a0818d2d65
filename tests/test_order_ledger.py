from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

from app.domain.errors import DuplicateOrder, InvalidOrder, NotFound, PersistenceFailed
from app.domain.models import OrderStatus
from app.repos.order_repo import OrderRepo
from app.services.order_service import OrderService, content_hash


class TestValidation:
    def test_total_must_equal_sum_of_lines(self, db, make_order):
        ledger = OrderService(db)

        with pytest.raises(InvalidOrder):
            ledger.save(make_order(lines=((500, 1),), total=600))

        assert ledger.list_by_user("user-1") == []

    def test_line_total_must_equal_price_times_quantity(self, db, make_order):
        order = make_order(lines=((500, 2),))
        order.items[0].line_total = Decimal("900")

        with pytest.raises(InvalidOrder):
            OrderService(db).save(order, settlement_verified=True)

    def test_order_without_items(self, db, make_order):
        with pytest.raises(InvalidOrder):
            OrderService(db).save(make_order(lines=(), total=0))

    def test_address_fields_required(self, db, make_order, address):
        order = make_order(shipping_address=address.model_copy(update={"city": " "}))

        with pytest.raises(InvalidOrder) as exc:
            OrderService(db).save(order)
        assert "city" in exc.value.message

    def test_order_id_required(self, db, make_order):
        with pytest.raises(InvalidOrder):
            OrderService(db).save(make_order(order_id=""))


class TestIdempotency:
    def test_repeated_save_records_once(self, db, make_order):
        ledger = OrderService(db)
        order = make_order(order_id="ORD_2")

        first = ledger.save(order, settlement_verified=True)
        second = ledger.save(order, settlement_verified=True)

        assert (first.order_id, first.created) == ("ORD_2", True)
        assert (second.order_id, second.created) == ("ORD_2", False)

        assert [o.order_id for o in ledger.list_by_user("user-1")] == ["ORD_2"]

    def test_same_id_with_different_content(self, db, make_order):
        ledger = OrderService(db)
        ledger.save(make_order(order_id="ORD_2"))

        with pytest.raises(DuplicateOrder):
            ledger.save(make_order(order_id="ORD_2", lines=((1000, 3),)))

        assert ledger.get_order("ORD_2").total_amount == Decimal("2000.00")

    def test_hash_ignores_created_at(self, make_order):
        later = datetime(2026, 2, 1, tzinfo=timezone.utc)

        assert content_hash(make_order()) == content_hash(make_order(created_at=later))


class TestReads:
    def test_saved_order_round_trip(self, db, make_order):
        ledger = OrderService(db)
        ledger.save(make_order(gateway_order_id="gw_1", gateway_payment_id="pay_1"), settlement_verified=True)

        order = ledger.get_order("ORD_1")

        assert order.status == OrderStatus.PAID
        assert order.settlement_verified is True
        assert order.gateway_payment_id == "pay_1"
        assert order.shipping_address.city == "Bengaluru"
        assert order.items[0].quantity == 2
        assert order.items[0].line_total == Decimal("2000.00")

    def test_list_by_user_newest_first(self, db, make_order):
        ledger = OrderService(db)
        for day, order_id in ((1, "ORD_A"), (3, "ORD_C"), (2, "ORD_B")):
            ledger.save(make_order(order_id=order_id, created_at=datetime(2026, 1, day, tzinfo=timezone.utc)))
        ledger.save(make_order(order_id="ORD_X", user_id="user-2"))

        assert [o.order_id for o in ledger.list_by_user("user-1")] == ["ORD_C", "ORD_B", "ORD_A"]
        assert [o.order_id for o in ledger.list_recent(2)] == ["ORD_C", "ORD_B"]

    def test_missing_order(self, db):
        with pytest.raises(NotFound):
            OrderService(db).get_order("ORD_missing")


def test_database_failure_is_persistence_failed(db, make_order, monkeypatch):
    def broken(self, order):
        raise SQLAlchemyError("connection lost")

    monkeypatch.setattr(OrderRepo, "create_order", broken)

    with pytest.raises(PersistenceFailed):
        OrderService(db).save(make_order())
