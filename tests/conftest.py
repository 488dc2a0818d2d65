import copy
import os

# konfiguracja przed importem aplikacji - settings czytane przy imporcie
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["PAYMENT_GATEWAY"] = "fake"
os.environ["RAZORPAY_KEY_SECRET"] = "test-secret"
os.environ["PAYMENT_SANDBOX"] = "false"
os.environ["UNVERIFIED_SETTLEMENT_POLICY"] = "reject"

from datetime import datetime, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.api.routers.carts import get_cart_repo  # noqa: E402
from app.api.routers.payments import get_settlement_queue  # noqa: E402
from app.celery_worker import celery_app  # noqa: E402
from app.data.database import Base, SessionLocal, engine  # noqa: E402
from app.domain.schemas import AddressSnapshot, OrderIn, OrderLineIn  # noqa: E402
from app.main import app  # noqa: E402
from app.product_service import main as product_service  # noqa: E402
from app.repos.cart_repo import CartRepo  # noqa: E402
from app.repos.settlement_queue import SettlementQueue  # noqa: E402
from app.services.gateway_client import FakeGateway, get_gateway  # noqa: E402
from app.services.product_client import ProductClient, get_product_client  # noqa: E402

celery_app.conf.task_always_eager = True

SECRET = "test-secret"

# pozycje zamówień z make_order odpowiadają produktom z katalogu dev
CATALOG_LINES = (("frontline", "M"), ("crossfade", "M"), ("matchday-cap", "ONE"))


class InMemoryRedis:
    """Minimalny dubel redisa (string + lista) dla testów."""

    def __init__(self):
        self.values = {}
        self.lists = {}
        self.ttls = {}

    def get(self, name):
        return self.values.get(name)

    def set(self, name, value, ex=None):
        self.values[name] = value
        self.ttls[name] = ex
        return True

    def delete(self, *names):
        removed = 0
        for name in names:
            removed += int(self.values.pop(name, None) is not None)
            removed += int(self.lists.pop(name, None) is not None)
        return removed

    def rpush(self, name, *values):
        self.lists.setdefault(name, []).extend(values)
        return len(self.lists[name])

    def lpush(self, name, *values):
        for value in values:
            self.lists.setdefault(name, []).insert(0, value)
        return len(self.lists[name])

    def lpop(self, name):
        items = self.lists.get(name)
        return items.pop(0) if items else None

    def llen(self, name):
        return len(self.lists.get(name, []))


class InProcessProductClient(ProductClient):
    """ProductClient rozmawiający z mockiem katalogu w tym samym procesie."""

    def __init__(self):
        super().__init__(base_url="http://catalog")
        self.http = TestClient(product_service.app)

    def _get(self, url):
        return self.http.get(url[len(self.base_url):])


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def catalog():
    original = copy.deepcopy(product_service.PRODUCTS)
    yield product_service.PRODUCTS
    product_service.PRODUCTS.clear()
    product_service.PRODUCTS.update(original)


@pytest.fixture
def product_client(catalog):
    return InProcessProductClient()


@pytest.fixture
def redis_client():
    return InMemoryRedis()


@pytest.fixture
def settlement_queue(redis_client):
    return SettlementQueue(client=redis_client)


@pytest.fixture
def gateway():
    return FakeGateway(key_secret=SECRET)


@pytest.fixture
def client(gateway, redis_client, settlement_queue, product_client):
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_settlement_queue] = lambda: settlement_queue
    app.dependency_overrides[get_cart_repo] = lambda: CartRepo(client=redis_client)
    app.dependency_overrides[get_product_client] = lambda: product_client
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def address():
    return AddressSnapshot(
        full_name="Asha Rao",
        phone_number="+919876543210",
        address_line1="12 MG Road",
        city="Bengaluru",
        state="Karnataka",
        postal_code="560001",
        country="India",
    )


@pytest.fixture
def make_order(address):
    def _make(order_id="ORD_1", user_id="user-1", lines=((1000, 2),), total=None, **extra):
        items = [
            OrderLineIn(
                product_id=CATALOG_LINES[i][0],
                product_name=f"Product {i}",
                quantity=qty,
                unit_price=Decimal(str(price)),
                line_total=Decimal(str(price)) * qty,
                size=CATALOG_LINES[i][1],
            )
            for i, (price, qty) in enumerate(lines)
        ]
        if total is None:
            total = sum((item.line_total for item in items), Decimal("0"))
        fields = {
            "order_id": order_id,
            "user_id": user_id,
            "user_email": "asha@example.com",
            "total_amount": Decimal(str(total)),
            "currency": "INR",
            "shipping_address": address,
            "items": items,
            "created_at": datetime(2026, 1, 1, tzinfo=timezone.utc),
        }
        fields.update(extra)
        return OrderIn(**fields)

    return _make
