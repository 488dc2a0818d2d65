# app/services/gateway_client.py
"""
Port bramki płatniczej i adaptery.

- RazorpayGateway: REST API Razorpay Orders (produkcja / test keys)
- FakeGateway: bramka w pamięci dla dev i testów, umie też "zapłacić"
  i wygenerować poprawnie podpisany callback
"""
import time
from abc import ABC, abstractmethod
from functools import lru_cache
from uuid import uuid4

import requests

from app.domain.errors import GatewayUnavailable, NotFound
from app.domain.models import PaymentIntent, SettlementCallback
from app.services.settlement import sign_settlement
from app.utils import settings
from app.utils.retry import http_retry
from app.utils.logging import get_logger

logger = get_logger(__name__)


def new_receipt() -> str:
    return f"receipt_order{int(time.time() * 1000)}"


class PaymentGateway(ABC):
    #sekret do podpisów HMAC callbacków
    key_secret: str = ""

    @abstractmethod
    def create_intent(self, amount_minor: int, currency: str, receipt: str) -> PaymentIntent:
        """Tworzy order po stronie bramki na daną kwotę (w jednostkach minor)."""

    @abstractmethod
    def fetch_intent(self, gateway_order_id: str) -> PaymentIntent:
        """Pobiera order z bramki, np. do sprawdzenia kwoty przy rozliczeniu."""


class RazorpayGateway(PaymentGateway):
    def __init__(
        self,
        key_id: str,
        key_secret: str,
        base_url: str | None = None,
        timeout: int | None = None,
    ):
        self.auth = (key_id, key_secret)
        self.key_secret = key_secret
        self.base_url = (base_url or settings.RAZORPAY_API_URL).rstrip("/")
        self.timeout = timeout or settings.GATEWAY_TIMEOUT_SECONDS

    @http_retry()
    def _post(self, url: str, body: dict) -> requests.Response:
        return requests.post(url, json=body, auth=self.auth, timeout=self.timeout)

    @http_retry()
    def _get(self, url: str) -> requests.Response:
        return requests.get(url, auth=self.auth, timeout=self.timeout)

    @staticmethod
    def _to_intent(data: dict) -> PaymentIntent:
        return PaymentIntent(
            gateway_order_id=data["id"],
            amount_minor_units=int(data["amount"]),
            currency=data["currency"],
        )

    def create_intent(self, amount_minor: int, currency: str, receipt: str) -> PaymentIntent:
        url = f"{self.base_url}/orders"
        logger.info(f"RazorpayGateway POST {url} amount={amount_minor} {currency}")
        try:
            resp = self._post(url, {"amount": amount_minor, "currency": currency, "receipt": receipt})
            resp.raise_for_status()
            return self._to_intent(resp.json())
        except (requests.RequestException, KeyError, ValueError) as e:
            logger.error(f"Razorpay order creation failed: {e}")
            raise GatewayUnavailable("Could not complete payment, payment gateway unavailable") from e

    def fetch_intent(self, gateway_order_id: str) -> PaymentIntent:
        url = f"{self.base_url}/orders/{gateway_order_id}"
        try:
            resp = self._get(url)
            if resp.status_code in (400, 404):
                raise NotFound(f"Gateway order {gateway_order_id} not found")
            resp.raise_for_status()
            return self._to_intent(resp.json())
        except (requests.RequestException, KeyError, ValueError) as e:
            logger.error(f"Razorpay order lookup failed for {gateway_order_id}: {e}")
            raise GatewayUnavailable("Payment gateway unavailable") from e


class FakeGateway(PaymentGateway):
    """Konfigurowalna bramka w pamięci."""

    def __init__(self, key_secret: str = "fake-secret"):
        self.key_secret = key_secret
        self.should_succeed = True
        self.intents: dict[str, PaymentIntent] = {}
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool) -> None:
        self.should_succeed = should_succeed

    def create_intent(self, amount_minor: int, currency: str, receipt: str) -> PaymentIntent:
        self.calls.append(
            {"method": "create_intent", "amount": amount_minor, "currency": currency, "receipt": receipt}
        )
        if not self.should_succeed:
            raise GatewayUnavailable("Could not complete payment, payment gateway unavailable")

        intent = PaymentIntent(
            gateway_order_id=f"order_{uuid4().hex[:14]}",
            amount_minor_units=amount_minor,
            currency=currency,
        )
        self.intents[intent.gateway_order_id] = intent
        return intent

    def fetch_intent(self, gateway_order_id: str) -> PaymentIntent:
        self.calls.append({"method": "fetch_intent", "gateway_order_id": gateway_order_id})
        intent = self.intents.get(gateway_order_id)
        if intent is None:
            raise NotFound(f"Gateway order {gateway_order_id} not found")
        return intent

    def complete(self, intent: PaymentIntent) -> SettlementCallback:
        """Symuluje udaną płatność w UI bramki."""
        payment_id = f"pay_{uuid4().hex[:14]}"
        return SettlementCallback(
            gateway_order_id=intent.gateway_order_id,
            gateway_payment_id=payment_id,
            signature=sign_settlement(intent.gateway_order_id, payment_id, self.key_secret),
        )


def build_gateway() -> PaymentGateway:
    if settings.PAYMENT_GATEWAY == "fake":
        logger.warning("Using FakeGateway - payments are simulated")
        return FakeGateway(key_secret=settings.RAZORPAY_KEY_SECRET or "fake-secret")
    return RazorpayGateway(settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET)


@lru_cache
def get_gateway() -> PaymentGateway:
    """Zależność FastAPI - jedna instancja na proces, w testach nadpisywana."""
    return build_gateway()
