# app/services/payment_client.py
"""
Klient płatności po stronie checkoutu (storefront).

Intent i rozliczenie idą przez nasze API (/payments/...), a samo płacenie
odbywa się w UI bramki - PaymentUI to port, który zwraca Completed albo Dismissed.
"""
from abc import ABC, abstractmethod

import requests

from app.domain.errors import (
    CheckoutError,
    DuplicateOrder,
    GatewayUnavailable,
    PersistenceFailed,
    SettlementUnverified,
    ValidationError,
)
from app.domain.models import OrderStatus, PaymentIntent, PaymentOutcome, SettlementCallback, SettlementResult
from app.domain.schemas import OrderIn
from app.utils.retry import http_retry
from app.utils.settings import STOREFRONT_API_URL, GATEWAY_TIMEOUT_SECONDS
from app.utils.logging import get_logger

logger = get_logger(__name__)

_ERRORS_BY_STATUS = {
    400: ValidationError,
    401: SettlementUnverified,
    409: DuplicateOrder,
    503: GatewayUnavailable,
}


class PaymentUI(ABC):
    @abstractmethod
    def present(self, intent: PaymentIntent, prefill: dict) -> PaymentOutcome:
        """Oddaje sterowanie do UI bramki; kończy się Completed(callback) albo Dismissed."""


class StorefrontPaymentClient:
    def __init__(self, ui: PaymentUI, base_url: str | None = None, timeout: int = GATEWAY_TIMEOUT_SECONDS):
        self.ui = ui
        self.base_url = (base_url or STOREFRONT_API_URL).rstrip("/")
        self.timeout = timeout

    @http_retry()
    def _post(self, url: str, body: dict) -> requests.Response:
        return requests.post(url, json=body, timeout=self.timeout)

    @staticmethod
    def _error_message(resp: requests.Response) -> str:
        try:
            return resp.json().get("error") or f"Request failed with status {resp.status_code}"
        except ValueError:
            return f"Request failed with status {resp.status_code}"

    def create_intent(self, amount, currency: str) -> PaymentIntent:
        url = f"{self.base_url}/payments/create-transaction"
        try:
            resp = self._post(url, {"amount": str(amount), "currency": currency})
        except requests.RequestException as e:
            raise GatewayUnavailable("Payment service unavailable, please try again") from e

        if resp.status_code != 200:
            error_cls = ValidationError if resp.status_code == 400 else GatewayUnavailable
            raise error_cls(self._error_message(resp))

        data = resp.json()
        return PaymentIntent(
            gateway_order_id=data["id"],
            amount_minor_units=int(data["amount"]),
            currency=data["currency"],
        )

    def present_payment_ui(self, intent: PaymentIntent, prefill: dict) -> PaymentOutcome:
        return self.ui.present(intent, prefill)

    def settle(self, callback: SettlementCallback, order: OrderIn) -> SettlementResult:
        url = f"{self.base_url}/payments/verify"
        body = {
            "gatewayOrderId": callback.gateway_order_id,
            "gatewayPaymentId": callback.gateway_payment_id,
            "signature": callback.signature,
            "order": order.model_dump(mode="json", by_alias=True),
        }
        try:
            resp = self._post(url, body)
        except requests.RequestException as e:
            #płatność mogła przejść - można ponowić z tym samym order_id
            raise PersistenceFailed("Could not reach the order service, please retry") from e

        if resp.status_code == 200:
            data = resp.json()
            return SettlementResult(
                order_id=data["orderId"],
                status=OrderStatus(data["status"]),
                verified=bool(data["verified"]),
            )

        error_cls: type[CheckoutError] = _ERRORS_BY_STATUS.get(resp.status_code, PersistenceFailed)
        raise error_cls(self._error_message(resp))
