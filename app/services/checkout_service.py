# app/services/checkout_service.py
import secrets
import string
import threading
import time
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Callable, Protocol

from app.domain.cart import Cart, StockLookup
from app.domain.errors import (
    CheckoutError,
    GatewayUnavailable,
    InvalidTransition,
    OutOfStock,
    PersistenceFailed,
    ValidationError,
)
from app.domain.models import (
    Dismissed,
    OrderStatus,
    PaymentIntent,
    PaymentOutcome,
    SettlementCallback,
    SettlementResult,
)
from app.domain.schemas import Address, AddressSnapshot, OrderIn, OrderLineIn
from app.services.address_client import AddressResolver
from app.services.identity_client import IdentityProvider
from app.utils.settings import DEFAULT_CURRENCY
from app.utils.logging import get_logger

logger = get_logger(__name__)


class CheckoutState(str, Enum):
    CART = "Cart"
    AUTHENTICATING = "Authenticating"
    COLLECTING_ADDRESS = "CollectingAddress"
    CONFIRMING_ADDRESS = "ConfirmingAddress"
    PAYING = "Paying"
    SETTLED = "Settled"


_TRANSITIONS = {
    CheckoutState.CART: {
        CheckoutState.AUTHENTICATING,
        CheckoutState.COLLECTING_ADDRESS,
        CheckoutState.CONFIRMING_ADDRESS,
    },
    CheckoutState.AUTHENTICATING: {
        CheckoutState.COLLECTING_ADDRESS,
        CheckoutState.CONFIRMING_ADDRESS,
        CheckoutState.CART,
    },
    CheckoutState.COLLECTING_ADDRESS: {CheckoutState.CONFIRMING_ADDRESS, CheckoutState.CART},
    CheckoutState.CONFIRMING_ADDRESS: {
        CheckoutState.PAYING,
        CheckoutState.COLLECTING_ADDRESS,
        CheckoutState.CART,
    },
    CheckoutState.PAYING: {
        CheckoutState.SETTLED,
        CheckoutState.CART,
        CheckoutState.CONFIRMING_ADDRESS,
    },
    CheckoutState.SETTLED: set(),
}

_PRE_PAYMENT_STATES = (
    CheckoutState.AUTHENTICATING,
    CheckoutState.COLLECTING_ADDRESS,
    CheckoutState.CONFIRMING_ADDRESS,
)


class CheckoutPayments(Protocol):
    def create_intent(self, amount: Decimal, currency: str) -> PaymentIntent: ...

    def present_payment_ui(self, intent: PaymentIntent, prefill: dict) -> PaymentOutcome: ...

    def settle(self, callback: SettlementCallback, order: OrderIn) -> SettlementResult: ...


def new_order_id() -> str:
    suffix = "".join(secrets.choice(string.ascii_lowercase + string.digits) for _ in range(9))
    return f"ORD_{int(time.time() * 1000)}_{suffix}"


class CheckoutStateMachine:
    """
    Orkiestrator checkoutu: Cart -> (Authenticating) -> CollectingAddress/ConfirmingAddress
    -> Paying -> Settled.

    Wszystkie zależności (tożsamość, adresy, płatności, katalog) przychodzą
    w konstruktorze. Płatność może być w toku tylko raz naraz - kolejne
    "proceed"/"confirm" są ignorowane do czasu jej zakończenia.
    Koszyk jest czyszczony tylko po udanym zapisie w ledgerze.
    """

    def __init__(
        self,
        cart: Cart,
        identity: IdentityProvider,
        addresses: AddressResolver,
        payments: CheckoutPayments,
        catalog: StockLookup,
        currency: str = DEFAULT_CURRENCY,
        order_id_factory: Callable[[], str] = new_order_id,
    ):
        self.cart = cart
        self.identity = identity
        self.addresses = addresses
        self.payments = payments
        self.catalog = catalog
        self.currency = currency
        self.order_id_factory = order_id_factory

        self.state = CheckoutState.CART
        self.history: list[CheckoutState] = [CheckoutState.CART]
        self.user = None
        self.address: Address | None = None
        self.result: SettlementResult | None = None
        #(callback, order) zapłaconego zamówienia, którego zapis się nie udał
        self.pending: tuple[SettlementCallback, OrderIn] | None = None

        self._payment_lock = threading.Lock()
        self._unsubscribe = cart.subscribe(self._on_cart_changed)

    @property
    def payment_in_flight(self) -> bool:
        return self._payment_lock.locked()

    # =====================================================
    # transitions
    # =====================================================
    def _transition(self, target: CheckoutState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise InvalidTransition(f"Cannot move from {self.state.value} to {target.value}")
        logger.info(f"Checkout {self.state.value} -> {target.value}")
        self.state = target
        self.history.append(target)

    def _require(self, *states: CheckoutState) -> None:
        if self.state not in states:
            raise InvalidTransition(f"Action not allowed in state {self.state.value}")

    def _on_cart_changed(self, cart: Cart) -> None:
        #pusty koszyk w trakcie kroków przed płatnością -> powrót do koszyka
        if cart.is_empty() and self.state in _PRE_PAYMENT_STATES and self.pending is None:
            self._transition(CheckoutState.CART)

    def _route_by_address(self) -> CheckoutState:
        try:
            address = self.addresses.get(self.user.user_id)
        except CheckoutError as e:
            logger.warning(f"Address lookup failed for user {self.user.user_id}: {e.message}")
            address = None

        self.address = address
        if address:
            self._transition(CheckoutState.CONFIRMING_ADDRESS)
        else:
            self._transition(CheckoutState.COLLECTING_ADDRESS)
        return self.state

    # =====================================================
    # user actions
    # =====================================================
    def proceed(self) -> CheckoutState:
        if self.payment_in_flight:
            logger.info("Payment already in flight, ignoring proceed")
            return self.state

        self._require(CheckoutState.CART)
        if self.cart.is_empty():
            raise ValidationError("Your cart is empty")

        user = self.identity.current_user()
        if user is None:
            self._transition(CheckoutState.AUTHENTICATING)
            return self.state

        self.user = user
        return self._route_by_address()

    def authenticate(self, email: str, password: str) -> CheckoutState:
        self._require(CheckoutState.AUTHENTICATING)
        self.user = self.identity.authenticate(email, password)
        return self._route_by_address()

    def save_address(self, address: Address) -> CheckoutState:
        self._require(CheckoutState.COLLECTING_ADDRESS)
        address = address.model_copy(update={"user_id": self.user.user_id})
        self.address = self.addresses.save(address)
        self._transition(CheckoutState.CONFIRMING_ADDRESS)
        return self.state

    def edit_address(self) -> CheckoutState:
        self._require(CheckoutState.CONFIRMING_ADDRESS)
        self._transition(CheckoutState.COLLECTING_ADDRESS)
        return self.state

    def cancel(self) -> CheckoutState:
        if self.payment_in_flight:
            logger.info("Payment in flight, cancel is driven by the gateway UI")
            return self.state
        if self.state == CheckoutState.SETTLED:
            raise InvalidTransition("Checkout already settled")
        if self.state != CheckoutState.CART:
            self._transition(CheckoutState.CART)
        return self.state

    def confirm_address(self) -> CheckoutState:
        if not self._payment_lock.acquire(blocking=False):
            logger.info("Payment already in flight, ignoring confirm")
            return self.state
        try:
            self._require(CheckoutState.CONFIRMING_ADDRESS)
            if self.pending is not None:
                raise InvalidTransition(
                    f"Order {self.pending[1].order_id} is paid but not recorded, retry the settlement"
                )
            return self._pay()
        finally:
            self._payment_lock.release()

    def retry_settlement(self) -> CheckoutState:
        """Ponowienie zapisu zapłaconego zamówienia z tym samym order_id."""
        if not self._payment_lock.acquire(blocking=False):
            return self.state
        try:
            self._require(CheckoutState.CONFIRMING_ADDRESS)
            if self.pending is None:
                raise InvalidTransition("No settlement is waiting for retry")
            callback, order = self.pending
            self._transition(CheckoutState.PAYING)
            return self._settle(callback, order)
        finally:
            self._payment_lock.release()

    # =====================================================
    # payment
    # =====================================================
    def _pay(self) -> CheckoutState:
        if self.cart.is_empty():
            raise ValidationError("Your cart is empty")

        #brak towaru - zostajemy na potwierdzeniu adresu, użytkownik poprawia koszyk
        self.cart.revalidate(self.catalog)

        self._transition(CheckoutState.PAYING)
        try:
            intent = self.payments.create_intent(self.cart.total(), self.currency)
            order = self._build_order(intent)
            outcome = self.payments.present_payment_ui(intent, self._prefill())
        except CheckoutError:
            #nie ma jeszcze callbacku, więc nic nie zostało zapłacone
            self._transition(CheckoutState.CONFIRMING_ADDRESS)
            raise

        if isinstance(outcome, Dismissed):
            logger.info(f"Payment UI dismissed for intent {intent.gateway_order_id}")
            self._transition(CheckoutState.CART)
            return self.state

        return self._settle(outcome.callback, order)

    def _settle(self, callback: SettlementCallback, order: OrderIn) -> CheckoutState:
        try:
            self.result = self.payments.settle(callback, order)
        except (PersistenceFailed, GatewayUnavailable) as e:
            self.pending = (callback, order)
            logger.critical(
                f"Order {order.order_id} paid (payment {callback.gateway_payment_id}) "
                f"but not recorded: {e.message}"
            )
            self._transition(CheckoutState.CONFIRMING_ADDRESS)
            raise
        except (ValidationError, OutOfStock):
            self.pending = None
            self._transition(CheckoutState.CONFIRMING_ADDRESS)
            raise
        except CheckoutError:
            self.pending = None
            self._transition(CheckoutState.CART)
            raise

        self.pending = None
        self.cart.clear()
        self._transition(CheckoutState.SETTLED)
        self._unsubscribe()
        logger.info(f"Checkout settled, order {self.result.order_id} ({self.result.status.value})")
        return self.state

    def _prefill(self) -> dict:
        return {
            "name": self.address.full_name,
            "email": self.user.email,
            "contact": self.address.phone_number,
        }

    def _build_order(self, intent: PaymentIntent) -> OrderIn:
        snapshot = AddressSnapshot.model_validate(
            self.address.model_dump(exclude={"user_id", "is_default"})
        )
        return OrderIn(
            order_id=self.order_id_factory(),
            user_id=self.user.user_id,
            user_email=self.user.email,
            status=OrderStatus.PAID,
            total_amount=self.cart.total(),
            currency=self.currency,
            shipping_address=snapshot,
            items=[
                OrderLineIn(
                    product_id=line.product_id,
                    product_name=line.product_name,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    line_total=line.line_total,
                    size=line.size,
                    image=line.image,
                )
                for line in self.cart.lines
            ],
            gateway_order_id=intent.gateway_order_id,
            created_at=datetime.now(timezone.utc),
        )
