# app/domain/errors.py


class CheckoutError(Exception):
    """Bazowy błąd checkoutu, status_code mapowany na odpowiedź HTTP."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_body(self) -> dict:
        return {"success": False, "error": self.message}


class ValidationError(CheckoutError):
    status_code = 400


class InvalidOrder(ValidationError):
    pass


class OutOfStock(CheckoutError):
    status_code = 409

    def __init__(self, available: int, in_cart: int, message: str | None = None):
        super().__init__(
            message
            or f"Only {available} available in stock. You already have {in_cart} in cart."
        )
        self.available = available
        self.in_cart = in_cart

    def to_body(self) -> dict:
        body = super().to_body()
        body["available"] = self.available
        body["inCart"] = self.in_cart
        return body


class Unauthenticated(CheckoutError):
    status_code = 401


class GatewayUnavailable(CheckoutError):
    status_code = 503


class SettlementUnverified(CheckoutError):
    status_code = 401


class PersistenceFailed(CheckoutError):
    status_code = 500


class NotFound(CheckoutError):
    status_code = 404


class DuplicateOrder(CheckoutError):
    status_code = 409


class InvalidTransition(CheckoutError):
    status_code = 409
