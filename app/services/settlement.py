# app/services/settlement.py
import hashlib
import hmac

from app.domain.models import SettlementCallback


def sign_settlement(gateway_order_id: str, gateway_payment_id: str, secret: str) -> str:
    body = f"{gateway_order_id}|{gateway_payment_id}"
    return hmac.new(secret.encode("utf-8"), body.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_settlement(callback: SettlementCallback | None, secret: str) -> bool:
    """
    HMAC_SHA256(order_id + "|" + payment_id, secret) porównany w stałym czasie.
    Brak któregokolwiek pola (albo sekretu) = niezweryfikowane, nigdy "pomiń weryfikację".
    """
    if callback is None or not secret:
        return False
    if not (callback.gateway_order_id and callback.gateway_payment_id and callback.signature):
        return False

    expected = sign_settlement(callback.gateway_order_id, callback.gateway_payment_id, secret)
    return hmac.compare_digest(expected.encode("utf-8"), callback.signature.encode("utf-8"))
