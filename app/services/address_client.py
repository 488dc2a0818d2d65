# app/services/address_client.py
from abc import ABC, abstractmethod

import requests

from app.domain.errors import CheckoutError, ValidationError
from app.domain.schemas import Address
from app.utils.retry import http_retry
from app.utils.settings import ADDRESS_SERVICE_URL, HTTP_TIMEOUT_SECONDS
from app.utils.logging import get_logger

logger = get_logger(__name__)


class AddressResolver(ABC):
    @abstractmethod
    def get(self, user_id: str) -> Address | None:
        """Jedyny adres użytkownika albo None."""

    @abstractmethod
    def save(self, address: Address) -> Address:
        """Tworzy albo nadpisuje adres użytkownika."""


class AddressApiClient(AddressResolver):
    def __init__(self, base_url: str | None = None, timeout: int = HTTP_TIMEOUT_SECONDS):
        self.base_url = (base_url or ADDRESS_SERVICE_URL).rstrip("/")
        self.timeout = timeout

    @http_retry()
    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        return requests.request(method, url, timeout=self.timeout, **kwargs)

    def get(self, user_id: str) -> Address | None:
        url = f"{self.base_url}/api/address/{user_id}"
        logger.info(f"AddressApiClient GET {url}")

        try:
            resp = self._request("GET", url)
            if resp.status_code == 404:
                return None
            resp.raise_for_status()
        except requests.RequestException as e:
            raise CheckoutError("Address service unavailable") from e

        data = dict(resp.json()["data"])
        #serwis adresów używa nazwy pinCode
        if "pinCode" in data and "postalCode" not in data:
            data["postalCode"] = data.pop("pinCode")
        return Address.model_validate(data)

    def save(self, address: Address) -> Address:
        url = f"{self.base_url}/api/address"
        logger.info(f"AddressApiClient POST {url} for user {address.user_id}")

        body = address.model_dump(mode="json", by_alias=True)
        body["pinCode"] = body.pop("postalCode")

        try:
            resp = self._request("POST", url, json=body)
        except requests.RequestException as e:
            raise CheckoutError("Failed to save address. Please try again later.") from e

        if resp.status_code == 400:
            raise ValidationError(resp.json().get("error") or "Invalid address")
        if resp.status_code >= 300:
            raise CheckoutError("Failed to save address. Please try again later.")
        return address
