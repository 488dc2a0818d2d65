# app/services/product_client.py
import requests

from app.domain.cart import available_stock
from app.domain.errors import NotFound, ValidationError
from app.utils.retry import http_retry
from app.utils.settings import PRODUCT_SERVICE_URL, HTTP_TIMEOUT_SECONDS
from app.utils.logging import get_logger

logger = get_logger(__name__)


class ProductClient:
    """Klient katalogu produktów: cena, nazwa i stan magazynu per rozmiar."""

    def __init__(self, base_url: str | None = None, timeout: int = HTTP_TIMEOUT_SECONDS):
        self.base_url = (base_url or PRODUCT_SERVICE_URL).rstrip("/")
        self.timeout = timeout

    @http_retry()
    def _get(self, url: str) -> requests.Response:
        return requests.get(url, timeout=self.timeout)

    def fetch_product(self, product_id: str) -> dict:
        url = f"{self.base_url}/products/{product_id}"
        logger.info(f"ProductClient GET {url}")

        resp = self._get(url)
        if resp.status_code == 404:
            raise NotFound(f"Product {product_id} not found")
        resp.raise_for_status()
        return resp.json()

    def available_stock(self, product_id: str, size: str) -> int:
        product = self.fetch_product(product_id)
        if product.get("stock") and size not in product["stock"]:
            raise ValidationError(f"Size {size} is not offered for product {product_id}")
        return available_stock(product, size)


def get_product_client() -> ProductClient:
    """Zależność FastAPI, w testach nadpisywana."""
    return ProductClient()
