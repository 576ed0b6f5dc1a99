# checkout/services/catalog_client.py
from decimal import Decimal

import requests

from checkout.domain.errors import ProductNotFound
from checkout.domain.pricing import to_decimal
from checkout.utils.retry import http_retry
from checkout.utils.settings import CATALOG_API_URL, HTTP_TIMEOUT_SECONDS
from checkout.utils.logging import get_logger

logger = get_logger(__name__)


class CatalogClient:
    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = (base_url or CATALOG_API_URL).rstrip("/")
        self.timeout = timeout or HTTP_TIMEOUT_SECONDS

    @http_retry()
    def fetch_product(self, product_id: int) -> dict:
        url = f"{self.base_url}/products/{product_id}"
        logger.info(f"CatalogClient GET {url}")

        resp = requests.get(url, timeout=self.timeout)
        if resp.status_code == 404:
            raise ProductNotFound(f"Product {product_id} not found")
        resp.raise_for_status()

        body = resp.json()
        #catalog api wraps it as {"status", "data": {"product": {...}}}, the dev mock does not
        if isinstance(body, dict) and "data" in body:
            return (body.get("data") or {}).get("product") or {}
        return body

    def validate(self, product_id: int) -> Decimal:
        """Price of the product right now, or ProductNotFound."""
        return self.price_of(self.fetch_product(product_id), product_id)

    @staticmethod
    def price_of(product: dict, product_id: int | None = None) -> Decimal:
        if product.get("price") is None:
            raise ProductNotFound(f"Product {product_id} has no price")
        return to_decimal(product["price"])

    @staticmethod
    def currency_of(product: dict) -> str | None:
        currency = product.get("currency")
        return currency.upper() if currency else None
