"""
clients.py — HTTP Clients for the Order Management System (OMS)

Two thin async clients over the OMS REST API:
    - CatalogClient: GET  /items/categories
    - OrderClient:   POST /orders

Both authenticate with the agent's bearer token. A missing token is rejected
before any request is made. httpx failures are logged and re-raised as
classified errors (see errors.py); no request is ever retried here.
"""

import logging
from typing import List, Optional

import httpx

from .config import OMS_BASE_URL, OMS_CONNECT_TIMEOUT, OMS_READ_TIMEOUT
from .errors import AuthError, ServerError, classify_http_error
from .models import AuthContext, OrderPayload, ProductCategory

log = logging.getLogger(__name__)


class _OMSClient:
    """
    Shared httpx.AsyncClient setup for the OMS.

    Args:
        auth (AuthContext): Bearer credential of the calling agent.
        base_url (str): OMS base URL.
        transport (httpx.AsyncBaseTransport | None): Custom transport (tests, ASGI apps).
    """

    def __init__(self, auth: AuthContext, base_url: str = OMS_BASE_URL,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.auth = auth
        timeout_config = httpx.Timeout(OMS_CONNECT_TIMEOUT, read=OMS_READ_TIMEOUT)
        self.client = httpx.AsyncClient(base_url=base_url, timeout=timeout_config, transport=transport)

    def _headers(self) -> dict:
        if not self.auth.authenticated:
            raise AuthError()
        return {**self.auth.headers(), "Content-Type": "application/json"}

    async def aclose(self):
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()


class CatalogClient(_OMSClient):
    """Client for the catalog endpoints of the OMS."""

    async def fetch_categories(self) -> List[ProductCategory]:
        """
        Fetches the product categories of the catalog.

        Returns:
            list[ProductCategory]: Categories in backend order, with derived slugs.
            The synthetic "Ofertas" category is NOT included here.

        Raises:
            AuthError: If no token is available or the backend rejects it.
            NetworkError: If the backend cannot be reached.
            ServerError: On any other non-2xx response or a malformed body.
        """
        headers = self._headers()
        try:
            response = await self.client.get("/items/categories", headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            log.error(f"[Catalog] Category fetch failed: HTTP {e.response.status_code}")
            raise classify_http_error(e) from e
        except httpx.TransportError as e:
            log.error(f"[Catalog] Category fetch failed, backend unreachable: {e!r}")
            raise classify_http_error(e) from e

        try:
            body = response.json()
            return [ProductCategory(code=str(entry["code"]), name=entry["name"]) for entry in body]
        except (ValueError, KeyError, TypeError) as e:
            log.error(f"[Catalog] Unexpected category payload: {e!r}")
            raise ServerError(response.status_code, "Respuesta de categorías inválida.") from e


class OrderClient(_OMSClient):
    """Client for order creation in the OMS."""

    async def create_order(self, payload: OrderPayload) -> dict:
        """
        Creates a sales order.

        Args:
            payload (OrderPayload): The complete order document.

        Returns:
            dict: Backend response, containing `docEntry` on success. Empty when
            the OMS accepted the order with a body that is not a JSON object.

        Raises:
            AuthError: If no token is available or the backend rejects it.
            NetworkError: If the backend cannot be reached (no response).
            ServerError: On any non-2xx response.
        """
        headers = self._headers()
        log_prefix = f"[Order: {payload.cardCode}]"
        try:
            response = await self.client.post("/orders", json=payload.model_dump(mode="json"), headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                log.error(f"{log_prefix} Order route not found (404), check OMS_BASE_URL.")
            else:
                log.error(f"{log_prefix} Order rejected: HTTP {e.response.status_code} {e.response.text[:200]}")
            raise classify_http_error(e) from e
        except httpx.TransportError as e:
            log.error(f"{log_prefix} OMS unreachable: {e!r}")
            raise classify_http_error(e) from e

        # The order exists once the OMS answered 2xx, whatever the body looks like
        try:
            body = response.json()
        except ValueError:
            log.warning(f"{log_prefix} Order accepted (HTTP {response.status_code}) with a non-JSON body.")
            return {}
        return body if isinstance(body, dict) else {}
