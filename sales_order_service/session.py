"""
session.py — Per-Agent Sales Session

Wires the core components together for one sales agent: the cart, the debounced
search and comment channels, the persistent context cache, the selected customer
and the order submission pipeline.
"""

import logging
from typing import Optional

import httpx

from .cart import CartStore
from .clients import CatalogClient, OrderClient
from .config import COMMENTS_DEBOUNCE_MS, OMS_BASE_URL, SEARCH_DEBOUNCE_MS
from .context_cache import ContextCache
from .debounce import DebouncedChannel
from .errors import SubmissionInProgressError
from .models import AuthContext, SelectedCustomer
from .storage import KeyValueStore
from .workflow import OrderSubmissionPipeline, SubmissionState

log = logging.getLogger(__name__)


class SalesSession:
    """
    Owns all state of one agent's session.

    Args:
        store (KeyValueStore): Persistent store for the customer/category context.
        base_url (str): OMS base URL.
        transport (httpx.AsyncBaseTransport | None): Transport for the OMS clients.
    """

    def __init__(self, store: KeyValueStore, base_url: str = OMS_BASE_URL,
                 transport: Optional[httpx.AsyncBaseTransport] = None, feedback=None):
        self.store = store
        self.base_url = base_url
        self.transport = transport
        self.cart = CartStore()
        self.search = DebouncedChannel(SEARCH_DEBOUNCE_MS, name="search")
        self.comments = DebouncedChannel(COMMENTS_DEBOUNCE_MS, name="comments")
        self.context = ContextCache(store)
        self._customer: Optional[SelectedCustomer] = None
        self.pipeline = OrderSubmissionPipeline(
            cart=self.cart,
            comments=self.comments,
            client=self.order_client(AuthContext()),
            customer_provider=lambda: self.customer,
            feedback=feedback,
        )

    @property
    def customer(self) -> Optional[SelectedCustomer]:
        """In-memory customer, falling back to the persisted one on a cold start."""
        if self._customer is None:
            self._customer = self.context.load_selected_customer()
        return self._customer

    def select_customer(self, customer: SelectedCustomer):
        self._customer = customer
        self.context.save_selected_customer(customer)

    def catalog_client(self, auth: AuthContext) -> CatalogClient:
        return CatalogClient(auth, base_url=self.base_url, transport=self.transport)

    def order_client(self, auth: AuthContext) -> OrderClient:
        return OrderClient(auth, base_url=self.base_url, transport=self.transport)

    def categories_cache(self, catalog: CatalogClient) -> ContextCache:
        return ContextCache(self.store, fetch_categories=catalog.fetch_categories)

    async def submit_order(self, auth: AuthContext):
        """
        Submits the cart with the caller's credential.

        Raises:
            SubmissionInProgressError: If a submission is already running.
        """
        if self.pipeline.state in (SubmissionState.VALIDATING, SubmissionState.SUBMITTING):
            raise SubmissionInProgressError()
        previous = self.pipeline.client
        self.pipeline.client = self.order_client(auth)
        self.pipeline.auth = auth
        try:
            return await self.pipeline.submit()
        finally:
            await previous.aclose()

    async def close(self):
        self.search.close()
        self.comments.close()
        await self.pipeline.client.aclose()
