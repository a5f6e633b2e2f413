"""
context_cache.py — Client/Category Context Cache

Remembers the last selected customer and the catalog's category list across
restarts, on top of a KeyValueStore (storage.py).

Both lookups share one pattern, `CachedLookup`: return the persisted value if it
is present and readable, otherwise fetch, persist and return. A corrupt record
behaves like a missing one.

There is no TTL. Cached categories stay authoritative until a caller forces a
refresh (`get_categories(force_refresh=True)` or `invalidate_categories()`).
"""

import logging
from typing import Awaitable, Callable, Generic, List, Optional, TypeVar

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .config import DEFAULT_PRICE_LIST
from .errors import CacheCorruptionError
from .models import OFFERS_CATEGORY, OFFERS_CATEGORY_CODE, ProductCategory, SelectedCustomer
from .storage import KeyValueStore

log = logging.getLogger(__name__)

T = TypeVar("T")

SELECTED_CLIENT_KEY = "selectedClient"
CACHED_CATEGORIES_KEY = "cachedCategories"

_categories_adapter = TypeAdapter(List[ProductCategory])


class CachedLookup(Generic[T]):
    """
    Cache-or-fetch lookup for a single key.

    Args:
        store (KeyValueStore): Persistent store.
        key (str): Storage key.
        adapter (TypeAdapter): Pydantic adapter used to (de)serialize the value as JSON.
        fetch (Callable[[], Awaitable[T]] | None): Producer of a fresh value. Lookups
            without a fetch function only ever return the cached value.
    """

    def __init__(self, store: KeyValueStore, key: str, adapter: TypeAdapter,
                 fetch: Optional[Callable[[], Awaitable[T]]] = None):
        self.store = store
        self.key = key
        self.adapter = adapter
        self.fetch = fetch

    def read(self) -> Optional[T]:
        """Returns the cached value, or None when absent or corrupt."""
        raw = self.store.get(self.key)
        if raw is None:
            return None
        try:
            return self._decode(raw)
        except CacheCorruptionError as e:
            log.warning(f"[Cache] {e.message}. Treating as cache miss.")
            return None

    def write(self, value: T):
        self.store.set(self.key, self.adapter.dump_json(value).decode("utf-8"))

    def invalidate(self):
        self.store.delete(self.key)

    async def get(self, force_refresh: bool = False) -> Optional[T]:
        """
        Returns the cached value, fetching a fresh one on miss or when forced.

        Raises:
            OrderServiceError: Whatever the fetch function raises (nothing is
                persisted in that case).
        """
        if not force_refresh:
            cached = self.read()
            if cached is not None:
                return cached
        if self.fetch is None:
            return None
        value = await self.fetch()
        self.write(value)
        return value

    def _decode(self, raw: str) -> T:
        try:
            return self.adapter.validate_json(raw)
        except (PydanticValidationError, ValueError) as e:
            raise CacheCorruptionError(self.key, e) from e


def with_offers_category(categories: List[ProductCategory]) -> List[ProductCategory]:
    """Prepends the synthetic "Ofertas" category, dropping any remote duplicate of it."""
    remote = [c for c in categories if c.code != OFFERS_CATEGORY_CODE]
    return [OFFERS_CATEGORY.model_copy()] + remote


class ContextCache:
    """
    Persistent customer and category context of the sales agent.

    Args:
        store (KeyValueStore): Persistent store.
        fetch_categories (Callable[[], Awaitable[list[ProductCategory]]] | None):
            Remote category fetch, typically `CatalogClient.fetch_categories`.
    """

    def __init__(self, store: KeyValueStore,
                 fetch_categories: Optional[Callable[[], Awaitable[List[ProductCategory]]]] = None):
        self.store = store
        self._customer = CachedLookup(store, SELECTED_CLIENT_KEY, TypeAdapter(SelectedCustomer))
        self._categories = CachedLookup(store, CACHED_CATEGORIES_KEY, _categories_adapter,
                                        fetch=self._fetch_categories)
        self._remote_categories = fetch_categories

    # --- Customer ---

    def save_selected_customer(self, customer: SelectedCustomer):
        self._customer.write(customer)
        log.info(f"[Cache] Customer saved: {customer.cardName} ({customer.cardCode}).")

    def load_selected_customer(self) -> Optional[SelectedCustomer]:
        customer = self._customer.read()
        if customer is not None:
            log.info(f"[Cache] Customer loaded: {customer.cardName} ({customer.cardCode}).")
        return customer

    def resolve_price_list(self, current: Optional[SelectedCustomer] = None) -> str:
        """
        Price list for catalog browsing.

        An in-memory customer wins and is persisted; otherwise the persisted
        customer is used; otherwise the default price list.
        """
        if current is not None:
            self.save_selected_customer(current)
            return current.effective_price_list
        persisted = self.load_selected_customer()
        if persisted is not None:
            return persisted.effective_price_list
        return DEFAULT_PRICE_LIST

    # --- Categories ---

    async def get_categories(self, force_refresh: bool = False) -> List[ProductCategory]:
        """
        Returns the category list, "Ofertas" first.

        Args:
            force_refresh (bool): Ignore the cache and fetch from the backend.

        Raises:
            AuthError | NetworkError | ServerError: When a fetch is needed and fails.
        """
        categories = await self._categories.get(force_refresh=force_refresh)
        return categories or []

    def invalidate_categories(self):
        self._categories.invalidate()

    async def _fetch_categories(self) -> List[ProductCategory]:
        if self._remote_categories is None:
            raise RuntimeError("No category fetch function configured.")
        categories = with_offers_category(await self._remote_categories())
        log.info(f"[Catalog] {len(categories)} categories fetched and cached.")
        return categories
