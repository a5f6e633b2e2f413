"""
cart.py — Cart Store

Owns the line items of the current cart. All mutation goes through the methods
of `CartStore`; readers get immutable snapshots and may subscribe to be notified
after every change.

Invariants (enforced on every mutation):
    • one line per itemCode (adding an existing code merges quantities)
    • quantity >= 1 (lower values are clamped to 1)
    • insertion order is preserved

The store is used from a single event loop and is not thread-safe. Cart
contents live only in memory and do not survive a restart.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple

from .models import CartLineItem
from .pricing import cart_total, line_subtotal, resolve_price

log = logging.getLogger(__name__)

Snapshot = Tuple[CartLineItem, ...]
Listener = Callable[[Snapshot], None]


class CartStore:
    """
    Single owned container for the cart's line items.
    """

    def __init__(self):
        self._lines: Dict[str, CartLineItem] = {}
        self._listeners: List[Listener] = []

    # --- Mutations ---

    def add_or_merge_item(self, item: CartLineItem, quantity: int = 1):
        """
        Adds `quantity` units of `item` to the cart.

        If a line with the same itemCode exists, its quantity is increased;
        otherwise a new line is appended. The resulting quantity is clamped to >= 1.

        Args:
            item (CartLineItem): Catalog data for the line (its own quantity is ignored).
            quantity (int): Units to add.
        """
        existing = self._lines.get(item.itemCode)
        if existing is not None:
            new_qty = max(1, existing.quantity + quantity)
            self._lines[item.itemCode] = existing.model_copy(update={"quantity": new_qty})
            log.info(f"[Cart] {item.itemCode}: quantity {existing.quantity} -> {new_qty} (merged).")
        else:
            self._lines[item.itemCode] = item.model_copy(update={"quantity": max(1, quantity)}, deep=True)
            log.info(f"[Cart] {item.itemCode} added (quantity {max(1, quantity)}).")
        self._notify()

    def update_quantity(self, item_code: str, new_qty: int):
        """Sets the quantity of a line to `max(1, new_qty)`. Unknown codes are ignored."""
        existing = self._lines.get(item_code)
        if existing is None:
            log.debug(f"[Cart] update_quantity ignored, {item_code} not in cart.")
            return
        self._lines[item_code] = existing.model_copy(update={"quantity": max(1, new_qty)})
        self._notify()

    def remove_item(self, item_code: str):
        if self._lines.pop(item_code, None) is None:
            return
        log.info(f"[Cart] {item_code} removed.")
        self._notify()

    def clear(self):
        if not self._lines:
            return
        self._lines.clear()
        log.info("[Cart] Cleared.")
        self._notify()

    # --- Reads ---

    def list(self) -> Snapshot:
        """Returns the current lines in insertion order as an immutable snapshot."""
        return tuple(line.model_copy(deep=True) for line in self._lines.values())

    def get(self, item_code: str) -> Optional[CartLineItem]:
        line = self._lines.get(item_code)
        return line.model_copy(deep=True) if line is not None else None

    def __len__(self):
        return len(self._lines)

    def __contains__(self, item_code):
        return item_code in self._lines

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def unit_price(self, item_code: str, today: Optional[date] = None) -> Optional[Decimal]:
        line = self._lines.get(item_code)
        return resolve_price(line, today) if line is not None else None

    def subtotals(self, today: Optional[date] = None) -> Dict[str, Decimal]:
        return {code: line_subtotal(line, today) for code, line in self._lines.items()}

    def total(self, today: Optional[date] = None) -> Decimal:
        return cart_total(self._lines.values(), today)

    # --- Subscription ---

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Registers `listener` to be called with a fresh snapshot after every change.

        Returns:
            Callable[[], None]: Function that removes the subscription.
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self):
        if not self._listeners:
            return
        snapshot = self.list()
        for listener in list(self._listeners):
            listener(snapshot)
