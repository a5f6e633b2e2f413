"""
debounce.py — Debounced Text Channel

Turns a rapidly changing text input (product search box, order comments) into a
settled value that only updates after the input has been quiet for `delay_ms`.

State machine:
    IDLE ── set_raw() ──> PENDING(deadline) ── timer fires ──> IDLE (settled = raw)
    PENDING ── set_raw() ──> PENDING(new deadline)   (old timer cancelled)
    any ── clear() ──> IDLE (raw = settled = "")
    any ── close() ──> CLOSED (timer cancelled, no callback fires afterwards)

The timer is an `asyncio.TimerHandle` on the running event loop, so the channel
must be created and used from within that loop.
"""

import asyncio
import enum
import logging
from typing import Callable, Optional

log = logging.getLogger(__name__)


class ChannelState(str, enum.Enum):
    IDLE = "idle"
    PENDING = "pending"
    CLOSED = "closed"


class DebouncedChannel:
    """
    Raw/settled text pair with a cancellable settle timer.

    Args:
        delay_ms (int): Quiet period before `raw` is copied to `settled`.
        on_settle (Callable[[str], None] | None): Called with the new settled value.
        name (str): Label used in log messages.
    """

    def __init__(self, delay_ms: int, on_settle: Optional[Callable[[str], None]] = None,
                 name: str = "channel", loop: Optional[asyncio.AbstractEventLoop] = None):
        self.delay_ms = delay_ms
        self.name = name
        self.raw = ""
        self.settled = ""
        self._on_settle = on_settle
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self._closed = False

    @property
    def state(self) -> ChannelState:
        if self._closed:
            return ChannelState.CLOSED
        if self._handle is not None:
            return ChannelState.PENDING
        return ChannelState.IDLE

    @property
    def deadline(self) -> Optional[float]:
        """Loop time at which the pending value settles, None when idle."""
        return self._handle.when() if self._handle is not None else None

    def set_raw(self, value: str):
        """Updates `raw` immediately and (re)starts the settle timer."""
        if self._closed:
            raise RuntimeError(f"Debounced channel '{self.name}' is closed.")
        self.raw = value
        self._cancel_pending()
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay_ms / 1000, self._settle)

    def clear(self):
        """Resets `raw` and `settled` to "" right away, bypassing the delay."""
        self._cancel_pending()
        self.raw = ""
        changed = self.settled != ""
        self.settled = ""
        if changed and not self._closed:
            self._emit()

    def flush(self):
        """Settles a pending value immediately. No-op when idle."""
        if self._handle is not None:
            self._cancel_pending()
            self._settle()

    def close(self):
        """Cancels any pending timer; the channel cannot be written afterwards."""
        self._cancel_pending()
        self._closed = True

    def _cancel_pending(self):
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _settle(self):
        self._handle = None
        if self._closed:
            return
        if self.settled == self.raw:
            return
        self.settled = self.raw
        self._emit()

    def _emit(self):
        log.debug(f"[{self.name}] settled: {self.settled!r}")
        if self._on_settle is not None:
            self._on_settle(self.settled)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.close()
