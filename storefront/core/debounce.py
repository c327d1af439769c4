"""
Debounce and coalescing primitives for cart-driven network refreshes.

Bursts of cart changes (rapid quantity clicks) collapse into one call made
after the cart has been quiet for ``delay`` seconds. Only the timer is ever
cancelled; once an action has started it runs to completion.
"""

import asyncio
import hashlib
import logging
from typing import Any, Awaitable, Callable, Iterable, Optional

logger = logging.getLogger(__name__)


def cart_content_hash(entries: Iterable[Any]) -> str:
    """Stable hash of the ordered (identity, quantity) pairs of a cart snapshot"""
    digest = hashlib.sha256()
    for entry in entries:
        if entry.kind == "bundle":
            parts = ("bundle", entry.bundle_id, "", "", str(entry.quantity))
        else:
            parts = ("simple", entry.key.product_id, entry.key.size, entry.key.color, str(entry.quantity))
        for part in parts:
            # Length-prefix each field so no separator character can collide
            encoded = part.encode("utf-8")
            digest.update(len(encoded).to_bytes(4, "big"))
            digest.update(encoded)
    return digest.hexdigest()


class Debouncer:
    """Runs ``action`` once per settled key after ``delay`` seconds of quiet"""

    def __init__(self, delay: float, action: Callable[[], Awaitable[Any]]):
        self.delay = delay
        self._action = action
        self._timer: Optional[asyncio.Task] = None
        self._running: set[asyncio.Task] = set()
        self.settled_key: Optional[str] = None
        self.fired = 0

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def trigger(self, key: str) -> None:
        """Restart the quiet period for ``key``. Needs a running event loop."""
        if self.pending:
            self._timer.cancel()
            self._timer = None

        if key == self.settled_key:
            logger.debug("Content unchanged since last refresh, skipping")
            return

        loop = asyncio.get_running_loop()
        self._timer = loop.create_task(self._wait_then_fire(key))

    def reset(self) -> None:
        """Forget the settled key so the next trigger always fires"""
        self.settled_key = None

    async def _wait_then_fire(self, key: str) -> None:
        await asyncio.sleep(self.delay)
        self.settled_key = key
        self.fired += 1
        task = asyncio.get_running_loop().create_task(self._run())
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    async def _run(self) -> None:
        try:
            await self._action()
        except Exception:
            logger.exception("Debounced refresh failed")

    async def wait(self) -> None:
        """Wait for the pending timer (if any) and every started action"""
        if self._timer is not None:
            try:
                await self._timer
            except asyncio.CancelledError:
                pass
        if self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)
