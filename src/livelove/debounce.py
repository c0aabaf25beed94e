"""Replace-or-schedule timers, one per event key."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Hashable

logger = logging.getLogger(__name__)


class Debouncer:
    def __init__(
        self, delay: float, *, loop: asyncio.AbstractEventLoop | None = None
    ) -> None:
        self.delay = delay
        self._loop = loop
        self._pending: dict[Hashable, asyncio.TimerHandle] = {}

    def schedule(self, key: Hashable, action: Callable[[], None]) -> None:
        """Run `action` after the delay unless `key` is scheduled again first."""
        previous = self._pending.pop(key, None)
        if previous is not None:
            previous.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._pending[key] = loop.call_later(self.delay, self._fire, key, action)

    def _fire(self, key: Hashable, action: Callable[[], None]) -> None:
        self._pending.pop(key, None)
        try:
            action()
        except Exception:
            logger.exception("debounced action for %r failed", key)

    def pending(self, key: Hashable) -> bool:
        return key in self._pending

    def cancel_all(self) -> None:
        for handle in self._pending.values():
            handle.cancel()
        self._pending.clear()
