"""Per-vault debounce timers on the asyncio event loop."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict

from vaultcache.keys import VaultPath, canonical_vault

LOGGER = logging.getLogger(__name__)

SaveAction = Callable[[], object]


class SaveScheduler:
    """Coalesce repeated save requests into one delayed call per vault.

    Every ``schedule`` call for a vault cancels the previous, not yet fired
    timer, so only the latest request inside the debounce window survives.
    A continuously busy caller therefore keeps pushing the save out, which
    stands in for "wait until the host is idle". Armed timers stay in the
    registry until they fire or are cancelled.
    """

    def __init__(self, *, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._pending: Dict[str, asyncio.TimerHandle] = {}

    def schedule(self, vault: VaultPath, delay_seconds: float, action: SaveAction) -> None:
        key = canonical_vault(vault)
        loop = self._loop or asyncio.get_running_loop()
        self.cancel(key)
        self._pending[key] = loop.call_later(max(0.0, delay_seconds), self._fire, key, action)
        LOGGER.debug("Save for %s armed in %.2fs", key, delay_seconds)

    def pending(self, vault: VaultPath) -> bool:
        return canonical_vault(vault) in self._pending

    def pending_vaults(self) -> list[str]:
        return sorted(self._pending)

    def cancel(self, vault: VaultPath) -> bool:
        handle = self._pending.pop(canonical_vault(vault), None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> int:
        handles = list(self._pending.values())
        self._pending.clear()
        for handle in handles:
            handle.cancel()
        return len(handles)

    def _fire(self, key: str, action: SaveAction) -> None:
        # Superseded handles are cancelled, so the firing handle is the
        # registered one; drop it before the action can schedule a new one.
        self._pending.pop(key, None)
        try:
            action()
        except Exception:  # pragma: no cover - actions report their own failures
            LOGGER.exception("Debounced save for %s raised", key)
