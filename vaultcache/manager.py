"""Restore/save orchestration for per-vault persistent caches."""

from __future__ import annotations

import logging
import os
from typing import Callable, List, Protocol

from vaultcache.failure_log import append_failure_log
from vaultcache.keys import VaultPath, canonical_vault, derive_namespace
from vaultcache.scheduler import SaveScheduler
from vaultcache.schemas import (
    AUX_MAP_FIELD,
    PRIMARY_STATE_FIELD,
    UPDATED_AT_FIELD,
    CacheEntry,
    CacheOutcome,
    OutcomeKind,
    VaultState,
)
from vaultcache.settings import Settings, get_settings
from vaultcache.store import Store, build_store
from vaultcache.tracking import LoadedSet

LOGGER = logging.getLogger(__name__)

ActiveVault = Callable[[], VaultPath | None]


class StateProvider(Protocol):
    """Domain-side owner of the live cached state."""

    def snapshot(self, vault: str) -> CacheEntry:
        ...

    def apply(self, vault: str, entry: CacheEntry) -> None:
        ...


class CacheManager:
    """Per-vault restore-on-first-use, debounced save and shutdown flush.

    Each vault moves through ``UNLOADED -> LOADED -> SAVE_PENDING -> LOADED``.
    Store failures never leave this class: they are logged, appended to the
    failure log and returned as a :class:`CacheOutcome`.
    """

    def __init__(
        self,
        provider: StateProvider,
        *,
        store: Store | None = None,
        settings: Settings | None = None,
        scheduler: SaveScheduler | None = None,
        active_vault: ActiveVault | None = None,
        failure_log: bool = True,
    ) -> None:
        self.settings = settings or get_settings()
        self.store = store if store is not None else build_store(self.settings)
        self.provider = provider
        self.loaded = LoadedSet()
        self.scheduler = scheduler or SaveScheduler()
        self._active_vault = active_vault
        self._failure_log = failure_log

    def namespace(self, vault: VaultPath) -> str:
        return derive_namespace(vault, self.settings.cache.namespace_prefix)

    def state(self, vault: VaultPath) -> VaultState:
        if self.scheduler.pending(vault):
            return VaultState.SAVE_PENDING
        if self.loaded.has_loaded(vault):
            return VaultState.LOADED
        return VaultState.UNLOADED

    def restore(self, vault: VaultPath) -> CacheOutcome:
        """Load the persisted entry into the live state, once per process."""

        key = canonical_vault(vault)
        namespace = self.namespace(key)
        if self.loaded.has_loaded(key):
            return CacheOutcome(vault=key, namespace=namespace, kind=OutcomeKind.SKIPPED)

        try:
            primary_state = self.store.get(namespace, PRIMARY_STATE_FIELD)
            if primary_state is None:
                kind = OutcomeKind.EMPTY
            else:
                updated_at = self.store.get(namespace, UPDATED_AT_FIELD)
                entry = CacheEntry(
                    primary_state=primary_state,
                    aux_map=self.store.get(namespace, AUX_MAP_FIELD),
                    updated_at=updated_at if updated_at is not None else 0,
                )
                self.provider.apply(key, entry)
                kind = OutcomeKind.RESTORED
        except Exception as exc:
            return self._failed(OutcomeKind.STORE_READ_FAILURE, key, namespace, exc)
        finally:
            self.loaded.mark_loaded(key)

        LOGGER.debug("Restore %s for %s (%s)", kind.value, key, namespace)
        return CacheOutcome(vault=key, namespace=namespace, kind=kind)

    def enqueue_save(self, vault: VaultPath, delay: float | None = None) -> None:
        key = canonical_vault(vault)
        seconds = self.settings.cache.save_delay_seconds if delay is None else delay
        self.scheduler.schedule(key, seconds, lambda: self.save(key))

    def save(self, vault: VaultPath) -> CacheOutcome:
        """Write the live state under the vault's namespace, unless it is gone.

        A debounced save reaches here with its timer slot already released by
        the scheduler. A direct call leaves any armed timer registered, so a
        later ``enqueue_save`` still supersedes it and ``close`` cancels it.
        """

        key = canonical_vault(vault)
        namespace = self.namespace(key)
        try:
            if not os.path.isdir(key):
                LOGGER.debug("Skipping save for missing vault %s", key)
                return CacheOutcome(vault=key, namespace=namespace, kind=OutcomeKind.MISSING_DIRECTORY)
            entry = self.provider.snapshot(key)
            for field, value in entry.to_fields().items():
                self.store.put(namespace, field, value)
        except Exception as exc:
            return self._failed(OutcomeKind.STORE_WRITE_FAILURE, key, namespace, exc)

        LOGGER.debug("Saved cache for %s (%s)", key, namespace)
        return CacheOutcome(vault=key, namespace=namespace, kind=OutcomeKind.SAVED)

    def save_all(self) -> List[CacheOutcome]:
        """Synchronously flush every loaded vault; evict the ones deleted on disk.

        Pending debounce timers stay armed and may re-save afterwards.
        """

        outcomes: List[CacheOutcome] = []
        for vault in list(self.loaded):
            if os.path.isdir(vault):
                outcomes.append(self.save(vault))
            else:
                LOGGER.info("Vault %s no longer exists; dropping it from the cache", vault)
                self.loaded.forget(vault)

        active = self._resolve_active_vault()
        if active is not None and not self.loaded.has_loaded(active):
            # Persist the active vault even if nothing restored or mutated it.
            outcomes.append(self.save(active))
        return outcomes

    def close(self) -> List[CacheOutcome]:
        outcomes = self.save_all()
        self.scheduler.cancel_all()
        return outcomes

    def before_mutation(self, vault: VaultPath) -> CacheOutcome:
        return self.restore(vault)

    def after_mutation(self, vault: VaultPath) -> None:
        self.enqueue_save(vault)

    def _resolve_active_vault(self) -> str | None:
        if self._active_vault is None:
            return None
        try:
            vault = self._active_vault()
        except Exception as exc:
            LOGGER.warning("Could not determine the active vault: %s", exc)
            return None
        return canonical_vault(vault) if vault else None

    def _failed(self, kind: OutcomeKind, vault: str, namespace: str, exc: BaseException) -> CacheOutcome:
        action = "restore" if kind is OutcomeKind.STORE_READ_FAILURE else "save"
        LOGGER.warning("Cache %s failed for %s (%s): %s", action, vault, namespace, exc)
        if self._failure_log:
            append_failure_log(
                kind=kind, vault=vault, namespace=namespace, error=exc, settings=self.settings
            )
        return CacheOutcome(vault=vault, namespace=namespace, kind=kind, detail=str(exc))
