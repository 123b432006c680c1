"""Per-process record of which vaults already had their cache restored."""

from __future__ import annotations

from typing import Iterator

from vaultcache.keys import VaultPath, canonical_vault


class LoadedSet:
    """Membership set keyed by canonical vault path. No expiry."""

    def __init__(self) -> None:
        self._vaults: set[str] = set()

    def has_loaded(self, vault: VaultPath) -> bool:
        return canonical_vault(vault) in self._vaults

    def mark_loaded(self, vault: VaultPath) -> None:
        self._vaults.add(canonical_vault(vault))

    def forget(self, vault: VaultPath) -> None:
        self._vaults.discard(canonical_vault(vault))

    def __contains__(self, vault: object) -> bool:
        if not isinstance(vault, str) and not hasattr(vault, "__fspath__"):
            return False
        return self.has_loaded(vault)  # type: ignore[arg-type]

    def __iter__(self) -> Iterator[str]:
        # Snapshot so callers may forget() while iterating.
        return iter(sorted(self._vaults))

    def __len__(self) -> int:
        return len(self._vaults)
