"""Pydantic DTOs shared by the cache manager, store and CLI."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

PRIMARY_STATE_FIELD = "primaryState"
AUX_MAP_FIELD = "auxMap"
UPDATED_AT_FIELD = "updatedAt"
ENTRY_FIELDS = (PRIMARY_STATE_FIELD, AUX_MAP_FIELD, UPDATED_AT_FIELD)


class VaultState(str, Enum):
    """Lifecycle of a vault inside one CacheManager."""

    UNLOADED = "UNLOADED"
    LOADED = "LOADED"
    SAVE_PENDING = "SAVE_PENDING"


class OutcomeKind(str, Enum):
    """What a restore or save call actually did."""

    RESTORED = "RESTORED"
    EMPTY = "EMPTY"
    SKIPPED = "SKIPPED"
    SAVED = "SAVED"
    MISSING_DIRECTORY = "MISSING_DIRECTORY"
    STORE_READ_FAILURE = "STORE_READ_FAILURE"
    STORE_WRITE_FAILURE = "STORE_WRITE_FAILURE"


FAILURE_KINDS = frozenset({OutcomeKind.STORE_READ_FAILURE, OutcomeKind.STORE_WRITE_FAILURE})


class CacheEntry(BaseModel):
    """The three fields persisted per vault namespace."""

    primary_state: Any = Field(description="Structural snapshot of the vault (index/table)")
    aux_map: Any = Field(default=None, description="Derived secondary index")
    updated_at: int | float = Field(default=0, description="Timestamp or counter of the last update")

    def to_fields(self) -> dict[str, Any]:
        return {
            PRIMARY_STATE_FIELD: self.primary_state,
            AUX_MAP_FIELD: self.aux_map,
            UPDATED_AT_FIELD: self.updated_at,
        }


class CacheOutcome(BaseModel):
    """Result envelope returned by CacheManager.restore/save."""

    vault: str
    namespace: str
    kind: OutcomeKind
    detail: str | None = Field(default=None, description="Failure message for STORE_* kinds")

    @property
    def ok(self) -> bool:
        return self.kind not in FAILURE_KINDS
