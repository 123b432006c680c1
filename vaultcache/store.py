"""Persistence layer for per-vault cache namespaces.

The cache manager only relies on the small :class:`Store` protocol. Two
backends ship with the package: an in-process :class:`MemoryStore` and the
sqlite-backed :class:`SqliteStore`, which keeps one row per
``(namespace, field)`` pair holding a JSON payload, optionally compressed with
zstandard.
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Protocol

import zstandard as zstd
from sqlalchemy import UniqueConstraint
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Field, Session, SQLModel, create_engine, select

from vaultcache.settings import Settings, get_settings

LOGGER = logging.getLogger(__name__)

CODEC_JSON = "json"
CODEC_JSON_ZSTD = "json+zstd"


class StoreError(RuntimeError):
    """Raised when the backend cannot read, write or decode a field."""


class Store(Protocol):
    """Opaque key-value backend addressed by namespace and field name."""

    def get(self, namespace: str, field: str) -> Any | None:
        ...

    def put(self, namespace: str, field: str, value: Any) -> None:
        ...


class MemoryStore:
    """Dict-backed store; contents vanish with the process."""

    def __init__(self) -> None:
        self._data: dict[str, dict[str, Any]] = {}

    def get(self, namespace: str, field: str) -> Any | None:
        return self._data.get(namespace, {}).get(field)

    def put(self, namespace: str, field: str, value: Any) -> None:
        self._data.setdefault(namespace, {})[field] = value

    def namespaces(self) -> list[str]:
        return sorted(self._data)

    def fields(self, namespace: str) -> list[str]:
        return sorted(self._data.get(namespace, {}))


class CacheField(SQLModel, table=True):
    """One persisted field of a vault namespace."""

    __tablename__ = "cache_fields"
    __table_args__ = (UniqueConstraint("namespace", "field_name", name="uq_cache_field"),)

    id: int | None = Field(default=None, primary_key=True)
    namespace: str = Field(index=True)
    field_name: str
    codec: str = Field(default=CODEC_JSON)
    payload: bytes
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(slots=True)
class StorageConfig:
    db_path: Path
    compress: bool = True


class SqliteStore:
    """Store backed by a single sqlite database via SQLModel."""

    def __init__(self, config: StorageConfig) -> None:
        self.config = config
        config.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._engine = create_engine(f"sqlite:///{config.db_path}")
        SQLModel.metadata.create_all(self._engine, tables=[CacheField.__table__])
        self._compressor = zstd.ZstdCompressor()
        self._decompressor = zstd.ZstdDecompressor()

    @contextmanager
    def session(self) -> Iterator[Session]:
        with Session(self._engine) as session:
            yield session

    def get(self, namespace: str, field: str) -> Any | None:
        try:
            with self.session() as session:
                row = session.exec(_field_query(namespace, field)).first()
                if row is None:
                    return None
                codec, payload = row.codec, row.payload
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to read {namespace}:{field}: {exc}") from exc
        return self._decode(codec, payload, namespace=namespace, field=field)

    def put(self, namespace: str, field: str, value: Any) -> None:
        codec, payload = self._encode(value, namespace=namespace, field=field)
        try:
            with self.session() as session:
                row = session.exec(_field_query(namespace, field)).first()
                if row is None:
                    row = CacheField(namespace=namespace, field_name=field, codec=codec, payload=payload)
                else:
                    row.codec = codec
                    row.payload = payload
                    row.updated_at = datetime.now(timezone.utc)
                session.add(row)
                session.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to write {namespace}:{field}: {exc}") from exc
        LOGGER.debug("Stored %s:%s (%d bytes, %s)", namespace, field, len(payload), codec)

    def namespaces(self) -> list[str]:
        statement = select(CacheField.namespace).distinct().order_by(CacheField.namespace)
        try:
            with self.session() as session:
                return list(session.exec(statement).all())
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to list namespaces: {exc}") from exc

    def fields(self, namespace: str) -> list[str]:
        statement = (
            select(CacheField.field_name)
            .where(CacheField.namespace == namespace)
            .order_by(CacheField.field_name)
        )
        try:
            with self.session() as session:
                return list(session.exec(statement).all())
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to list fields for {namespace}: {exc}") from exc

    def close(self) -> None:
        self._engine.dispose()

    def _encode(self, value: Any, *, namespace: str, field: str) -> tuple[str, bytes]:
        try:
            raw = json.dumps(value, separators=(",", ":"), sort_keys=True).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise StoreError(f"Value for {namespace}:{field} is not JSON serialisable: {exc}") from exc
        if self.config.compress:
            return CODEC_JSON_ZSTD, self._compressor.compress(raw)
        return CODEC_JSON, raw

    def _decode(self, codec: str, payload: bytes, *, namespace: str, field: str) -> Any:
        try:
            if codec == CODEC_JSON_ZSTD:
                payload = self._decompressor.decompress(payload)
            elif codec != CODEC_JSON:
                raise StoreError(f"Unknown codec '{codec}' for {namespace}:{field}")
            return json.loads(payload.decode("utf-8"))
        except (zstd.ZstdError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise StoreError(f"Corrupt payload for {namespace}:{field}: {exc}") from exc


def _field_query(namespace: str, field: str):  # noqa: ANN202
    return select(CacheField).where(
        CacheField.namespace == namespace,
        CacheField.field_name == field,
    )


def build_store(settings: Settings | None = None) -> SqliteStore:
    """Return a sqlite store bound to the configured database path."""

    cfg = settings or get_settings()
    return SqliteStore(StorageConfig(db_path=cfg.storage.db_path, compress=cfg.storage.compress))
