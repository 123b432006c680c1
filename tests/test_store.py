from __future__ import annotations

from pathlib import Path

import pytest
from sqlmodel import select

from vaultcache.settings import Settings, StorageSettings
from vaultcache.store import CacheField, MemoryStore, SqliteStore, StorageConfig, StoreError, build_store


def _store(tmp_path: Path, *, compress: bool = True) -> SqliteStore:
    return SqliteStore(StorageConfig(db_path=tmp_path / "cache" / "vaultcache.db", compress=compress))


def test_unknown_namespace_returns_none(tmp_path: Path):
    store = _store(tmp_path)

    assert store.get("obsidian/unknown", "primaryState") is None
    assert store.fields("obsidian/unknown") == []
    assert MemoryStore().get("obsidian/unknown", "auxMap") is None


def test_values_survive_a_fresh_store_instance(tmp_path: Path):
    first = _store(tmp_path)
    first.put("obsidian/abc", "primaryState", {"files": ["a.md", "b.md"], "count": 2})
    first.put("obsidian/abc", "updatedAt", 12.5)
    first.close()

    second = _store(tmp_path)

    assert second.get("obsidian/abc", "primaryState") == {"files": ["a.md", "b.md"], "count": 2}
    assert second.get("obsidian/abc", "updatedAt") == 12.5
    assert second.namespaces() == ["obsidian/abc"]
    assert second.fields("obsidian/abc") == ["primaryState", "updatedAt"]


def test_put_overwrites_existing_field(tmp_path: Path):
    store = _store(tmp_path)
    store.put("obsidian/abc", "auxMap", {"old": 1})
    store.put("obsidian/abc", "auxMap", {"new": 2})

    assert store.get("obsidian/abc", "auxMap") == {"new": 2}
    with store.session() as session:
        rows = session.exec(select(CacheField)).all()
    assert len(rows) == 1


def test_uncompressed_store_reads_compressed_rows(tmp_path: Path):
    compressed = _store(tmp_path, compress=True)
    compressed.put("obsidian/abc", "primaryState", ["x"] * 100)
    compressed.close()

    plain = _store(tmp_path, compress=False)

    assert plain.get("obsidian/abc", "primaryState") == ["x"] * 100


def test_non_json_values_raise_store_error(tmp_path: Path):
    store = _store(tmp_path)

    with pytest.raises(StoreError):
        store.put("obsidian/abc", "primaryState", {"bad": object()})


def test_corrupt_payload_raises_store_error(tmp_path: Path):
    store = _store(tmp_path)
    with store.session() as session:
        session.add(CacheField(namespace="obsidian/abc", field_name="auxMap", codec="json+zstd", payload=b"junk"))
        session.commit()

    with pytest.raises(StoreError):
        store.get("obsidian/abc", "auxMap")


def test_build_store_uses_configured_path(tmp_path: Path):
    settings = Settings(storage=StorageSettings(db_path=tmp_path / "db" / "cache.db", compress=False))

    store = build_store(settings)
    store.put("obsidian/abc", "updatedAt", 1)

    assert (tmp_path / "db" / "cache.db").exists()
    assert store.config.compress is False
