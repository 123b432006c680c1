"""Configuration helpers bound to python-decouple."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from decouple import Config as DecoupleConfig, RepositoryEmpty, RepositoryEnv

DEFAULT_SAVE_DELAY_SECONDS = 5.0
DEFAULT_NAMESPACE_PREFIX = "obsidian"


def load_config(env_path: str = ".env") -> DecoupleConfig:
    """Return a decouple config object anchored to the repository .env file.

    Environment variables always win; a missing .env file simply means every
    lookup falls through to the process environment or the default.
    """

    if Path(env_path).is_file():
        return DecoupleConfig(RepositoryEnv(env_path))
    return DecoupleConfig(RepositoryEmpty())


@dataclass(frozen=True)
class CacheSettings:
    """Debounce and key derivation knobs."""

    save_delay_seconds: float = DEFAULT_SAVE_DELAY_SECONDS
    namespace_prefix: str = DEFAULT_NAMESPACE_PREFIX


@dataclass(frozen=True)
class StorageSettings:
    """Where the sqlite-backed store lives and how payloads are encoded."""

    db_path: Path = Path(".cache") / "vaultcache.db"
    compress: bool = True


@dataclass(frozen=True)
class LoggingSettings:
    failure_log_path: Path | None = Path("ops") / "cache_failures.jsonl"


@dataclass(frozen=True)
class Settings:
    env_path: str = ".env"
    cache: CacheSettings = field(default_factory=CacheSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)


def _optional_path(raw: str | None) -> Path | None:
    if raw is None:
        return None
    raw = raw.strip()
    return Path(raw) if raw else None


def build_settings(env_path: str = ".env") -> Settings:
    """Read every ``VAULTCACHE_*`` option into an immutable settings tree."""

    config = load_config(env_path)
    save_delay = config("VAULTCACHE_SAVE_DELAY", default=DEFAULT_SAVE_DELAY_SECONDS, cast=float)
    if save_delay < 0:
        msg = f"VAULTCACHE_SAVE_DELAY must be >= 0, received {save_delay}"
        raise ValueError(msg)
    cache = CacheSettings(
        save_delay_seconds=save_delay,
        namespace_prefix=config("VAULTCACHE_NAMESPACE_PREFIX", default=DEFAULT_NAMESPACE_PREFIX),
    )
    storage = StorageSettings(
        db_path=Path(config("VAULTCACHE_DB_PATH", default=str(StorageSettings.db_path))),
        compress=config("VAULTCACHE_COMPRESS", default=True, cast=bool),
    )
    logging_settings = LoggingSettings(
        failure_log_path=_optional_path(
            config("VAULTCACHE_FAILURE_LOG", default=str(LoggingSettings.failure_log_path))
        ),
    )
    return Settings(env_path=env_path, cache=cache, storage=storage, logging=logging_settings)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, parsed once."""

    return build_settings()
