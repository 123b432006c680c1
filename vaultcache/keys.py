"""Vault path canonicalisation and cache namespace derivation."""

from __future__ import annotations

import hashlib
import os

from vaultcache.settings import DEFAULT_NAMESPACE_PREFIX

VaultPath = str | os.PathLike[str]


def canonical_vault(path: VaultPath) -> str:
    """Return the absolute, user-expanded form of ``path``.

    Relative segments, ``~`` and trailing separators collapse; symlinks are
    left alone and the directory does not need to exist.
    """

    return os.path.abspath(os.path.expanduser(os.fspath(path)))


def derive_namespace(path: VaultPath, prefix: str = DEFAULT_NAMESPACE_PREFIX) -> str:
    """Map a vault directory to ``"<prefix>/<sha256 of canonical path>"``."""

    digest = hashlib.sha256(canonical_vault(path).encode("utf-8")).hexdigest()
    return f"{prefix.rstrip('/')}/{digest}"
