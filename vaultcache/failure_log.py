"""Helpers to append cache store failures to the ops log."""

from __future__ import annotations

from datetime import datetime, timezone
import json
import logging
from pathlib import Path
from typing import Any

from vaultcache.schemas import OutcomeKind
from vaultcache.settings import Settings, get_settings

LOGGER = logging.getLogger(__name__)


def append_failure_log(
    *,
    kind: OutcomeKind | str,
    vault: str,
    namespace: str,
    error: BaseException | str,
    settings: Settings | None = None,
) -> None:
    """Append a store failure for ops review.

    Writes a JSON line containing the failure kind, vault path, namespace and
    error text. No-op when the failure log path is disabled. Problems writing
    the log are reported through ``logging`` and never raised.
    """

    log_path = (settings or get_settings()).logging.failure_log_path
    if log_path is None:
        return

    record = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "kind": kind.value if isinstance(kind, OutcomeKind) else str(kind),
        "vault": vault,
        "namespace": namespace,
        "error": _describe_error(error),
    }
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with log_path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record))
            handle.write("\n")
    except OSError as exc:
        LOGGER.warning("Could not append to failure log %s: %s", log_path, exc)


def load_failure_records(path: Path, limit: int) -> list[dict[str, Any]]:
    """Return the last ``limit`` parseable records from a failure log."""

    if limit <= 0 or not path.exists():
        return []
    records: list[dict[str, Any]] = []
    with path.open("r", encoding="utf-8") as handle:
        for line in handle:
            line = line.strip()
            if not line:
                continue
            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(entry, dict):
                records.append(entry)
    return records[-limit:]


def _describe_error(error: BaseException | str) -> str:
    if isinstance(error, BaseException):
        return f"{type(error).__name__}: {error}"
    return error
