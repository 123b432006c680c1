#!/usr/bin/env python3
"""Operator CLI for inspecting persisted vault caches."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional

import typer
from rich.console import Console
from rich.table import Table

from vaultcache.failure_log import load_failure_records
from vaultcache.keys import canonical_vault, derive_namespace
from vaultcache.settings import build_settings
from vaultcache.store import SqliteStore, StorageConfig, StoreError

console = Console()
cli = typer.Typer(help="Inspect vault caches persisted by vaultcache")
failures_cli = typer.Typer(help="Store failure log helpers.")
cli.add_typer(failures_cli, name="failures")


@dataclass
class CLISettings:
    db_path: Path
    namespace_prefix: str
    failure_log_path: Optional[Path]


def _resolve_settings(db_path: Optional[Path] = None, prefix: Optional[str] = None) -> CLISettings:
    settings = build_settings()
    return CLISettings(
        db_path=db_path or settings.storage.db_path,
        namespace_prefix=prefix or settings.cache.namespace_prefix,
        failure_log_path=settings.logging.failure_log_path,
    )


def _open_store(settings: CLISettings) -> SqliteStore:
    if not settings.db_path.exists():
        console.print(f"[red]Cache database not found at {settings.db_path}[/]")
        raise typer.Exit(1)
    return SqliteStore(StorageConfig(db_path=settings.db_path))


def _summarize(value: Any) -> str:
    if value is None:
        return "—"
    if isinstance(value, dict):
        return f"map ({len(value)} keys)"
    if isinstance(value, list):
        return f"list ({len(value)} items)"
    return json.dumps(value)


@cli.command()
def namespace(
    path: Path = typer.Argument(..., help="Vault directory (need not exist)."),
    prefix: Optional[str] = typer.Option(None, "--prefix", help="Override VAULTCACHE_NAMESPACE_PREFIX."),
) -> None:
    """Print the cache namespace derived from a vault path."""

    settings = _resolve_settings(prefix=prefix)
    console.print(derive_namespace(path, settings.namespace_prefix), soft_wrap=True)


@cli.command()
def show(
    path: Path = typer.Argument(..., help="Vault directory."),
    db_path: Optional[Path] = typer.Option(None, "--db", help="Override VAULTCACHE_DB_PATH."),
    prefix: Optional[str] = typer.Option(None, "--prefix", help="Override VAULTCACHE_NAMESPACE_PREFIX."),
    json_output: bool = typer.Option(False, "--json", help="Emit the stored fields as JSON."),
) -> None:
    """Show the persisted entry for a vault."""

    settings = _resolve_settings(db_path, prefix)
    ns = derive_namespace(path, settings.namespace_prefix)
    store = _open_store(settings)
    try:
        values = {name: store.get(ns, name) for name in store.fields(ns)}
    except StoreError as exc:
        _print_error(str(exc), json_output=json_output)
    finally:
        store.close()

    if json_output:
        console.print_json(data={"vault": canonical_vault(path), "namespace": ns, "fields": values})
        return
    if not values:
        console.print(f"[yellow]No cache stored for {canonical_vault(path)}[/]")
        raise typer.Exit(1)
    table = Table("Field", "Value", title=ns)
    for name, value in values.items():
        table.add_row(name, _summarize(value))
    console.print(table)


@cli.command("list")
def list_namespaces(
    db_path: Optional[Path] = typer.Option(None, "--db", help="Override VAULTCACHE_DB_PATH."),
    json_output: bool = typer.Option(False, "--json", help="Emit namespaces as a JSON array."),
) -> None:
    """List every namespace stored in the cache database."""

    settings = _resolve_settings(db_path)
    store = _open_store(settings)
    try:
        namespaces = store.namespaces()
    except StoreError as exc:
        _print_error(str(exc), json_output=json_output)
    finally:
        store.close()

    if json_output:
        console.print_json(data=namespaces)
        return
    if not namespaces:
        console.print("[dim]No vault caches stored yet.[/]")
        return
    for entry in namespaces:
        console.print(entry, soft_wrap=True)


@failures_cli.command("tail")
def failures_tail(
    count: int = typer.Option(20, "--count", "-n", help="Number of entries to display."),
    json_output: bool = typer.Option(False, "--json", help="Emit raw JSON lines instead of a table."),
    log_path: Optional[Path] = typer.Option(None, "--log-path", help="Override VAULTCACHE_FAILURE_LOG."),
) -> None:
    """Print the most recent store failures."""

    settings = _resolve_settings()
    target_path = log_path or settings.failure_log_path
    if target_path is None:
        console.print("[yellow]Failure log is disabled (VAULTCACHE_FAILURE_LOG is empty).[/]")
        return
    if not target_path.exists():
        console.print(f"[yellow]Failure log not found at {target_path}[/]")
        return
    _print_failure_records(load_failure_records(target_path, count), json_output=json_output)


def _print_failure_records(records: list[dict[str, Any]], *, json_output: bool) -> None:
    if json_output:
        for record in records:
            console.print(json.dumps(record), soft_wrap=True, highlight=False, markup=False)
        return
    if not records:
        console.print("[dim]No failures recorded.[/]")
        return
    table = Table("Timestamp", "Kind", "Vault", "Error", title="Store failures")
    for row in _failure_rows(records):
        table.add_row(*row)
    console.print(table)


def _failure_rows(records: Iterable[dict[str, Any]]) -> Iterable[tuple[str, str, str, str]]:
    for record in records:
        yield (
            str(record.get("timestamp", "—")),
            str(record.get("kind", "—")),
            str(record.get("vault", "—")),
            str(record.get("error", "—")),
        )


def _print_error(detail: str, *, json_output: bool) -> None:
    if json_output:
        console.print_json(data={"status": "error", "detail": detail})
    else:
        console.print(f"[red]{detail}[/]")
    raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover
    cli()
