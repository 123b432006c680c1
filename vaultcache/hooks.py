"""Explicit integration points for domain code that mutates cached state."""

from __future__ import annotations

import atexit
import functools
import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator, TypeVar

from vaultcache.keys import VaultPath
from vaultcache.manager import CacheManager

LOGGER = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


@contextmanager
def mutation(manager: CacheManager, vault: VaultPath) -> Iterator[None]:
    """Bracket a state change: restore before it, enqueue a save after it.

    If the body raises, nothing is enqueued and the exception propagates.
    """

    manager.before_mutation(vault)
    yield
    manager.after_mutation(vault)


def tracked(manager: CacheManager, vault_of: Callable[..., VaultPath]) -> Callable[[F], F]:
    """Decorate a mutating domain function with :func:`mutation`.

    ``vault_of`` receives the wrapped function's arguments and returns the
    vault the call operates on.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            with mutation(manager, vault_of(*args, **kwargs)):
                return func(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator


def install_shutdown_hook(manager: CacheManager) -> Callable[[], None]:
    """Flush every vault at interpreter exit. Returns an unregister callable."""

    def _flush() -> None:
        outcomes = manager.save_all()
        LOGGER.debug("Shutdown flush wrote %d vault(s)", len(outcomes))

    atexit.register(_flush)

    def _unregister() -> None:
        atexit.unregister(_flush)

    return _unregister
