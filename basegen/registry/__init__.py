"""Registry backend abstraction and factory.

Use :func:`for_url` to obtain a registry instance -- never import a
backend class directly.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TypeVar

from basegen import log

T = TypeVar("T")


class PushError(Exception):
    """Raised when every push attempt failed."""


class RegistryBase(ABC):
    """Abstract base class for OCI registries."""

    url: str

    @abstractmethod
    def get_token(self) -> str | None:
        """Return a token usable as the login password."""

    @abstractmethod
    def get_actor(self) -> str | None:
        """Return the username for login."""

    @abstractmethod
    def login(self, token: str, actor: str) -> None:
        """Authenticate to the registry."""

    @abstractmethod
    def push(self, ref: str) -> None:
        """Push a tagged image, retrying a fixed number of times."""

    @abstractmethod
    def verify(self, ref: str, commands: list[list[str]], *, fresh: bool = True) -> bool:
        """Pull *ref* and smoke-test it.  True when every command passes."""


def retry(
    action: Callable[[], T],
    *,
    attempts: int,
    delay: float,
    label: str = "attempt",
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] | None = None,
) -> T:
    """Call *action* up to *attempts* times with a fixed *delay* between.

    No backoff growth and no jitter.  Returns the first successful
    result; re-raises the last error when every attempt fails.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")
    if sleep is None:
        sleep = time.sleep
    for attempt in range(1, attempts + 1):
        log.info(f"{label} {attempt}/{attempts}")
        try:
            return action()
        except retry_on as exc:
            log.warn(f"{label} {attempt}/{attempts} failed: {exc}")
            if attempt == attempts:
                raise
        log.info(f"Waiting {delay:g}s before retry")
        sleep(delay)
    raise AssertionError("unreachable")


def for_url(
    url: str,
    *,
    attempts: int = 3,
    delay: float = 10.0,
    user: str | None = None,
) -> RegistryBase:
    """Return the registry backend for *url* (e.g. ``ghcr.io/myorg``)."""
    if "ghcr.io" in url:
        from basegen.registry.ghcr import GHCR
        return GHCR(url, attempts=attempts, delay=delay, user=user)
    from basegen.registry.generic import GenericRegistry
    return GenericRegistry(url, attempts=attempts, delay=delay, user=user)
