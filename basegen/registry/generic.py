"""Generic OCI registry backend.

Works with any registry the container engine can log in to.  Credentials
come from ``REGISTRY_TOKEN`` / ``REGISTRY_USER``.
"""

from __future__ import annotations

import os

from basegen import engine, log
from basegen.build import smoke_test
from basegen.registry import PushError, RegistryBase, retry


class GenericRegistry(RegistryBase):
    """Backend for any OCI-compliant registry."""

    token_env = ("REGISTRY_TOKEN",)

    def __init__(
        self,
        url: str,
        *,
        attempts: int = 3,
        delay: float = 10.0,
        user: str | None = None,
    ) -> None:
        self.url = url
        self.attempts = attempts
        self.delay = delay
        self.user = user

    def get_token(self) -> str | None:
        for name in self.token_env:
            value = os.environ.get(name)
            if value:
                return value
        return None

    def get_actor(self) -> str | None:
        return self.user or os.environ.get("REGISTRY_USER")

    def login(self, token: str, actor: str) -> None:
        host = self._registry_host()
        log.info(f"Logging in to {host} as {actor}")
        engine.logout(host)
        retry(
            lambda: engine.login(host, actor, token),
            attempts=self.attempts,
            delay=self.delay,
            label="Login attempt",
            retry_on=(engine.EngineError,),
        )
        log.success(f"Logged in to {host}")

    def push(self, ref: str) -> None:
        log.info(f"Pushing {ref}")
        try:
            retry(
                lambda: engine.push(ref),
                attempts=self.attempts,
                delay=self.delay,
                label="Push attempt",
                retry_on=(engine.EngineError,),
            )
        except engine.EngineError as exc:
            raise PushError(
                f"all {self.attempts} push attempt(s) failed for {ref}"
            ) from exc
        log.success(f"Pushed {ref}")

    def verify(self, ref: str, commands: list[list[str]], *, fresh: bool = True) -> bool:
        """Pull *ref* from the registry and run *commands* against it.

        With ``fresh=True`` local copies are removed first so the pull
        really hits the registry.
        """
        if fresh:
            engine.rmi(ref)
        try:
            engine.pull(ref)
        except engine.EngineError:
            log.error(f"Failed to pull {ref}")
            return False
        log.success(f"Pulled {ref}")
        failed = smoke_test(ref, commands)
        return not failed

    def _registry_host(self) -> str:
        """Extract the registry hostname from self.url."""
        url = self.url
        for prefix in ("https://", "http://"):
            if url.startswith(prefix):
                url = url[len(prefix):]
                break
        return url.split("/")[0]
