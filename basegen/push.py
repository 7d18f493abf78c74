"""Registry login, push and post-push verification.

For the configured image:

1. ``auth``   -- logs in with a token from the environment (or the GitHub
   CLI for ghcr.io).
2. ``push``   -- pushes the registry tag created by ``build``, retrying a
   fixed number of times with a fixed delay.
3. ``verify`` -- drops local copies, pulls the image back and runs the
   smoke commands.
4. ``check``  -- pulls the published image and runs the smoke commands,
   without touching local copies first.

This module does NOT build images.
"""

from __future__ import annotations

import argparse

from basegen import engine, log
from basegen import registry as registry_mod
from basegen.config import Config


def _registry(cfg: Config) -> registry_mod.RegistryBase:
    return registry_mod.for_url(
        cfg.registry,
        attempts=cfg.push.attempts,
        delay=cfg.push.delay,
        user=cfg.user,
    )


def auth(cfg: Config, args: argparse.Namespace) -> int:
    """Log in to the configured registry.  Returns an exit code."""
    reg = _registry(cfg)
    token = reg.get_token()
    actor = reg.get_actor()
    if not token or not actor:
        log.error(
            "No registry credentials found "
            "(set GHCR_TOKEN or GITHUB_TOKEN, and GITHUB_ACTOR, or run 'gh auth login')"
        )
        return 1
    log.step(f"Logging in to {cfg.registry}")
    current = engine.system_info().get("Username")
    if current:
        log.info(f"{engine.binary()} currently authenticated as {current}")
    try:
        reg.login(token, actor)
    except engine.EngineError as exc:
        log.error(f"login failed: {exc.stderr or exc}")
        return 1
    return 0


def run(cfg: Config, args: argparse.Namespace) -> int:
    """Push the registry tag.  Returns an exit code."""
    ref = cfg.remote_ref
    if not engine.image_exists(ref):
        log.error(f"{ref} not found locally -- run 'basegen build' first")
        return 1

    log.step(f"Pushing {ref}")
    try:
        _registry(cfg).push(ref)
    except registry_mod.PushError as exc:
        log.error(str(exc))
        return 1
    return 0


def verify(cfg: Config, args: argparse.Namespace) -> int:
    """Pull the pushed image back and smoke-test it."""
    ref = cfg.remote_ref
    log.step(f"Verifying {ref}")
    engine.rmi(cfg.local_ref)
    if not _registry(cfg).verify(ref, cfg.smoke, fresh=True):
        log.error(f"{ref} failed verification")
        return 1
    log.success(f"{ref} works")
    return 0


def check(cfg: Config, args: argparse.Namespace) -> int:
    """Check the published image is reachable and usable."""
    ref = cfg.remote_ref
    log.step(f"Checking {ref}")
    if not _registry(cfg).verify(ref, cfg.smoke, fresh=False):
        log.error(f"Cannot use {ref}")
        log.info("Make sure the image was pushed, is public or you are logged in,")
        log.info("and that the image name is correct")
        return 1
    log.success(f"{ref} accessible")
    return 0
