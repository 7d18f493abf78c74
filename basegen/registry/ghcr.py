"""GitHub Container Registry (ghcr.io) backend.

Adds GitHub-specific credential lookup: ``GHCR_TOKEN`` or ``GITHUB_TOKEN``
from the environment, then the GitHub CLI's stored token.
"""

from __future__ import annotations

import os
import shutil
import subprocess

from basegen import log
from basegen.registry.generic import GenericRegistry


def _gh(*args: str) -> str | None:
    """Run ``gh *args`` and return stdout, or None when gh is unusable."""
    if shutil.which("gh") is None:
        return None
    result = subprocess.run(
        ["gh", *args], capture_output=True, text=True, check=False,
    )
    if result.returncode != 0:
        log.debug(f"gh {' '.join(args)}: {result.stderr.strip()}")
        return None
    return result.stdout.strip() or None


class GHCR(GenericRegistry):
    """Backend for GitHub Container Registry."""

    token_env = ("GHCR_TOKEN", "GITHUB_TOKEN")

    def get_token(self) -> str | None:
        token = super().get_token()
        if token:
            return token
        token = _gh("auth", "token")
        if token:
            log.info("Using token from the GitHub CLI")
        return token

    def get_actor(self) -> str | None:
        actor = self.user or os.environ.get("GITHUB_ACTOR")
        if actor:
            return actor
        actor = _gh("api", "user", "--jq", ".login")
        if actor:
            return actor
        # ghcr.io/<owner> -- the owner is the usual login for personal packages
        parts = self.url.split("/")
        return parts[1] if len(parts) > 1 and parts[1] else None
