"""Thin wrapper around the docker (or podman) command line.

This module has ZERO business logic.  It does not know about config,
capabilities, templates or registries.  It runs commands and returns
output.  Both engines accept the same subset of commands used here, so
the binary is a module-level setting.
"""

from __future__ import annotations

import json
import os
import shutil
import subprocess
from typing import Any

from basegen import log

SUPPORTED_ENGINES = ("docker", "podman")

_binary: str = "docker"


class EngineError(Exception):
    """Raised when a container engine command fails."""

    def __init__(self, cmd: list[str], returncode: int, stderr: str) -> None:
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(
            f"Command failed (rc={returncode}): {' '.join(cmd)}\n{stderr}"
        )


def set_binary(name: str) -> None:
    """Select the engine binary (``docker`` or ``podman``)."""
    global _binary
    if name not in SUPPORTED_ENGINES:
        raise ValueError(
            f"Unknown container engine: {name}  "
            f"(supported: {', '.join(SUPPORTED_ENGINES)})"
        )
    _binary = name


def binary() -> str:
    return _binary


def available() -> bool:
    """Return True if the engine binary is on PATH."""
    return shutil.which(_binary) is not None


# ── Internal helpers ──────────────────────────────────────────────────

def _run(
    args: list[str],
    *,
    capture: bool = True,
    check: bool = True,
    quiet: bool = False,
    stdin: str | None = None,
    env: dict[str, str] | None = None,
) -> subprocess.CompletedProcess[str]:
    """Run ``<engine> *args``, log it, optionally raise on failure.

    ``quiet=True`` demotes the command echo to debug level.
    """
    cmd = [_binary, *args]
    if quiet:
        log.debug(f"$ {' '.join(cmd)}")
    else:
        log.info(f"$ {' '.join(cmd)}")
    result = subprocess.run(
        cmd,
        input=stdin,
        capture_output=capture,
        text=True,
        env=env,
    )
    if check and result.returncode != 0:
        stderr = result.stderr.strip() if result.stderr else ""
        raise EngineError(cmd, result.returncode, stderr)
    return result


# ── Containers ────────────────────────────────────────────────────────

def run_detached(image: str, cmd: list[str]) -> str:
    """Start a self-removing container in the background.  Returns its ID."""
    result = _run(["run", "-d", "--rm", image, *cmd])
    return result.stdout.strip()


def exec_ok(container: str, cmd: list[str]) -> bool:
    """Exec *cmd* in a running container.  True on exit status 0.

    Output is discarded; a failing command is an answer, not an error.
    """
    result = _run(["exec", container, *cmd], check=False, quiet=True)
    if result.returncode != 0 and result.stderr:
        log.debug(result.stderr.strip())
    return result.returncode == 0


def stop(container: str) -> None:
    """Stop a container (ignores errors)."""
    _run(["stop", container], check=False)


def run_in(image: str, cmd: list[str]) -> str:
    """Run *cmd* inside a disposable container and return stdout."""
    result = _run(["run", "--rm", image, *cmd])
    return result.stdout.strip()


# ── Images ────────────────────────────────────────────────────────────

def build(
    dockerfile: str,
    tag: str,
    *,
    context_dir: str = ".",
    extra_args: list[str] | None = None,
) -> str:
    """Build an image and return its tag.

    Build output is streamed so the user can follow progress.  BuildKit
    is enabled for docker; podman ignores the variable.
    """
    args = ["build", "-f", dockerfile, "-t", tag]
    if extra_args:
        args += extra_args
    args.append(context_dir)
    env = {**os.environ, "DOCKER_BUILDKIT": "1"}
    _run(args, capture=False, env=env)
    return tag


def tag(src: str, dest: str) -> None:
    _run(["tag", src, dest])


def push(ref: str) -> None:
    _run(["push", ref], capture=False)


def pull(ref: str) -> None:
    _run(["pull", ref], capture=False)


def rmi(ref: str) -> None:
    """Remove a local image (ignores errors)."""
    _run(["rmi", ref], check=False)


def image_exists(ref: str) -> bool:
    result = _run(["image", "inspect", ref], check=False, quiet=True)
    return result.returncode == 0


# ── Registry auth ─────────────────────────────────────────────────────

def login(host: str, username: str, password: str) -> None:
    """Log in with the password on stdin."""
    _run(
        ["login", host, "-u", username, "--password-stdin"],
        stdin=password,
    )


def logout(host: str) -> None:
    _run(["logout", host], check=False, quiet=True)


def system_info() -> dict[str, Any]:
    """Return ``<engine> info`` as parsed JSON (empty dict on failure)."""
    result = _run(["info", "--format", "{{json .}}"], check=False, quiet=True)
    if result.returncode != 0 or not result.stdout.strip():
        return {}
    try:
        data = json.loads(result.stdout)
        return data if isinstance(data, dict) else {}
    except json.JSONDecodeError:
        return {}
