"""Build and smoke-test the generated base image.

1. Builds the generated Dockerfile as the local test tag.
2. Runs every smoke command in a disposable container.
3. Tags the image with its registry reference, ready to push.

This module does NOT generate, push or log in.
"""

from __future__ import annotations

import argparse
from collections.abc import Iterable
from pathlib import Path

from basegen import engine, log
from basegen.config import Config


def smoke_test(image: str, commands: Iterable[list[str]]) -> list[str]:
    """Run each command in *image*.  Returns the commands that failed.

    Every command is attempted so the summary lists all failures.
    """
    failed: list[str] = []
    for cmd in commands:
        label = " ".join(cmd)
        try:
            output = engine.run_in(image, cmd)
        except engine.EngineError as exc:
            log.error(f"{label}: exit {exc.returncode}")
            if exc.stderr:
                log.error(f"  {exc.stderr.splitlines()[-1]}")
            failed.append(label)
            continue
        first = output.splitlines()[0] if output else ""
        log.success(f"{label}: {first}")
    return failed


def run(cfg: Config, args: argparse.Namespace) -> int:
    """Build, smoke-test and tag the base image.

    Returns ``0`` on success, ``1`` on any failure.
    """
    dockerfile = Path(cfg.output)
    if not dockerfile.is_file():
        log.error(f"{dockerfile} not found -- run 'basegen generate' first")
        return 1

    log.step(f"Building {cfg.local_ref}")
    log.timer_start("build")
    try:
        engine.build(str(dockerfile), cfg.local_ref)
    except engine.EngineError as exc:
        log.error(f"build failed (rc={exc.returncode})")
        return 1
    log.timer_stop("build")

    log.step(f"Testing {cfg.local_ref}")
    failed = smoke_test(cfg.local_ref, cfg.smoke)
    if failed:
        log.error(f"{len(failed)} smoke test(s) failed")
        return 1
    log.success("All smoke tests passed")

    engine.tag(cfg.local_ref, cfg.remote_ref)
    log.success(f"Tagged {cfg.remote_ref}")
    return 0
