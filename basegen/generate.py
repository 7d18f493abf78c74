"""Probe-then-render pipeline.

1. Checks the container engine is installed.
2. Starts a disposable container from the base image.
3. Installs the baseline packages (fatal on failure).
4. Probes every optional capability in declared order.
5. Stops the container.
6. Renders the Dockerfile template and writes the artifact.

The rendered artifact is the only thing a run persists.
"""

from __future__ import annotations

import argparse
from pathlib import Path

from basegen import dockerfile, engine, log, probe, template
from basegen.config import Config


def write_artifact(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)


def collect(cfg: Config) -> probe.ProbeResults:
    """Run the baseline and all probes inside one sandbox.

    Raises :class:`~basegen.probe.FatalError` when the engine is missing or
    the baseline cannot be installed.  The sandbox is torn down either way.
    """
    if not engine.available():
        raise probe.FatalError(f"{engine.binary()} not found on PATH")

    with probe.sandbox(cfg.base_image) as install:
        log.step("Installing baseline packages")
        probe.run_baseline(cfg.baseline, install)

        log.step("Probing optional capabilities")
        return probe.probe_all(cfg.capabilities, install)


def run(cfg: Config, args: argparse.Namespace) -> int:
    """Generate the base Dockerfile for *cfg*.

    Returns ``0`` on success, ``1`` when the run aborted.
    """
    log.step(f"Testing package availability in {cfg.base_image}")
    log.timer_start("probe")
    try:
        results = collect(cfg)
    except probe.FatalError as exc:
        log.error(str(exc))
        return 1
    finally:
        log.timer_stop("probe")

    text = template.render(dockerfile.build_template(cfg), results)
    output = Path(cfg.output)
    write_artifact(output, text)

    log.step("Capability summary")
    for cap in cfg.capabilities:
        outcome = results[cap.name]
        if outcome.available:
            log.success(f"{cap.name}: {' '.join(outcome.candidate)}")
        else:
            log.miss(f"{cap.name}: not included")
    log.info(f"{len(results.available())} of {len(results)} optional capabilities included")
    log.success(f"Generated {output}")
    return 0
