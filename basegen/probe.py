"""Capability probing against the Alpine package source.

A run installs the baseline package set, then probes each optional
capability by trying its candidate package sets in declared order.  The
first candidate that installs wins; the rest are never attempted.  A
capability whose every candidate fails is recorded as unavailable and
does not fail the run.

All probes share one disposable container (see :func:`sandbox`).  The
package database inside it is not safe for concurrent mutation, so
probing is strictly sequential.
"""

from __future__ import annotations

import contextlib
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from basegen import engine, log

PackageSet = tuple[str, ...]
"""One candidate: the packages installed together to satisfy a capability."""

Installer = Callable[[PackageSet], bool]
"""Installs a package set, returning True when the installer exits 0."""

# Long enough for a full probe run on a slow mirror.
_SANDBOX_LIFETIME = "600"


class FatalError(Exception):
    """The run cannot continue (baseline missing, engine unavailable)."""


@dataclass(frozen=True)
class Capability:
    """An optional feature and the package sets that can provide it."""

    name: str
    candidates: tuple[PackageSet, ...]
    description: str = ""
    configure: str = ""


@dataclass(frozen=True)
class Outcome:
    """Result of probing one capability."""

    candidate: PackageSet | None = None

    @property
    def available(self) -> bool:
        return self.candidate is not None

    @classmethod
    def found(cls, candidate: PackageSet) -> Outcome:
        return cls(candidate=tuple(candidate))

    @classmethod
    def missing(cls) -> Outcome:
        return cls()

    def __str__(self) -> str:
        if self.candidate is None:
            return "unavailable"
        return f"available({' '.join(self.candidate)})"


class ProbeResults(Mapping):
    """Read-only mapping of capability name to :class:`Outcome`."""

    def __init__(self, outcomes: Mapping[str, Outcome] | None = None) -> None:
        self._outcomes = MappingProxyType(dict(outcomes or {}))

    def __getitem__(self, name: str) -> Outcome:
        return self._outcomes[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._outcomes)

    def __len__(self) -> int:
        return len(self._outcomes)

    def __repr__(self) -> str:
        body = ", ".join(f"{k}={v}" for k, v in self._outcomes.items())
        return f"ProbeResults({body})"

    def available(self) -> list[str]:
        """Names of capabilities that were found."""
        return [k for k, v in self._outcomes.items() if v.available]


# ── Operations ────────────────────────────────────────────────────────

def probe(candidates: Iterable[PackageSet], install: Installer) -> Outcome:
    """Try *candidates* in order and return the first that installs."""
    candidates = [tuple(c) for c in candidates]
    if not candidates:
        raise ValueError("probe needs at least one candidate package set")
    for candidate in candidates:
        if install(candidate):
            return Outcome.found(candidate)
        log.debug(f"candidate failed: {' '.join(candidate)}")
    return Outcome.missing()


def run_baseline(packages: Iterable[str], install: Installer) -> None:
    """Install the non-negotiable package set or raise :class:`FatalError`."""
    packages = tuple(packages)
    log.info(f"Installing {len(packages)} baseline package(s)")
    if not install(packages):
        raise FatalError(
            "baseline packages could not be installed; "
            "the image would not be usable"
        )
    log.success("Baseline packages installed")


def probe_all(capabilities: Iterable[Capability], install: Installer) -> ProbeResults:
    """Probe each capability in declared order."""
    outcomes: dict[str, Outcome] = {}
    for cap in capabilities:
        if cap.name in outcomes:
            raise ValueError(f"duplicate capability: {cap.name}")
        outcome = probe(cap.candidates, install)
        if outcome.available:
            log.success(f"{cap.name}: {' '.join(outcome.candidate)}")
        else:
            log.miss(f"{cap.name}: no candidate available")
        outcomes[cap.name] = outcome
    return ProbeResults(outcomes)


# ── Disposable environment ────────────────────────────────────────────

def apk_installer(container: str) -> Installer:
    """Return an :data:`Installer` that runs ``apk add`` in *container*."""

    def install(packages: PackageSet) -> bool:
        return engine.exec_ok(container, ["apk", "add", "--no-cache", *packages])

    return install


@contextlib.contextmanager
def sandbox(image: str) -> Iterator[Installer]:
    """Start a throwaway container from *image* and yield its installer.

    The container is stopped on every exit path; it was started with
    ``--rm`` so stopping also removes it.
    """
    log.info(f"Starting disposable container from {image}")
    try:
        container = engine.run_detached(image, ["sleep", _SANDBOX_LIFETIME])
    except engine.EngineError as exc:
        raise FatalError(f"could not start probe container: {exc.stderr or exc}") from exc
    log.debug(f"probe container: {container}")
    try:
        yield apk_installer(container)
    finally:
        log.info("Stopping disposable container")
        engine.stop(container)
