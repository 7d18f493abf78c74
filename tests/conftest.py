"""Shared fixtures for basegen tests."""

from __future__ import annotations

import argparse
from pathlib import Path

import pytest

from basegen.config import Config
from basegen.probe import Capability


@pytest.fixture
def tmp_project(tmp_path: Path) -> Path:
    """A project directory with a small .basegen.yaml."""
    (tmp_path / ".basegen.yaml").write_text(
        "image: demo-base\n"
        "registry: ghcr.io/example\n"
        "packages:\n"
        "  baseline: [bash, curl]\n"
        "  optional:\n"
        "    - name: webp\n"
        "      candidates:\n"
        "        - libwebp libwebp-dev\n"
    )
    return tmp_path


class FakeInstaller:
    """Installer that succeeds only for the listed package sets.

    Records every package set it was asked to install, in order.
    """

    def __init__(self, *installable: tuple[str, ...]) -> None:
        self.installable = {tuple(p) for p in installable}
        self.calls: list[tuple[str, ...]] = []

    def __call__(self, packages: tuple[str, ...]) -> bool:
        self.calls.append(tuple(packages))
        return tuple(packages) in self.installable


def make_capability(name: str, *candidates: str, **kwargs) -> Capability:
    """``make_capability("webp", "libwebp libwebp-dev")``."""
    return Capability(
        name=name,
        candidates=tuple(tuple(c.split()) for c in candidates),
        **kwargs,
    )


def make_config(**kwargs) -> Config:
    """Factory for Config with small, test-friendly defaults."""
    defaults = {
        "image": "testbase",
        "registry": "ghcr.io/example",
        "baseline": ["bash", "curl"],
        "capabilities": [
            make_capability("mimalloc", "mimalloc2 mimalloc2-dev", "mimalloc mimalloc-dev"),
            make_capability("webp", "libwebp libwebp-dev", description="WebP support"),
        ],
        "smoke": [["ruby", "--version"]],
    }
    defaults.update(kwargs)
    return Config(**defaults)


def make_args(**kwargs) -> argparse.Namespace:
    defaults = {
        "verbose": False,
        "directory": None,
        "registry": None,
        "engine": None,
        "command": "generate",
    }
    defaults.update(kwargs)
    return argparse.Namespace(**defaults)
