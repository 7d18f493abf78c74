""".basegen.yaml parsing and defaults.

This module has ZERO side effects beyond reading files and the git
remote.  It returns dataclasses; it does not run containers or touch
the network.  Every key is optional: an empty project directory yields
the stock Rails base image configuration.
"""

from __future__ import annotations

import os
import re
import shlex
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from basegen.probe import Capability

_CONFIG_PATHS = [
    ".basegen.yaml",
    ".basegen/config.yaml",
]

# ── Defaults ─────────────────────────────────────────────────────────

DEFAULT_BASE_IMAGE = "ruby:3.3.0-alpine"
DEFAULT_OUTPUT = "Dockerfile.base.optimized"

DEFAULT_BASELINE = [
    "build-base", "gcc", "g++", "make", "musl-dev", "linux-headers",
    "curl", "curl-dev", "openssl-dev", "ca-certificates",
    "git", "bash", "tzdata", "unzip", "file",
    "postgresql-client", "postgresql-dev", "libpq-dev",
    "sqlite", "sqlite-dev",
    "imagemagick", "imagemagick-dev", "libjpeg-turbo",
    "freetype", "freetype-dev",
    "nodejs", "npm", "yarn",
    "libgomp", "dumb-init",
    "libxml2-dev", "libxslt-dev", "zlib-dev", "libffi-dev", "yaml-dev",
    "python3", "python3-dev",
]

_MIMALLOC_CONFIGURE = """\
RUN if ls /usr/lib/libmimalloc* 1> /dev/null 2>&1; then \\
        echo "export LD_PRELOAD=\\$(ls /usr/lib/libmimalloc*.so* | head -1)" >> /etc/profile; \\
    fi"""

DEFAULT_CAPABILITIES = [
    Capability(
        name="malloc",
        candidates=(("mimalloc2", "mimalloc2-dev"), ("mimalloc", "mimalloc-dev")),
        description="high-performance memory allocator",
        configure=_MIMALLOC_CONFIGURE,
    ),
    Capability(
        name="mysql",
        candidates=(
            ("mariadb-connector-c", "mariadb-dev"),
            ("mysql-client", "mysql-dev"),
        ),
        description="MySQL/MariaDB support",
    ),
    Capability(
        name="webp",
        candidates=(("libwebp", "libwebp-dev"),),
        description="WebP support",
    ),
]

DEFAULT_LABELS = {
    "maintainer": "your-email@example.com",
    "description": "Optimized Ruby Rails base image",
    "version": "1.0",
}

DEFAULT_ENV = {
    "LANG": "C.UTF-8",
    "LC_ALL": "C.UTF-8",
    "RUBY_YJIT_ENABLE": "1",
    "MALLOC_ARENA_MAX": "2",
}

DEFAULT_GEMS = ["rails", "pg", "puma", "bootsnap", "image_processing"]

DEFAULT_SMOKE = [
    "ruby --version",
    "node --version",
    "bundle --version",
    "psql --version",
    "convert --version",
]


class ConfigError(Exception):
    """The configuration file is present but invalid."""


# ── Dataclasses ──────────────────────────────────────────────────────

@dataclass
class PushConfig:
    """Fixed-count retry settings for registry pushes."""

    attempts: int = 3
    delay: float = 10.0


@dataclass
class RubyConfig:
    bundler: str = "2.6.5"
    gems: list[str] = field(default_factory=lambda: list(DEFAULT_GEMS))


@dataclass
class Config:
    """Top-level configuration for one base image."""

    image: str = "rails-base"
    registry: str = "localhost"
    tag: str = "latest"
    base_image: str = DEFAULT_BASE_IMAGE
    output: str = DEFAULT_OUTPUT
    engine: str = "docker"
    user: str | None = None
    labels: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_LABELS))
    baseline: list[str] = field(default_factory=lambda: list(DEFAULT_BASELINE))
    capabilities: list[Capability] = field(
        default_factory=lambda: list(DEFAULT_CAPABILITIES)
    )
    env: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ENV))
    ruby: RubyConfig = field(default_factory=RubyConfig)
    smoke: list[list[str]] = field(
        default_factory=lambda: [shlex.split(c) for c in DEFAULT_SMOKE]
    )
    push: PushConfig = field(default_factory=PushConfig)

    @property
    def full_image(self) -> str:
        """Registry-qualified image name (``registry/image``)."""
        return f"{self.registry}/{self.image}"

    @property
    def remote_ref(self) -> str:
        return f"{self.full_image}:{self.tag}"

    @property
    def local_ref(self) -> str:
        """Tag used for the freshly built, not yet verified image."""
        return f"{self.image}:test"


# ── Registry detection ───────────────────────────────────────────────

def _detect_registry() -> str:
    """Registry from BASEGEN_REGISTRY, else ``ghcr.io/<org>`` from git.

    Returns ``localhost`` when neither is available so local builds
    still work.
    """
    env = os.environ.get("BASEGEN_REGISTRY")
    if env:
        return env
    org = _git_remote_org()
    if org:
        return f"ghcr.io/{org.lower()}"
    return "localhost"


def _git_remote_org() -> str | None:
    """Extract the owner from the origin remote (SSH or HTTPS form)."""
    try:
        result = subprocess.run(
            ["git", "remote", "get-url", "origin"],
            capture_output=True, text=True, check=False,
        )
    except FileNotFoundError:
        return None
    if result.returncode != 0:
        return None
    url = result.stdout.strip()
    m = re.match(r"git@[^:]+:([^/]+)/", url)
    if m:
        return m.group(1)
    m = re.match(r"https?://[^/]+/([^/]+)/", url)
    if m:
        return m.group(1)
    return None


# ── Parsing ──────────────────────────────────────────────────────────

def _find_config_file(base: Path) -> Path | None:
    for name in _CONFIG_PATHS:
        candidate = base / name
        if candidate.is_file():
            return candidate
    return None


def _package_set(raw: Any, where: str) -> tuple[str, ...]:
    """Accept ``"a b"`` or ``[a, b]`` as a package set."""
    if isinstance(raw, str):
        packages = tuple(raw.split())
    elif isinstance(raw, list):
        packages = tuple(str(p) for p in raw)
    else:
        raise ConfigError(f"{where}: expected a string or list of packages")
    if not packages:
        raise ConfigError(f"{where}: empty package set")
    return packages


def _parse_capabilities(raw: list[dict[str, Any]]) -> list[Capability]:
    caps: list[Capability] = []
    seen: set[str] = set()
    for i, entry in enumerate(raw):
        if not isinstance(entry, dict) or "name" not in entry:
            raise ConfigError(f"packages.optional[{i}]: missing 'name'")
        name = str(entry["name"])
        if name in seen:
            raise ConfigError(f"packages.optional: duplicate capability '{name}'")
        seen.add(name)
        raw_candidates = _list(entry.get("candidates"), f"capability '{name}' candidates")
        if not raw_candidates:
            raise ConfigError(f"capability '{name}': no candidates")
        candidates = tuple(
            _package_set(c, f"capability '{name}' candidate {j}")
            for j, c in enumerate(raw_candidates)
        )
        caps.append(Capability(
            name=name,
            candidates=candidates,
            description=str(entry.get("description") or ""),
            configure=str(entry.get("configure") or "").rstrip("\n"),
        ))
    return caps


def _parse_smoke(raw: list[Any]) -> list[list[str]]:
    commands: list[list[str]] = []
    for i, c in enumerate(raw):
        if isinstance(c, str):
            commands.append(shlex.split(c))
        elif isinstance(c, list):
            commands.append([str(a) for a in c])
        else:
            raise ConfigError(f"smoke[{i}]: expected a string or list")
    return commands


def _mapping(raw: Any, where: str) -> dict[str, Any]:
    """Return *raw* as a mapping; a missing or empty section is ``{}``."""
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{where}: expected a mapping")
    return raw


def _list(raw: Any, where: str) -> list[Any]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigError(f"{where}: expected a list")
    return raw


def _number(raw: Any, kind: type, where: str) -> Any:
    if isinstance(raw, bool):
        raise ConfigError(f"{where}: expected a number, got {raw!r}")
    try:
        return kind(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"{where}: expected a number, got {raw!r}") from None


def _str_dict(raw: Any, where: str) -> dict[str, str]:
    if not isinstance(raw, dict):
        raise ConfigError(f"{where}: expected a mapping")
    return {str(k): str(v) for k, v in raw.items()}


def parse(data: dict[str, Any], cfg: Config | None = None) -> Config:
    """Apply the parsed YAML document *data* on top of *cfg* (or defaults)."""
    if cfg is None:
        cfg = Config()
    if not isinstance(data, dict):
        raise ConfigError("top level of the config file must be a mapping")

    for key in ("image", "registry", "tag", "base_image", "output", "engine", "user"):
        if key in data:
            setattr(cfg, key, str(data[key]))

    if "labels" in data:
        cfg.labels = _str_dict(data["labels"], "labels")
    if "env" in data:
        cfg.env = _str_dict(data["env"], "env")

    packages = _mapping(data.get("packages"), "packages")
    if "baseline" in packages:
        cfg.baseline = list(_package_set(packages["baseline"], "packages.baseline"))
    if "optional" in packages:
        cfg.capabilities = _parse_capabilities(
            _list(packages["optional"], "packages.optional")
        )

    ruby = _mapping(data.get("ruby"), "ruby")
    if "bundler" in ruby:
        cfg.ruby.bundler = str(ruby["bundler"])
    if "gems" in ruby:
        cfg.ruby.gems = [str(g) for g in _list(ruby["gems"], "ruby.gems")]

    if "smoke" in data:
        cfg.smoke = _parse_smoke(_list(data["smoke"], "smoke"))

    push = _mapping(data.get("push"), "push")
    if "attempts" in push:
        cfg.push.attempts = _number(push["attempts"], int, "push.attempts")
        if cfg.push.attempts < 1:
            raise ConfigError("push.attempts must be at least 1")
    if "delay" in push:
        cfg.push.delay = _number(push["delay"], float, "push.delay")
        if cfg.push.delay < 0:
            raise ConfigError("push.delay must not be negative")

    return cfg


def load(base: Path | None = None) -> Config:
    """Load configuration for the project in *base* (default: cwd).

    Precedence: environment > config file > git remote > built-in defaults.
    """
    if base is None:
        base = Path.cwd()
    base = Path(base)

    data: dict[str, Any] = {}
    config_file = _find_config_file(base)
    if config_file is not None:
        try:
            with open(config_file) as fh:
                data = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"{config_file}: {exc}") from exc

    cfg = parse(data)
    if "registry" not in data:
        cfg.registry = _detect_registry()
    elif os.environ.get("BASEGEN_REGISTRY"):
        cfg.registry = os.environ["BASEGEN_REGISTRY"]
    if os.environ.get("BASEGEN_ENGINE"):
        cfg.engine = os.environ["BASEGEN_ENGINE"]
    return cfg
