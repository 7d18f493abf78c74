"""Layout of the generated Rails base Dockerfile.

Builds a :class:`~basegen.template.Template` from the configuration:

1. Header: base image, labels, package database refresh.
2. Baseline install block.
3. One optional install block per capability, in probe order.
4. Trailer: cleanup, environment, capability ``configure`` snippets,
   bundler, gem pre-install, directories, healthcheck, default command.

Only the optional blocks and ``configure`` snippets are conditional.
"""

from __future__ import annotations

from collections.abc import Iterable

from basegen.config import Config
from basegen.template import (
    PACKAGES_PLACEHOLDER,
    ConditionalSection,
    FixedSection,
    Template,
)

_CLEANUP = "RUN rm -rf /var/cache/apk/* /tmp/* /var/tmp/*"

_HEALTHCHECK = (
    "HEALTHCHECK --interval=30s --timeout=10s --start-period=5s --retries=3 \\\n"
    '    CMD echo "healthy" || exit 1'
)


def install_block(packages: Iterable[str]) -> str:
    """``RUN apk add --no-cache`` with one package per continuation line."""
    lines = ["RUN apk add --no-cache"] + [f"    {p}" for p in packages]
    return " \\\n".join(lines)


def _header(cfg: Config) -> str:
    lines = [
        "# Optimized Base Image - Generated based on available packages",
        f"FROM {cfg.base_image}",
    ]
    if cfg.labels:
        lines.append("")
        lines += [f'LABEL {key}="{val}"' for key, val in cfg.labels.items()]
    lines += [
        "",
        "# Update package database",
        "RUN apk update --no-cache && apk upgrade --no-cache",
    ]
    return "\n".join(lines)


def _baseline(cfg: Config) -> str:
    return "# Install core packages\n" + install_block(cfg.baseline)


def _environment(cfg: Config) -> str:
    lines = ["# Configure Ruby environment"]
    lines += [f"ENV {key}={val}" for key, val in cfg.env.items()]
    return "\n".join(lines)


def _bundler(cfg: Config) -> str:
    return (
        "# Configure Bundler\n"
        "RUN gem update --system --no-document && \\\n"
        f"    gem install bundler -v {cfg.ruby.bundler} --no-document && \\\n"
        "    bundle config set --global jobs $(nproc) && \\\n"
        "    bundle config set --global retry 3 && \\\n"
        "    bundle config set --global timeout 30"
    )


def _gems(cfg: Config) -> str:
    lines = ["RUN gem install --no-document"] + [f"    {g}" for g in cfg.ruby.gems]
    return "# Pre-install common gems\n" + " \\\n".join(lines)


def _directories() -> str:
    return (
        "# Setup directories\n"
        "RUN mkdir -p /app /tmp/rails && \\\n"
        "    chmod 755 /app /tmp/rails\n"
        "\n"
        "WORKDIR /app"
    )


def build_template(cfg: Config) -> Template:
    """Return the Dockerfile template for *cfg*."""
    sections: list[FixedSection | ConditionalSection] = [
        FixedSection(_header(cfg)),
        FixedSection(_baseline(cfg)),
    ]

    for cap in cfg.capabilities:
        comment = f"# Install {cap.description or cap.name}"
        sections.append(ConditionalSection(
            cap.name,
            f"{comment}\nRUN apk add --no-cache {PACKAGES_PLACEHOLDER}",
        ))

    sections.append(FixedSection("# Clean up\n" + _CLEANUP))
    if cfg.env:
        sections.append(FixedSection(_environment(cfg)))

    for cap in cfg.capabilities:
        if cap.configure:
            sections.append(ConditionalSection(
                cap.name, f"# Configure {cap.description or cap.name}\n{cap.configure}",
            ))

    sections.append(FixedSection(_bundler(cfg)))
    if cfg.ruby.gems:
        sections.append(FixedSection(_gems(cfg)))
    sections += [
        FixedSection(_directories()),
        FixedSection(_HEALTHCHECK),
        FixedSection('CMD ["/bin/bash"]'),
    ]
    return Template(tuple(sections))
