"""Command-line interface for basegen.

Parses arguments, loads configuration, and dispatches to the module
implementing the subcommand.
"""

from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Callable
from pathlib import Path

import basegen
from basegen import build, engine, generate, log, push
from basegen.config import Config
from basegen.config import load as load_config

Dispatcher = Callable[[Config, argparse.Namespace], int]

# ── Helpers ───────────────────────────────────────────────────────────

def _make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="basegen",
        description="Probe Alpine package availability and build a Rails base image",
        epilog="Run 'basegen <command> --help' for command details.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"basegen {basegen.VERSION}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        default=False,
        help="show probe attempts and tracebacks",
    )
    parser.add_argument(
        "-C", "--directory",
        metavar="DIR",
        default=None,
        help="run as if started in DIR",
    )
    parser.add_argument(
        "--registry",
        metavar="URL",
        default=None,
        help="override the registry (e.g. ghcr.io/myorg)",
    )
    parser.add_argument(
        "--engine",
        choices=engine.SUPPORTED_ENGINES,
        default=None,
        help="container engine to drive (default: docker)",
    )

    sub = parser.add_subparsers(dest="command", title="commands")
    sub.add_parser(
        "generate",
        help="probe packages and write the base Dockerfile",
        description="Probe optional packages in a throwaway container "
                    "and render the base Dockerfile.",
    )
    sub.add_parser(
        "build",
        help="build, smoke-test and tag the generated image",
        description="Build the generated Dockerfile and run smoke tests.",
    )
    sub.add_parser(
        "auth",
        help="log in to the registry",
        description="Log in using GHCR_TOKEN/GITHUB_TOKEN or the GitHub CLI.",
    )
    sub.add_parser(
        "push",
        help="push the image (fixed-count retry)",
        description="Push the tagged image, retrying on failure.",
    )
    sub.add_parser(
        "verify",
        help="pull the pushed image back and smoke-test it",
        description="Remove local copies, pull, and run smoke tests.",
    )
    sub.add_parser(
        "check",
        help="check the published image is accessible",
        description="Pull the published image and run smoke tests.",
    )
    sub.add_parser(
        "all",
        help="generate, build, auth, push and verify",
        description="Run every step, stopping at the first failure.",
    )
    return parser


def _apply_overrides(cfg: Config, args: argparse.Namespace) -> Config:
    """Apply CLI overrides (--registry, --engine) to the loaded config."""
    if args.registry is not None:
        cfg.registry = args.registry
    if args.engine is not None:
        cfg.engine = args.engine
    return cfg


def _dispatch_all(cfg: Config, args: argparse.Namespace) -> int:
    for name in _PIPELINE:
        rc = _DISPATCHERS[name](cfg, args)
        if rc:
            log.error(f"'{name}' failed -- stopping")
            return rc
    log.step("Done")
    log.success(f"{cfg.remote_ref} is published")
    return 0


_DISPATCHERS: dict[str, Dispatcher] = {
    "generate": generate.run,
    "build": build.run,
    "auth": push.auth,
    "push": push.run,
    "verify": push.verify,
    "check": push.check,
    "all": _dispatch_all,
}

_PIPELINE = ["generate", "build", "auth", "push", "verify"]


# ── Entry point ───────────────────────────────────────────────────────

def main(argv: list[str] | None = None) -> None:
    """Parse arguments, load config, dispatch to the subcommand.

    Parameters
    ----------
    argv:
        Argument list for testing.  Defaults to ``sys.argv[1:]``.
    """
    parser = _make_parser()
    args = parser.parse_args(argv)
    log.set_verbose(args.verbose)

    if args.command is None:
        parser.print_help(sys.stderr)
        sys.exit(2)

    if args.directory:
        try:
            os.chdir(args.directory)
        except OSError as exc:
            log.error(f"cannot change to {args.directory}: {exc}")
            sys.exit(1)

    try:
        cfg = _apply_overrides(load_config(Path.cwd()), args)
        engine.set_binary(cfg.engine)
    except Exception as exc:
        log.error(f"failed to load configuration: {exc}")
        if log.is_verbose():
            import traceback
            traceback.print_exc()
        sys.exit(1)

    dispatcher = _DISPATCHERS[args.command]
    try:
        rc = dispatcher(cfg, args)
    except KeyboardInterrupt:
        log.warn("interrupted")
        sys.exit(130)
    except Exception as exc:
        log.error(f"{args.command} failed: {exc}")
        if log.is_verbose():
            import traceback
            traceback.print_exc()
        sys.exit(1)

    sys.exit(rc)
