"""Console output for basegen.

Colored step headers, leveled messages, a verbose-only debug channel
and named timers.  Messages go to stdout, warnings and errors to stderr.
"""

from __future__ import annotations

import sys
import time

# ANSI color codes -- only used when stdout is a terminal.
_COLORS = {
    "reset": "\033[0m",
    "bold": "\033[1m",
    "dim": "\033[2m",
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "blue": "\033[34m",
    "cyan": "\033[36m",
}

_use_color: bool | None = None
_verbose: bool = False


def _color_enabled() -> bool:
    global _use_color
    if _use_color is None:
        _use_color = hasattr(sys.stdout, "isatty") and sys.stdout.isatty()
    return _use_color


def set_color(enabled: bool) -> None:
    """Override automatic color detection."""
    global _use_color
    _use_color = enabled


def set_verbose(enabled: bool) -> None:
    """Enable or disable :func:`debug` output."""
    global _verbose
    _verbose = enabled


def is_verbose() -> bool:
    return _verbose


def _c(name: str) -> str:
    if _color_enabled():
        return _COLORS.get(name, "")
    return ""


def _out(stream, text: str) -> None:
    stream.write(text + "\n")
    stream.flush()


# ── Public API ────────────────────────────────────────────────────────

def step(message: str) -> None:
    """Print a bold step header, e.g. ``=== Probing capabilities ===``."""
    _out(sys.stdout, f"{_c('bold')}{_c('cyan')}=== {message} ==={_c('reset')}")


def info(message: str) -> None:
    _out(sys.stdout, f"{_c('blue')}[info]{_c('reset')} {message}")


def debug(message: str) -> None:
    """Print *message* only when verbose output is enabled."""
    if not _verbose:
        return
    _out(sys.stdout, f"{_c('dim')}[debug] {message}{_c('reset')}")


def warn(message: str) -> None:
    _out(sys.stderr, f"{_c('yellow')}[warn]{_c('reset')} {message}")


def error(message: str) -> None:
    _out(sys.stderr, f"{_c('red')}[error]{_c('reset')} {message}")


def success(message: str) -> None:
    _out(sys.stdout, f"{_c('green')}[ok]{_c('reset')} {message}")


def miss(message: str) -> None:
    """Report an optional feature that was not found.  Not an error."""
    _out(sys.stdout, f"{_c('yellow')}[miss]{_c('reset')} {message}")


# ── Timing helpers ────────────────────────────────────────────────────

_timers: dict[str, float] = {}


def timer_start(name: str) -> None:
    _timers[name] = time.monotonic()


def timer_stop(name: str) -> str:
    """Stop a named timer, print and return the elapsed time."""
    start = _timers.pop(name, None)
    if start is None:
        warn(f"timer_stop called for unknown timer: {name}")
        return "??s"
    formatted = _format_elapsed(time.monotonic() - start)
    info(f"{name} took {formatted}")
    return formatted


def _format_elapsed(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes = int(seconds) // 60
    return f"{minutes}m{seconds - minutes * 60:.1f}s"
