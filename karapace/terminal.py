"""Terminal markers and banners printed around container sessions."""

from __future__ import annotations

import contextlib
import sys

OSC_START = "\x1b]777;"
OSC_END = "\x1b\\"


def short_id(env_id: str) -> str:
    """Return the first twelve characters of an environment id."""
    return env_id[:12]


def is_interactive_terminal() -> bool:
    """Return whether standard error is attached to a terminal."""
    try:
        return sys.stderr.isatty()
    except (AttributeError, ValueError):
        return False


def _emit(marker: str) -> None:
    with contextlib.suppress(OSError, ValueError):
        sys.stderr.write(marker)
        sys.stderr.flush()


def emit_container_push(env_id: str, hostname: str) -> None:
    """Tell the terminal that a container session has started."""
    if is_interactive_terminal():
        _emit(f"{OSC_START}container;push;{hostname};karapace;{env_id}{OSC_END}")


def emit_container_pop() -> None:
    """Tell the terminal that the container session has ended."""
    if is_interactive_terminal():
        _emit(f"{OSC_START}container;pop;;{OSC_END}")


def print_container_banner(env_id: str, image: str, hostname: str) -> None:
    """Announce entry into an environment."""
    if is_interactive_terminal():
        print(
            f"\x1b[1;36m[karapace]\x1b[0m entering \x1b[1m{image}\x1b[0m "
            f"({short_id(env_id)}) as \x1b[1m{hostname}\x1b[0m",
            file=sys.stderr,
        )


def print_container_exit(env_id: str) -> None:
    """Announce exit from an environment."""
    if is_interactive_terminal():
        print(
            f"\x1b[1;36m[karapace]\x1b[0m exited environment {short_id(env_id)}",
            file=sys.stderr,
        )