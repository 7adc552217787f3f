# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""User-facing console output built on Rich."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from rich.console import Console
from rich.rule import Rule
from rich.text import Text

if TYPE_CHECKING:
    from .resolver import ResolverSummary


def detect_tty() -> bool:
    """Return ``True`` when stdout appears to be backed by a terminal."""

    try:
        return sys.stdout.isatty()
    except (AttributeError, ValueError):
        return False


def get_console(*, use_color: bool | None = None) -> Console:
    """Return a console writing to the current ``sys.stdout``.

    Args:
        use_color: Force colour on or off; ``None`` follows TTY detection.

    Returns:
        Console: Console configured for the requested colour mode.
    """

    tty = detect_tty()
    color = tty if use_color is None else use_color and tty
    return Console(
        file=sys.stdout,
        color_system="auto" if color else None,
        no_color=not color,
        soft_wrap=True,
    )


def _print_line(msg: str, *, style: str, use_color: bool | None) -> None:
    console = get_console(use_color=use_color)
    text = Text(msg)
    if console.color_system is not None:
        text.stylize(style)
    console.print(text)


def section(title: str, *, use_color: bool | None = None) -> None:
    """Render a section header."""

    console = get_console(use_color=use_color)
    if console.color_system is not None:
        console.print()
        console.print(Rule(title))
    else:
        console.print(f"\n--- {title} ---")


def info(msg: str, *, use_color: bool | None = None) -> None:
    """Emit an informational message."""

    _print_line(msg, style="cyan", use_color=use_color)


def warn(msg: str, *, use_color: bool | None = None) -> None:
    """Emit a warning message."""

    _print_line(msg, style="yellow", use_color=use_color)


def render_summary(summary: ResolverSummary, *, use_color: bool | None = None) -> None:
    """Print the end-of-session resolver summary.

    Args:
        summary: Counters collected by the resolver.
        use_color: Force colour on or off; ``None`` follows TTY detection.
    """

    section("module resolution", use_color=use_color)
    info(
        f"{summary.cached_modules} module(s) cached, {summary.root_lookups} root id(s) memoized",
        use_color=use_color,
    )
    info(
        f"{summary.invocations} inspection call(s), {round(summary.invocation_seconds * 1000)} ms total",
        use_color=use_color,
    )
    if summary.unknown_ids:
        warn(f"{summary.unknown_ids} id(s) could not be resolved", use_color=use_color)


__all__ = ["detect_tty", "get_console", "info", "render_summary", "section", "warn"]
