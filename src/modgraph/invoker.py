# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Run the external graph-inspection command and parse its JSON output.

The inspection tool may install missing packages and rewrite its lockfile
while it runs, so invocations that share a working directory are serialized.
Invocations for different working directories hold different locks and may
proceed in parallel.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from threading import Lock
from typing import Final, Protocol, runtime_checkable

from pydantic import ValidationError

from .errors import InvocationError
from .models import DependencyGraphSnapshot
from .process_utils import run_command

LOGGER = logging.getLogger(__name__)

MISSING_EXECUTABLE_RETURNCODE: Final[int] = 127


@runtime_checkable
class GraphInspector(Protocol):
    """Contract satisfied by anything able to produce a dependency graph snapshot."""

    def resolve_graph(self, specifier: str, working_dir: Path) -> DependencyGraphSnapshot:
        """Return the snapshot reachable from ``specifier`` inside ``working_dir``.

        Args:
            specifier: Module specifier to inspect.
            working_dir: Directory whose configuration drives resolution.

        Returns:
            DependencyGraphSnapshot: Parsed inspection result.

        Raises:
            InvocationError: If the inspection fails.
        """
        raise NotImplementedError


def parse_snapshot(specifier: str, payload: str) -> DependencyGraphSnapshot:
    """Validate the raw stdout of the inspection command.

    Args:
        specifier: Specifier that was inspected, used for error reporting.
        payload: JSON text written by the tool.

    Returns:
        DependencyGraphSnapshot: Parsed snapshot.

    Raises:
        InvocationError: If ``payload`` is not valid JSON or lacks required fields.
    """

    try:
        return DependencyGraphSnapshot.model_validate_json(payload)
    except ValidationError as exc:
        raise InvocationError(specifier, 0, f"Malformed inspection output: {exc}") from exc


class GraphInvoker(GraphInspector):
    """Invoke ``<tool> info --json <specifier>`` as a subprocess."""

    def __init__(
        self,
        tool: str = "deno",
        *,
        timeout: float | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        """Initialise the invoker.

        Args:
            tool: Executable name or absolute path of the inspection tool.
            timeout: Optional per-invocation timeout in seconds.
            env: Optional environment passed to the tool instead of the inherited one.
        """

        self._tool = tool
        self._timeout = timeout
        self._env = dict(env) if env is not None else None
        self._locks: dict[Path, Lock] = {}
        self._registry_lock = Lock()

    @property
    def tool(self) -> str:
        return self._tool

    def command_for(self, specifier: str) -> list[str]:
        """Return the argument list used to inspect ``specifier``."""

        return [self._tool, "info", "--json", specifier]

    def _lock_for(self, working_dir: Path) -> Lock:
        key = working_dir.resolve()
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = Lock()
            return lock

    def resolve_graph(self, specifier: str, working_dir: Path) -> DependencyGraphSnapshot:
        """Run the inspection command for ``specifier`` and parse its output.

        Args:
            specifier: Module specifier to inspect.
            working_dir: Directory the command runs in.

        Returns:
            DependencyGraphSnapshot: Parsed inspection result.

        Raises:
            InvocationError: On a missing executable, a non-zero exit status,
            a timeout, or output that does not parse.
        """

        command = self.command_for(specifier)
        LOGGER.debug("Running %s in %s", " ".join(command), working_dir)
        with self._lock_for(working_dir):
            try:
                completed = run_command(command, cwd=working_dir, env=self._env, timeout=self._timeout)
            except FileNotFoundError as exc:
                raise InvocationError(specifier, MISSING_EXECUTABLE_RETURNCODE, str(exc)) from exc

        if completed.returncode != 0:
            raise InvocationError(specifier, completed.returncode, (completed.stderr or "").strip())
        return parse_snapshot(specifier, completed.stdout)


__all__ = ["GraphInspector", "GraphInvoker", "parse_snapshot"]
