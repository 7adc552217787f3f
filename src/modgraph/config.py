# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Resolver settings with layered precedence.

Values are merged from built-in defaults, the ``[tool.modgraph]`` table of the
project's ``pyproject.toml``, ``MODGRAPH_*`` environment variables and finally
explicit overrides supplied by the caller.
"""

from __future__ import annotations

import os
import re
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigError
from .namespace import FOREIGN_PACKAGE_PREFIX

PYPROJECT_FILENAME: Final[str] = "pyproject.toml"
PYPROJECT_TOOL_KEY: Final[str] = "tool"
PYPROJECT_SECTION_KEY: Final[str] = "modgraph"
DEFAULT_CACHE_RELPATH: Final[Path] = Path("node_modules") / ".modgraph" / "resolver-cache.json"

_ENV_FIELDS: Final[dict[str, str]] = {
    "MODGRAPH_TOOL": "tool",
    "MODGRAPH_CACHE_FILE": "cache_file",
    "MODGRAPH_PERSIST": "persist",
    "MODGRAPH_TIMEOUT": "invocation_timeout",
    "MODGRAPH_FOREIGN_PREFIX": "foreign_prefix",
}
_TRUE_VALUES: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES: Final[frozenset[str]] = frozenset({"0", "false", "no", "off"})
_ENV_VAR_PATTERN = re.compile(r"\$(\w+)|\$\{([^}]+)\}")


class ResolverSettings(BaseModel):
    """Configuration consumed by :class:`modgraph.resolver.Resolver`."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    root: Path
    tool: str = "deno"
    cache_file: Path | None = None
    persist: bool = True
    invocation_timeout: float | None = Field(default=None, gt=0)
    check_staleness: bool = True
    report_summary: bool = False
    foreign_prefix: str = FOREIGN_PACKAGE_PREFIX

    @field_validator("tool", "foreign_prefix")
    @classmethod
    def _require_text(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value

    @property
    def resolved_cache_file(self) -> Path:
        """Return the cache file location, relative paths anchored at ``root``."""

        path = self.cache_file if self.cache_file is not None else DEFAULT_CACHE_RELPATH
        return path if path.is_absolute() else self.root / path


def load_settings(
    root: Path,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> ResolverSettings:
    """Build resolver settings for the project rooted at ``root``.

    Args:
        root: Project directory; the inspection tool runs here.
        env: Environment mapping used instead of :data:`os.environ`.
        overrides: Highest-precedence values supplied by the caller.

    Returns:
        ResolverSettings: Validated settings.

    Raises:
        ConfigError: If any layer holds an invalid value.
    """

    environment = os.environ if env is None else env
    merged: dict[str, Any] = {"root": root}
    merged.update(_expand_env(_pyproject_section(root / PYPROJECT_FILENAME), environment))
    merged.update(_environment_section(environment))
    if overrides:
        merged.update(overrides)
    try:
        return ResolverSettings.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid resolver settings: {exc}") from exc


def _pyproject_section(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        with path.open("rb") as handle:
            document = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Unable to parse {path}: {exc}") from exc
    section = document.get(PYPROJECT_TOOL_KEY, {}).get(PYPROJECT_SECTION_KEY, {})
    if not isinstance(section, Mapping):
        raise ConfigError(f"[{PYPROJECT_TOOL_KEY}.{PYPROJECT_SECTION_KEY}] in {path} must be a table")
    return dict(section)


def _environment_section(env: Mapping[str, str]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for variable, field in _ENV_FIELDS.items():
        raw = env.get(variable)
        if raw is None or not raw.strip():
            continue
        if field == "persist":
            values[field] = _parse_bool(variable, raw)
        else:
            values[field] = raw.strip()
    return values


def _parse_bool(variable: str, raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigError(f"{variable} must be a boolean, got {raw!r}")


def _expand_env(data: Mapping[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    def _replace(match: re.Match[str]) -> str:
        key = match.group(1) or match.group(2)
        return env.get(key, match.group(0))

    return {key: _ENV_VAR_PATTERN.sub(_replace, value) if isinstance(value, str) else value for key, value in data.items()}


__all__ = ["ResolverSettings", "load_settings"]
