# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Exception hierarchy shared by the resolver components."""

from __future__ import annotations


class ModGraphError(Exception):
    """Base class for errors raised by modgraph."""


class ConfigError(ModGraphError):
    """Raised when resolver settings are invalid."""


class InvocationError(ModGraphError):
    """Raised when the external inspection command fails or emits unusable output."""

    def __init__(self, specifier: str, exit_code: int, stderr: str) -> None:
        super().__init__(
            f"Graph inspection failed for '{specifier}' with status {exit_code}. stderr: {stderr or '<none>'}",
        )
        self.specifier = specifier
        self.exit_code = exit_code
        self.stderr = stderr


class InternalConsistencyError(ModGraphError):
    """Raised when cache state contradicts what the caller relied on."""


class ModuleNotCachedError(InternalConsistencyError):
    """Raised when a module is retrieved before it has been resolved."""

    def __init__(self, specifier: str) -> None:
        super().__init__(f"Module not found in resolution cache: {specifier}")
        self.specifier = specifier


class UnresolvedSpecifierError(ModGraphError):
    """Raised at the bundler boundary when a specifier resolves to an error record."""

    def __init__(self, specifier: str, reason: str | None = None) -> None:
        message = f"Failed to resolve: {specifier}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.specifier = specifier
        self.reason = reason


class MalformedVirtualIdError(ValueError):
    """Raised when a sentinel-prefixed virtual id cannot be decoded."""


__all__ = [
    "ConfigError",
    "InternalConsistencyError",
    "InvocationError",
    "MalformedVirtualIdError",
    "ModGraphError",
    "ModuleNotCachedError",
    "UnresolvedSpecifierError",
]
