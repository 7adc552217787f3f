# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Module resolution and dependency-graph caching for bundler integrations."""

from __future__ import annotations

from importlib import metadata

from .codec import VirtualModuleId, parse_virtual_id, to_virtual_id
from .config import ResolverSettings, load_settings
from .errors import (
    InternalConsistencyError,
    InvocationError,
    ModGraphError,
    ModuleNotCachedError,
    UnresolvedSpecifierError,
)
from .models import EsmModule, ErrorModule, ForeignPackageModule, MediaType, ModuleRecord, NativeModule
from .namespace import translate_foreign_package
from .resolver import Resolver

__all__ = [
    "EsmModule",
    "ErrorModule",
    "ForeignPackageModule",
    "InternalConsistencyError",
    "InvocationError",
    "MediaType",
    "ModGraphError",
    "ModuleNotCachedError",
    "ModuleRecord",
    "NativeModule",
    "Resolver",
    "ResolverSettings",
    "UnresolvedSpecifierError",
    "VirtualModuleId",
    "__version__",
    "load_settings",
    "parse_virtual_id",
    "to_virtual_id",
    "translate_foreign_package",
]

try:
    __version__ = metadata.version("modgraph")
except metadata.PackageNotFoundError:  # pragma: no cover - local development fallback
    __version__ = "0.0.0"
