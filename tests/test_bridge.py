# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for the bundler bridge and the session module registry."""

from __future__ import annotations

from pathlib import Path

import pytest

from modgraph.bridge import BundlerBridge, SessionModuleRegistry
from modgraph.codec import parse_virtual_id
from modgraph.config import ResolverSettings
from modgraph.errors import UnresolvedSpecifierError
from modgraph.models import DependencyGraphSnapshot
from modgraph.resolver import Resolver
from tests.helpers.graphs import RecordingInspector, esm_entry, make_snapshot


@pytest.fixture
def bridge(settings: ResolverSettings, main_snapshot: DependencyGraphSnapshot, project_root: Path) -> BundlerBridge:
    main_path = str(project_root / "main.ts")
    main = f"file://{project_root}/main.ts"
    native = make_snapshot(
        [main],
        [
            esm_entry(main, main_path, [("node:fs", "node:fs"), ("./gone.ts", "file:///srv/gone.ts")]),
            {"kind": "node", "specifier": "node:fs", "moduleName": "fs"},
            {"specifier": "file:///srv/gone.ts", "error": "Module not found"},
        ],
    )
    inspector = RecordingInspector({"./main.ts": main_snapshot, main_path: native, "@std/path": main_snapshot})
    return BundlerBridge(Resolver(settings, inspector=inspector), project_root, ssr_externals=["@std/*", "lodash"])


def test_root_id_resolves_to_virtual_id(bridge: BundlerBridge, project_root: Path) -> None:
    resolution = bridge.resolve_id("@std/path")

    assert resolution is not None
    assert not resolution.external
    decoded = parse_virtual_id(resolution.id)
    assert decoded is not None
    assert decoded.canonical_specifier == f"file://{project_root}/main.ts"


def test_ssr_externals_are_marked(bridge: BundlerBridge) -> None:
    resolution = bridge.resolve_id("@std/path", ssr=True)

    assert resolution is not None
    assert resolution.external
    assert bridge.is_ssr_external("lodash")
    assert not bridge.is_ssr_external("lodash-es")


@pytest.mark.parametrize("requested", ["\0virtual", "/abs/path.ts", "./relative.ts", "virtual:entry"])
def test_ignored_root_ids(bridge: BundlerBridge, requested: str) -> None:
    assert bridge.resolve_id(requested) is None


def test_virtual_importer_resolves_foreign_package(bridge: BundlerBridge) -> None:
    importer = bridge.resolve_id("@std/path")
    assert importer is not None

    resolution = bridge.resolve_id("pkg:react@^18", importer.id)

    assert resolution is not None
    assert resolution.native_id == "react"


def test_project_file_importer_handles_native_and_error_targets(bridge: BundlerBridge, project_root: Path) -> None:
    importer = str(project_root / "main.ts")

    native = bridge.resolve_id("node:fs", importer)
    assert native is not None
    assert native.external
    assert native.id == "node:fs"

    with pytest.raises(UnresolvedSpecifierError, match=r"\./gone\.ts"):
        bridge.resolve_id("./gone.ts", importer)


def test_foreign_importers_are_not_handled(bridge: BundlerBridge, project_root: Path) -> None:
    assert bridge.resolve_id("react", str(project_root / "node_modules" / "x" / "index.ts")) is None
    assert bridge.resolve_id("react", "/elsewhere/app.ts") is None
    assert bridge.resolve_id("react", str(project_root / "styles.css")) is None


def test_registry_renders_reexport_stub() -> None:
    registry = SessionModuleRegistry()
    registry.register("file:///srv/server.ts", {"render": object(), "default": object()})

    stub = registry.render_reexport_stub("file:///srv/server.ts")

    assert "file:///srv/server.ts" in registry
    assert stub.splitlines()[0] == "const module = __modgraphSession.get('file:///srv/server.ts');"
    assert "export const render = module.render;" in stub
    assert stub.rstrip().endswith("export default module.default;")


def test_registries_are_isolated_per_session() -> None:
    first, second = SessionModuleRegistry(), SessionModuleRegistry()
    first.register("a", {"x": 1})

    assert "a" not in second
    first.clear()
    assert len(first) == 0
    with pytest.raises(KeyError):
        first.render_reexport_stub("a")
