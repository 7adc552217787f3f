# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from modgraph.config import ResolverSettings
from modgraph.models import DependencyGraphSnapshot

from tests.helpers.graphs import esm_entry, make_snapshot


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Return a project directory containing ``main.ts`` and ``util.ts``."""

    root = tmp_path / "project"
    root.mkdir()
    (root / "main.ts").write_text("import { x } from './util.ts';\n", encoding="utf-8")
    (root / "util.ts").write_text("export const x = 1;\n", encoding="utf-8")
    return root


@pytest.fixture
def settings(project_root: Path) -> ResolverSettings:
    """Return settings with persistence disabled."""

    return ResolverSettings(root=project_root, persist=False)


@pytest.fixture
def main_snapshot(project_root: Path) -> DependencyGraphSnapshot:
    """Return the inspection result for ``main.ts`` importing ``util.ts`` and react."""

    main = f"file://{project_root}/main.ts"
    util = f"file://{project_root}/util.ts"
    return make_snapshot(
        [main],
        [
            esm_entry(
                main,
                str(project_root / "main.ts"),
                [("./util.ts", util), ("pkg:react@^18", "pkg:react@^18")],
            ),
            esm_entry(util, str(project_root / "util.ts")),
            {"kind": "pkg", "specifier": "pkg:/react@18.2.0", "packageId": "react@18.2.0"},
        ],
        redirects={"pkg:react@^18": "pkg:/react@18.2.0"},
    )
