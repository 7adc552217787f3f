# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for resolver settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from modgraph.config import DEFAULT_CACHE_RELPATH, ResolverSettings, load_settings
from modgraph.errors import ConfigError


def test_defaults(tmp_path: Path) -> None:
    settings = load_settings(tmp_path, env={})

    assert settings.tool == "deno"
    assert settings.persist is True
    assert settings.invocation_timeout is None
    assert settings.resolved_cache_file == tmp_path / DEFAULT_CACHE_RELPATH


def test_layers_apply_in_precedence_order(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text(
        '[tool.modgraph]\ntool = "deno-canary"\ncache_file = "$CACHE_ROOT/modgraph.json"\ninvocation_timeout = 30\n',
        encoding="utf-8",
    )
    env = {"CACHE_ROOT": "build", "MODGRAPH_TIMEOUT": "12.5", "MODGRAPH_PERSIST": "off"}

    settings = load_settings(tmp_path, env=env, overrides={"report_summary": True})

    assert settings.tool == "deno-canary"
    assert settings.resolved_cache_file == tmp_path / "build" / "modgraph.json"
    assert settings.invocation_timeout == 12.5
    assert settings.persist is False
    assert settings.report_summary is True


@pytest.mark.parametrize(
    ("pyproject", "env"),
    [
        ("[tool.modgraph]\nunknown_key = 1\n", {}),
        ("[tool.modgraph\n", {}),
        ("", {"MODGRAPH_PERSIST": "maybe"}),
        ("", {"MODGRAPH_TIMEOUT": "-1"}),
        ('[tool.modgraph]\ntool = "  "\n', {}),
    ],
)
def test_invalid_settings_raise_config_error(tmp_path: Path, pyproject: str, env: dict[str, str]) -> None:
    (tmp_path / "pyproject.toml").write_text(pyproject, encoding="utf-8")

    with pytest.raises(ConfigError):
        load_settings(tmp_path, env=env)


def test_absolute_cache_file_is_kept(tmp_path: Path) -> None:
    target = tmp_path / "elsewhere" / "cache.json"

    assert ResolverSettings(root=tmp_path / "project", cache_file=target).resolved_cache_file == target
