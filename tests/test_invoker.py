# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for the graph inspection invoker."""

from __future__ import annotations

import json
import subprocess
import threading
import time
from pathlib import Path
from subprocess import CompletedProcess

import pytest

from modgraph.errors import InvocationError
from modgraph.graph_cache import ResolutionCache
from modgraph.invoker import GraphInspector, GraphInvoker, parse_snapshot
from modgraph.models import EsmModule
from modgraph.process_utils import TIMEOUT_RETURNCODE, run_command
from tests.helpers.graphs import esm_entry, info_payload


def _completed(args: list[str], *, stdout: str = "", stderr: str = "", returncode: int = 0) -> CompletedProcess[str]:
    return CompletedProcess(args=args, returncode=returncode, stdout=stdout, stderr=stderr)


def test_invoker_runs_info_json_in_working_dir(monkeypatch, tmp_path: Path) -> None:
    seen: list[tuple[list[str], Path | None]] = []
    payload = info_payload(["file:///srv/main.ts"], [esm_entry("file:///srv/main.ts", "/srv/main.ts")])

    def fake_run_command(args, *, cwd=None, env=None, timeout=None):  # noqa: ANN001
        seen.append((list(args), cwd))
        return _completed(list(args), stdout=json.dumps(payload))

    monkeypatch.setattr("modgraph.invoker.run_command", fake_run_command)

    snapshot = GraphInvoker("deno").resolve_graph("./main.ts", tmp_path)

    assert seen == [(["deno", "info", "--json", "./main.ts"], tmp_path)]
    assert snapshot.canonical_root() == "file:///srv/main.ts"


def test_invoker_raises_on_nonzero_exit(monkeypatch, tmp_path: Path) -> None:
    def fake_run_command(args, **kwargs):  # noqa: ANN001
        return _completed(list(args), stderr="error: Module not found\n", returncode=1)

    monkeypatch.setattr("modgraph.invoker.run_command", fake_run_command)

    with pytest.raises(InvocationError) as excinfo:
        GraphInvoker().resolve_graph("./missing.ts", tmp_path)

    assert excinfo.value.exit_code == 1
    assert excinfo.value.stderr == "error: Module not found"
    assert excinfo.value.specifier == "./missing.ts"


def test_invoker_raises_on_missing_executable(monkeypatch, tmp_path: Path) -> None:
    def fake_run_command(args, **kwargs):  # noqa: ANN001
        raise FileNotFoundError("Executable 'deno' was not found on PATH")

    monkeypatch.setattr("modgraph.invoker.run_command", fake_run_command)

    with pytest.raises(InvocationError) as excinfo:
        GraphInvoker().resolve_graph("react", tmp_path)

    assert excinfo.value.exit_code == 127


@pytest.mark.parametrize("stdout", ["not json", "{}", json.dumps({"roots": "main.ts"})])
def test_parse_snapshot_rejects_malformed_output(stdout: str) -> None:
    with pytest.raises(InvocationError, match="Malformed inspection output"):
        parse_snapshot("main.ts", stdout)


def test_invocations_in_same_directory_are_serialized(monkeypatch, tmp_path: Path) -> None:
    state = {"in_flight": 0, "max_in_flight": 0}
    guard = threading.Lock()
    payload = json.dumps(info_payload(["file:///srv/a.ts"], [esm_entry("file:///srv/a.ts", "/srv/a.ts")]))

    def fake_run_command(args, **kwargs):  # noqa: ANN001
        with guard:
            state["in_flight"] += 1
            state["max_in_flight"] = max(state["max_in_flight"], state["in_flight"])
        time.sleep(0.05)
        with guard:
            state["in_flight"] -= 1
        return _completed(list(args), stdout=payload)

    monkeypatch.setattr("modgraph.invoker.run_command", fake_run_command)
    invoker = GraphInvoker()
    threads = [threading.Thread(target=invoker.resolve_graph, args=(f"./{n}.ts", tmp_path)) for n in range(3)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert state["max_in_flight"] == 1


def test_graph_invoker_satisfies_protocol() -> None:
    assert isinstance(GraphInvoker(), GraphInspector)


def test_run_command_reports_missing_executable() -> None:
    with pytest.raises(FileNotFoundError):
        run_command(["definitely-not-a-real-inspection-tool"])


def test_run_command_maps_timeout_to_exit_code(monkeypatch) -> None:
    def fake_run(args, **kwargs):  # noqa: ANN001
        raise subprocess.TimeoutExpired(args, kwargs["timeout"], output=b"partial")

    monkeypatch.setattr("modgraph.process_utils.subprocess.run", fake_run)

    result = run_command(["/usr/bin/deno", "info"], timeout=2.0)

    assert result.returncode == TIMEOUT_RETURNCODE
    assert result.stdout == "partial"
    assert result.stderr == "Command timed out after 2.0s"


def test_parse_snapshot_keeps_graph_with_broken_import() -> None:
    main = esm_entry("file:///srv/a.ts", "/srv/a.ts", [("./b.ts", "file:///srv/b.ts")])
    main["dependencies"].append(
        {"specifier": "bogus", "code": {"error": "Relative import path \"bogus\" not prefixed", "span": {}}}
    )
    payload = info_payload(["file:///srv/a.ts"], [main, esm_entry("file:///srv/b.ts", "/srv/b.ts")])

    snapshot = parse_snapshot("file:///srv/a.ts", json.dumps(payload))
    cache = ResolutionCache()
    cache.ingest(snapshot)

    record = cache.get("file:///srv/a.ts")
    assert isinstance(record, EsmModule)
    assert record.dependency_for("./b.ts") == "file:///srv/b.ts"
    assert record.dependency_for("bogus") is None
