from __future__ import annotations

import warnings
from pathlib import Path
from types import SimpleNamespace

import pytest
from typer.testing import CliRunner

from ipd_harvester.app import AppState, app
from ipd_harvester.config import GlobalConfig
from ipd_harvester.errors import FatalHarvestError
from ipd_harvester.infra import IndexStore
from ipd_harvester.orchestrator import HarvestSummary


class StubOrchestrator:
    def __init__(self, summary: HarvestSummary) -> None:
        self.summary = summary
        self.requests: list = []

    def run(self, request, progress=None) -> HarvestSummary:
        self.requests.append(request)
        return self.summary


@pytest.fixture
def stub_state(monkeypatch: pytest.MonkeyPatch, global_config: GlobalConfig) -> AppState:
    summary = HarvestSummary(code="MHC", jobs=5, written=1, header_written=1, indexed=1, not_found=3)
    state = AppState(
        repository=SimpleNamespace(),
        global_config=global_config,
        orchestrator=StubOrchestrator(summary),
    )
    monkeypatch.setattr("ipd_harvester.app.build_state", lambda verbose: state)
    return state


def test_cli_databases(stub_state: AppState) -> None:
    result = CliRunner().invoke(app, ["databases"])
    assert result.exit_code == 0, result.stdout
    for token in ("MHC", "KIR", "HLA", "ipdmhc", "imgthla"):
        assert token in result.stdout


def test_cli_harvest_quiet(stub_state: AppState, tmp_path: Path) -> None:
    result = CliRunner().invoke(
        app,
        ["harvest", "MHC", "14", "2020-01-01", "--output-dir", str(tmp_path / "out"), "--quiet"],
    )
    assert result.exit_code == 0, result.stdout
    assert "Done: 2 written, 1 indexed, 0 failed" in result.stdout
    request = stub_state.orchestrator.requests[0]
    assert request.count == 14
    assert request.index_dir == stub_state.global_config.index_dir
    assert request.resume is True


def test_cli_harvest_summary_table(stub_state: AppState) -> None:
    result = CliRunner().invoke(app, ["harvest", "MHC", "14", "2020-01-01", "--no-resume"])
    assert result.exit_code == 0, result.stdout
    assert "Not found" in result.stdout
    assert stub_state.orchestrator.requests[0].resume is False


@pytest.mark.parametrize(
    "args",
    [
        ["harvest", "XYZ", "10", "2020-01-01"],
        ["harvest", "MHC", "0", "2020-01-01"],
        ["harvest", "MHC", "10", "01/01/2020"],
    ],
)
def test_cli_harvest_rejects_bad_arguments(stub_state: AppState, args: list[str]) -> None:
    result = CliRunner().invoke(app, args)
    assert result.exit_code == 2
    assert "Invalid arguments" in result.stdout
    assert stub_state.orchestrator.requests == []


def test_cli_index_show_with_cutoff(stub_state: AppState, tmp_path: Path) -> None:
    store = IndexStore(tmp_path / "idx", "MHC")
    for identifier, released in (
        ("NHP00001", "04/05/2017"),
        ("NHP00010", "12/11/2019"),
        ("NHP00011", "12/11/2019"),
    ):
        store.upsert(identifier, released)

    result = CliRunner().invoke(
        app, ["index", "show", "MHC", "--index-dir", str(tmp_path / "idx"), "--cutoff", "2020-01-01"]
    )
    assert result.exit_code == 0, result.stdout
    assert "NHP00011" in result.stdout
    assert "Boundary set (2): NHP00010, NHP00011" in result.stdout
    assert "Next unscanned record: 12" in result.stdout


def test_cli_index_show_empty(stub_state: AppState, tmp_path: Path) -> None:
    result = CliRunner().invoke(app, ["index", "show", "KIR", "--index-dir", str(tmp_path)])
    assert result.exit_code == 0
    assert "No index entries" in result.stdout


def test_cli_index_show_unknown_code(stub_state: AppState, tmp_path: Path) -> None:
    result = CliRunner().invoke(app, ["index", "show", "XYZ", "--index-dir", str(tmp_path)])
    assert result.exit_code == 2


def test_cli_log_list_without_logs(stub_state: AppState) -> None:
    result = CliRunner().invoke(app, ["log", "list"])
    assert result.exit_code == 0
    assert "No database logs yet." in result.stdout


def test_cli_harvest_fatal_error_exits_cleanly(
    stub_state: AppState, monkeypatch: pytest.MonkeyPatch
) -> None:
    def abort(request, progress=None):
        raise FatalHarvestError("cannot write output for NHP00012: No space left on device")

    monkeypatch.setattr(stub_state.orchestrator, "run", abort)
    result = CliRunner().invoke(app, ["harvest", "MHC", "14", "2020-01-01", "--quiet"])
    assert result.exit_code == 1
    assert "Harvest aborted" in result.stdout
    assert not isinstance(result.exception, FatalHarvestError)


def test_cli_flags_parse_without_warnings(stub_state: AppState) -> None:
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        result = CliRunner().invoke(
            app, ["--verbose", "harvest", "MHC", "14", "2020-01-01", "--no-resume", "--quiet"]
        )
    assert result.exit_code == 0, result.stdout
    assert stub_state.orchestrator.requests[0].resume is False
    assert not [w for w in caught if "is_flag" in str(w.message)]
