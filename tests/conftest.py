"""Pytest configuration providing shared fixtures and canned dbfetch bodies."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterable, Mapping

import httpx
import pytest

from ipd_harvester.config import ConfigLocator, ConfigRepository, GlobalConfig, RetryConfig

NOT_FOUND_BODY = b"ERROR 12 No entries found.\n"


def embl_body(identifier: str, created: str, updated: str | None = None) -> bytes:
    lines = [
        f"ID   {identifier}; SV 1; standard; DNA; PRI; 1098 BP.",
        "XX",
        f"AC   {identifier};",
        "XX",
        f"DT   {created} (Rel. 1.0.0, Created)",
    ]
    if updated:
        lines.append(f"DT   {updated} (Rel. 3.12.0, Last updated, Version 1.1)")
    lines += [
        "XX",
        "DE   Mamu-A1*001:01:01:01, Macaca mulatta MHC class I sequence",
        "SQ   Sequence 1098 BP; 254 A; 312 C; 330 G; 202 T; 0 other;",
        "     atggcggtca tggcgccccg aaccctcctc ctgctactct cgggggccct ggccctgacc        60",
        "//",
    ]
    return ("\n".join(lines) + "\n").encode("utf-8")


def fasta_body(identifier: str) -> bytes:
    return (
        f">IPD-MHC:{identifier} Mamu-A1*001:01 365 aa\n"
        "MAVMAPRTLLLLLSGALALTETWAGSHSMRYFYTSVSRPGRGEPRFIAVGYVDDTQFVRF\n"
        "DTDAASQRMEPRAPWIEQEGPEYWDRETRNVKAQSQTDRVDLGTLRGYYNQSEA\n"
    ).encode("utf-8")


@pytest.fixture(autouse=True)
def harvester_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "home"
    monkeypatch.setenv("IPD_HARVESTER_HOME", str(home))
    return home


@pytest.fixture
def global_config(tmp_path: Path) -> GlobalConfig:
    return GlobalConfig(
        workers=4,
        request_timeout=5.0,
        fetch_retry=RetryConfig(max_attempts=3, delay=0.0),
        lock_retry=RetryConfig(max_attempts=2, delay=0.0),
        enable_progress_bar=False,
        index_dir=tmp_path / "index",
    )


@pytest.fixture
def temp_config_repository(tmp_path: Path) -> ConfigRepository:
    locator = ConfigLocator(home=tmp_path / "config-home")
    return ConfigRepository(locator)


class FakeDbfetch:
    """In-memory dbfetch: identifiers map to bodies, everything else is not found."""

    def __init__(self, records: Mapping[str, bytes] | None = None) -> None:
        self.records = dict(records or {})
        self.requested: list[str] = []
        self.failures: dict[str, list[int | Exception]] = {}

    def fail_first(self, identifier: str, outcomes: Iterable[int | Exception]) -> None:
        self.failures[identifier] = list(outcomes)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        identifier = str(request.url).split("id=")[1].split(";")[0]
        self.requested.append(identifier)
        pending = self.failures.get(identifier)
        if pending:
            outcome = pending.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return httpx.Response(outcome, request=request, content=b"busy")
        body = self.records.get(identifier, NOT_FOUND_BODY)
        return httpx.Response(200, request=request, content=body)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def fake_dbfetch() -> Callable[..., FakeDbfetch]:
    return FakeDbfetch
