from __future__ import annotations

from datetime import date

import pytest

from conftest import NOT_FOUND_BODY, embl_body, fasta_body
from ipd_harvester.engine.parser import (
    FlatFileRecord,
    HeaderRecord,
    Malformed,
    NotFound,
    RecordParser,
)


@pytest.fixture
def parser() -> RecordParser:
    return RecordParser()


def test_not_found_sentinel(parser: RecordParser) -> None:
    assert isinstance(parser.parse(NOT_FOUND_BODY), NotFound)


def test_other_service_errors_are_malformed(parser: RecordParser) -> None:
    result = parser.parse(b"ERROR 4 Unknown database.\n")
    assert isinstance(result, Malformed)
    assert "Unknown database" in result.reason


def test_flat_file_uses_last_date_line(parser: RecordParser) -> None:
    body = embl_body("NHP00042", "12/05/2015", "03/04/2021")
    result = parser.parse(body)
    assert isinstance(result, FlatFileRecord)
    assert result.identifier == "NHP00042"
    assert result.date_text == "03/04/2021"
    assert result.release_date == date(2021, 4, 3)
    assert result.body == body


def test_flat_file_single_date_line(parser: RecordParser) -> None:
    result = parser.parse(embl_body("HLA00001", "19/09/2007"))
    assert isinstance(result, FlatFileRecord)
    assert result.release_date == date(2007, 9, 19)


def test_header_record_identifier(parser: RecordParser) -> None:
    body = fasta_body("NHP01234")
    result = parser.parse(body)
    assert isinstance(result, HeaderRecord)
    assert result.identifier == "NHP01234"
    assert result.body == body


def test_header_sequence_lines_starting_with_dt_are_ignored(parser: RecordParser) -> None:
    # the protein sequence in fasta_body has a line beginning with "DT"
    assert isinstance(parser.parse(fasta_body("NHP00001")), HeaderRecord)


def test_header_without_colon_is_malformed(parser: RecordParser) -> None:
    assert isinstance(parser.parse(b">NHP00001 something\nACGT\n"), Malformed)


@pytest.mark.parametrize(
    "body",
    [
        b"",
        b"\n\n",
        b"ID   NHP00001; SV 1;\nXX\n",
        b"DT   01/01/2020 (Rel. 1)\n",
        b"ID   NHP00001; SV 1;\nDT   2020-01-01 (Rel. 1)\n",
        b"ID   ; SV 1;\nDT   01/01/2020\n",
    ],
)
def test_malformed_bodies(parser: RecordParser, body: bytes) -> None:
    assert isinstance(parser.parse(body), Malformed)


def test_header_identifier_keeps_later_colons(parser: RecordParser) -> None:
    result = parser.parse(b">HLA:A:01 A*01:01:01:01 1098 bp\nATGGCC\n")
    assert isinstance(result, HeaderRecord)
    assert result.identifier == "A:01"


@pytest.mark.parametrize(
    "body",
    [
        b"ID   ../x; SV 1;\nDT   01/01/2020\n",
        b"ID   sub\\dir; SV 1;\nDT   01/01/2020\n",
        b">IPD-MHC:../../etc/passwd x\nACGT\n",
        b">IPD-MHC:.. x\nACGT\n",
    ],
)
def test_identifiers_that_are_paths_are_malformed(parser: RecordParser, body: bytes) -> None:
    result = parser.parse(body)
    assert isinstance(result, Malformed)
    assert "unsafe identifier" in result.reason
