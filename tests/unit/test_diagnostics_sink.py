# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from diagnostics import sink as sink_mod
from diagnostics.direction import Direction
from diagnostics.sink import DiagnosticsSink, format_frame, format_raw


def make_frame() -> bytes:
    return (
        b"$TSC,BIN,"
        + bytes(range(0x01, 0x01 + 44))
        + b"ABCDE"
    )


def test_format_raw_read():
    assert format_raw(Direction.READ, b"$T\r\n") == "> 24 54 0D 0A"


def test_format_raw_write_pads_hex():
    assert format_raw(Direction.WRITE, b"\x00\x0f\xff") == "< 00 0F FF"


def test_format_frame_layout():
    line = format_frame(make_frame())

    assert line == (
        "< $TSC,BIN,0102"
        " 0304"
        " 0506"
        " 0708090A0B0C"
        " 0D0E0F101112"
        " 131415161718"
        " 191A1B1C"
        " 1D1E1F2021222324"
        " 25262728292A"
        " 2B2CABCDE"
    )


@pytest.fixture
def captured(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    lines: list[str] = []
    monkeypatch.setattr(sink_mod, "_print", lines.append)
    return lines


def test_dump_raw_emits_one_line(captured: list[str]):
    DiagnosticsSink().dump_raw(Direction.READ, b"\x01\x02")

    assert captured == ["> 01 02"]


def test_dump_frame_emits_one_line(captured: list[str]):
    DiagnosticsSink().dump_frame(make_frame())

    assert len(captured) == 1
    assert captured[0].startswith("< $TSC,BIN,")


def test_dump_frame_wrong_length_falls_back_to_raw(captured: list[str]):
    DiagnosticsSink().dump_frame(b"\xaa\xbb")

    assert captured == ["< AA BB"]
