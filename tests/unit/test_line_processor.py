"""Tests for the output line processor."""

import pytest

from k6_orchestrator.line_processor import (
    OutputLine,
    is_progress_line,
    mark_as_error,
    process_chunk,
    strip_ansi,
)


@pytest.mark.parametrize(
    "chunk",
    [b"", b"\n", b"   \n\t\n", "\r\n  \r\n", b"\x1b[2K\x1b[0m\n"],
)
def test_whitespace_only_chunk_yields_nothing(chunk: bytes | str) -> None:
    """Never emits lines for chunks made of whitespace and newlines."""
    assert process_chunk(chunk) == []


def test_progress_line_is_classified_as_progress() -> None:
    """Detects k6 progress indicator lines."""
    lines = process_chunk(b"default [ 42% ] 10 VUs 0m25.0s/1m0s\n")

    assert lines == [
        OutputLine(text="default [ 42% ] 10 VUs 0m25.0s/1m0s", kind="progress")
    ]


def test_plain_line_is_classified_as_log() -> None:
    """Classifies ordinary output as log."""
    assert process_chunk(b"Starting test: foo") == [
        OutputLine(text="Starting test: foo", kind="log")
    ]


def test_progress_requires_every_marker() -> None:
    """Lines missing one of the markers are regular log lines."""
    assert not is_progress_line("default [ 42% ] 10 users")
    assert not is_progress_line("default 42% 10 VUs")
    assert not is_progress_line("[ 42% ] 10 VUs")
    assert is_progress_line("\x1b[36mdefault [\x1b[0m 100% ] 10 VUs 1m0s")


def test_strips_ansi_sequences_before_classifying() -> None:
    """Removes colour and cursor codes but keeps the text."""
    lines = process_chunk(b"\x1b[32mdefault [\x1b[0m 42% ] \x1b[1;33m10 VUs\x1b[K\n")

    assert lines == [OutputLine(text="default [ 42% ] 10 VUs", kind="progress")]


def test_keeps_emoji_and_other_escapes() -> None:
    """Only the m/G/K/H control sequences are removed."""
    assert strip_ansi("✅ done \x1b[2J") == "✅ done \x1b[2J"
    assert process_chunk("🚀 go\n".encode()) == [OutputLine(text="🚀 go")]


def test_splits_and_trims_lines() -> None:
    """Splits on newlines, trims, and drops blanks in order."""
    chunk = b"  first  \r\n\n second\rthird\n"

    assert [line.text for line in process_chunk(chunk)] == [
        "first",
        "second",
        "third",
    ]


def test_invalid_utf8_is_replaced() -> None:
    """Undecodable bytes do not break processing."""
    lines = process_chunk(b"bad \xff byte\n")

    assert lines == [OutputLine(text="bad � byte")]


def test_mark_as_error_retags_every_line() -> None:
    """Lines from the error stream become errors whatever their content."""
    lines = process_chunk(b"default [ 1% ] 1 VUs\nplain\n")

    assert [line.kind for line in mark_as_error(lines)] == ["error", "error"]
    assert [line.kind for line in lines] == ["progress", "log"]
