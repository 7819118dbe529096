"""Turn raw k6 console output into clean, classified lines."""

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from typing import Literal

type OutputKind = Literal["log", "error", "progress"]

# ESC [ <digits/semicolons> <m|G|K|H>; anything else (emoji included) is kept.
ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*[mGKH]")

PROGRESS_MARKERS = ("default [", "%", "VUs")


@dataclass(frozen=True, kw_only=True)
class OutputLine:
    """A single trimmed line of process output."""

    text: str
    kind: OutputKind = "log"


def strip_ansi(text: str) -> str:
    """Remove terminal colour and cursor control sequences."""
    return ANSI_ESCAPE.sub("", text)


def is_progress_line(text: str) -> bool:
    """Check if a line is a k6 progress indicator.

    Example: ``default [ 42% ] 10 VUs 0m25.0s/1m0s``.
    """
    cleaned = strip_ansi(text)
    return all(marker in cleaned for marker in PROGRESS_MARKERS)


def process_chunk(chunk: bytes | str) -> Sequence[OutputLine]:
    """Split a chunk of output into classified lines.

    Empty lines are dropped. No state is kept between calls, so one
    function serves every running process.
    """
    if isinstance(chunk, bytes):
        text = chunk.decode("utf-8", errors="replace")
    else:
        text = chunk

    lines: list[OutputLine] = []
    for raw in text.splitlines():
        cleaned = strip_ansi(raw).strip()
        if not cleaned:
            continue
        kind: OutputKind = "progress" if is_progress_line(cleaned) else "log"
        lines.append(OutputLine(text=cleaned, kind=kind))
    return lines


def mark_as_error(lines: Iterable[OutputLine]) -> Sequence[OutputLine]:
    """Retag lines that arrived on the error stream."""
    return [replace(line, kind="error") for line in lines]
