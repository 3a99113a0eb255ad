"""Incremental decoder for ripgrep's `--json` output.

ripgrep writes one JSON object per line. Only `match` events carry
results; `begin`, `end`, `context` and `summary` events are lifecycle
records. Because stdout and stderr share one stream, plain-text
diagnostics (e.g. permission errors) show up between records too.

Every field is treated as optional and filled with a default, and any
line that does not decode into a match is skipped. One bad line never
ends the stream.
"""

from collections.abc import Iterable, Iterator
from typing import Any

from pydantic import BaseModel, ValidationError

from ripsearch.dependencies import logger
from ripsearch.search.models import Highlight, MatchRecord, SearchSummary

# =============================================================================
# Wire Models
# =============================================================================


class _Text(BaseModel):
    text: str | None = None


class _Submatch(BaseModel):
    start: int | None = None
    end: int | None = None


class _MatchData(BaseModel):
    path: _Text | None = None
    line_number: int | None = None
    lines: _Text | None = None
    submatches: list[Any] | None = None


class _Event(BaseModel):
    type: str
    data: _MatchData | None = None


class _Duration(BaseModel):
    secs: int = 0
    nanos: int = 0


class _Stats(BaseModel):
    elapsed: _Duration | None = None
    searches: int | None = None
    searches_with_match: int | None = None
    matched_lines: int | None = None
    matches: int | None = None
    bytes_searched: int | None = None


class _SummaryData(BaseModel):
    stats: _Stats | None = None


class _SummaryEvent(BaseModel):
    type: str
    data: _SummaryData | None = None


# =============================================================================
# Decoding
# =============================================================================


def decode_line(line: str) -> MatchRecord | None:
    """Decode one output line into a match, if it is one.

    Args:
        line: A single line of tool output (trailing newline allowed)

    Returns:
        The decoded MatchRecord, or None for malformed JSON, non-match
        events and match events without data

    Examples:
        >>> decode_line('{"type":"match","data":{"line_number":3}}').line_number
        3
        >>> decode_line("not json") is None
        True
    """
    try:
        event = _Event.model_validate_json(line)
    except ValidationError:
        return None
    if event.type != "match" or event.data is None:
        return None

    data = event.data
    try:
        return MatchRecord(
            file_path=data.path.text if data.path and data.path.text is not None else "??",
            line_number=data.line_number if data.line_number is not None else 0,
            content=(data.lines.text or "").rstrip() if data.lines else "",
            highlights=_decode_highlights(data.submatches or ()),
        )
    except ValidationError:
        return None


def _decode_highlights(entries: list[Any]) -> tuple[Highlight, ...]:
    """Keep the submatches that carry both offsets; a bad entry never drops the match."""
    highlights = []
    for entry in entries:
        try:
            submatch = _Submatch.model_validate(entry)
        except ValidationError:
            continue
        if submatch.start is not None and submatch.end is not None:
            highlights.append(Highlight(start=submatch.start, end=submatch.end))
    return tuple(highlights)


def decode_summary(line: str) -> SearchSummary | None:
    """Decode a `summary` event's statistics, or None for any other line."""
    try:
        event = _SummaryEvent.model_validate_json(line)
    except ValidationError:
        return None
    if event.type != "summary" or event.data is None or event.data.stats is None:
        return None

    stats = event.data.stats
    elapsed = stats.elapsed.secs + stats.elapsed.nanos / 1e9 if stats.elapsed else None
    return SearchSummary(
        elapsed_seconds=elapsed,
        searches=stats.searches,
        searches_with_match=stats.searches_with_match,
        matched_lines=stats.matched_lines,
        matches=stats.matches,
        bytes_searched=stats.bytes_searched,
    )


class ResultStreamParser:
    """Lazily turn a stream of output lines into MatchRecords.

    The parser is single-use: it consumes the underlying iterator once.
    Malformed and non-match lines are skipped; an exception raised by
    the underlying iterator (a read failure) propagates to the caller
    and ends the sequence.

    Attributes:
        summary: Statistics from the summary event, once it has been seen
        lines_read: Number of input lines consumed so far
        skipped: Number of lines that did not decode into a match
    """

    def __init__(self, lines: Iterable[str]) -> None:
        self._lines = iter(lines)
        self._consumed = False
        self.summary: SearchSummary | None = None
        self.lines_read = 0
        self.skipped = 0

    def __iter__(self) -> Iterator[MatchRecord]:
        if self._consumed:
            raise RuntimeError("ResultStreamParser can only be iterated once")
        self._consumed = True
        return self._parse()

    def _parse(self) -> Iterator[MatchRecord]:
        for line in self._lines:
            self.lines_read += 1
            record = decode_line(line)
            if record is not None:
                yield record
                continue

            self.skipped += 1
            if '"summary"' in line:
                self.summary = decode_summary(line) or self.summary
            elif line.strip() and not line.lstrip().startswith("{"):
                logger.debug("search_output_skipped", extra={"line": line.rstrip()[:200]})
