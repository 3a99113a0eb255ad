"""Render-ready projections of search results.

Consumers draw match lines with the indentation trimmed and the
submatch spans highlighted. Highlight offsets are bytes into the UTF-8
encoded line; a span that falls outside the trimmed line after shifting
or splits a multi-byte character is dropped rather than clamped, so a
renderer never highlights the wrong characters.
"""

from pydantic import BaseModel, Field

from ripsearch.search.models import Highlight, MatchRecord, SearchParameters, SessionState

PLACEHOLDER_TEXT = "[Binary match or empty line]"


class HighlightSegment(BaseModel):
    """A run of line text that is either highlighted or plain."""

    text: str
    highlighted: bool = False


class MatchView(BaseModel):
    """A match prepared for display.

    Attributes:
        file_path: Absolute path of the matched file
        display_path: Path relative to the search root
        line_number: 1-based line number (0 when unknown)
        text: Line text with leading indentation removed, or a placeholder
        placeholder: True when the match line was blank or binary
        highlights: Valid spans as byte offsets into `text`
        segments: `text` split into highlighted and plain runs
    """

    file_path: str
    display_path: str
    line_number: int
    text: str
    placeholder: bool = False
    highlights: list[Highlight] = Field(default_factory=list)
    segments: list[HighlightSegment] = Field(default_factory=list)


def relative_display_path(file_path: str, root_path: str) -> str:
    """Strip the search root from a matched path.

    Examples:
        >>> relative_display_path("/src/pkg/mod.py", "/src")
        'pkg/mod.py'
        >>> relative_display_path("/srcfoo/x.py", "/src")
        '/srcfoo/x.py'
    """
    root = root_path.rstrip("/")
    if root and file_path.startswith(root + "/"):
        return file_path[len(root) + 1 :]
    if not root and root_path:
        return file_path.lstrip("/")
    return file_path


def _is_char_boundary(raw: bytes, offset: int) -> bool:
    # UTF-8 continuation bytes look like 0b10xxxxxx
    return offset == len(raw) or (raw[offset] & 0xC0) != 0x80


def valid_highlights(
    highlights: tuple[Highlight, ...] | list[Highlight], raw: bytes, shift: int = 0
) -> list[Highlight]:
    """Shift spans left by `shift` bytes and keep the ones that still fit.

    A span survives only if `0 <= start < end <= len(raw)` after shifting
    and both ends fall on a UTF-8 character boundary of `raw`. Spans that
    overlap an earlier kept span are dropped as well.
    """
    kept: list[Highlight] = []
    cursor = 0
    for h in sorted(highlights, key=lambda h: (h.start, h.end)):
        start, end = h.start - shift, h.end - shift
        if not (0 <= start < end <= len(raw)) or start < cursor:
            continue
        if not (_is_char_boundary(raw, start) and _is_char_boundary(raw, end)):
            continue
        kept.append(Highlight(start=start, end=end))
        cursor = end
    return kept


def split_segments(text: str, highlights: list[Highlight]) -> list[HighlightSegment]:
    """Split text into plain and highlighted runs using byte offsets."""
    raw = text.encode("utf-8")
    segments: list[HighlightSegment] = []
    cursor = 0
    for h in highlights:
        if h.start > cursor:
            segments.append(HighlightSegment(text=raw[cursor : h.start].decode("utf-8", "replace")))
        segments.append(
            HighlightSegment(text=raw[h.start : h.end].decode("utf-8", "replace"), highlighted=True)
        )
        cursor = h.end
    if cursor < len(raw):
        segments.append(HighlightSegment(text=raw[cursor:].decode("utf-8", "replace")))
    return segments


def to_match_view(record: MatchRecord, root_path: str) -> MatchView:
    """Project a MatchRecord into a MatchView.

    Args:
        record: The decoded match
        root_path: Root the search ran under, for the relative path

    Returns:
        MatchView with trimmed text and validated highlights
    """
    text = record.content.lstrip()
    display_path = relative_display_path(record.file_path, root_path)

    if not text.strip():
        return MatchView(
            file_path=record.file_path,
            display_path=display_path,
            line_number=record.line_number,
            text=PLACEHOLDER_TEXT,
            placeholder=True,
            segments=[HighlightSegment(text=PLACEHOLDER_TEXT)],
        )

    raw = text.encode("utf-8")
    shift = len(record.content.encode("utf-8")) - len(raw)
    highlights = valid_highlights(record.highlights, raw, shift)
    return MatchView(
        file_path=record.file_path,
        display_path=display_path,
        line_number=record.line_number,
        text=text,
        highlights=highlights,
        segments=split_segments(text, highlights),
    )


def format_status(
    state: SessionState, total: int, last_applied: SearchParameters | None = None
) -> str:
    """Build the one-line status shown above the result list.

    Examples:
        >>> format_status(SessionState.IDLE, 0)
        'Ready to search'
        >>> format_status(SessionState.COMPLETED, 3)
        'Found 3 matches'
    """
    if state is SessionState.RUNNING:
        message = f"Searching... {total} matches so far"
    elif state is SessionState.FAILED:
        message = "Search failed"
    elif total:
        message = f"Found {total} match{'es' if total != 1 else ''}"
    elif last_applied is None:
        return "Ready to search"
    else:
        message = "No matches found."

    if last_applied is not None and last_applied.globs:
        message += f" (filter: {last_applied.glob_text})"
    return message
