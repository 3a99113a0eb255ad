"""Pydantic models for search parameters, matches and session state.

This module defines the value types shared by the command builder,
the stream parser, the session and the surface. Everything here is
immutable: a new instance is created whenever something changes.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


def parse_globs(raw: str) -> tuple[str, ...]:
    """Split a comma-separated glob filter into patterns.

    Each entry is trimmed and empty entries are dropped.

    Args:
        raw: Glob filter as typed by the user

    Returns:
        Tuple of non-empty patterns in input order

    Examples:
        >>> parse_globs("a, ,b,,c")
        ('a', 'b', 'c')
        >>> parse_globs("")
        ()
    """
    return tuple(p for p in (part.strip() for part in raw.split(",")) if p)


class SearchParameters(BaseModel):
    """Immutable snapshot of a search configuration.

    Two snapshots are equal iff every field is equal, which is what
    staleness decisions compare. Globs are stored already parsed so the
    comparison is made against exactly what a session submits.

    Attributes:
        query: Text or pattern to search for (may be blank while editing)
        root_path: Absolute directory to search under
        globs: Include/exclude file-name patterns (e.g. '*.py', '!*.json')
        case_insensitive: Match regardless of case
        include_hidden: Search hidden, ignored and binary files too
        regex_mode: Treat query as a regular expression instead of a literal
    """

    model_config = ConfigDict(frozen=True)

    query: str = Field(default="", description="Search text or pattern")
    root_path: str = Field(..., description="Directory to search under")
    globs: tuple[str, ...] = Field(default=(), description="Glob filters")
    case_insensitive: bool = Field(default=False, description="Ignore case")
    include_hidden: bool = Field(default=False, description="Include hidden/binary files")
    regex_mode: bool = Field(default=False, description="Interpret query as a regex")

    @field_validator("globs", mode="before")
    @classmethod
    def normalize_globs(cls, v: object) -> object:
        """Accept a comma-separated string or a sequence of patterns."""
        if v is None:
            return ()
        if isinstance(v, str):
            return parse_globs(v)
        if isinstance(v, (list, tuple)):
            return tuple(p.strip() for p in v if isinstance(p, str) and p.strip())
        return v

    @property
    def has_query(self) -> bool:
        """Whether the query is non-blank, i.e. a run is permitted."""
        return bool(self.query.strip())

    @property
    def glob_text(self) -> str:
        """Globs rendered back as a comma-separated filter string."""
        return ", ".join(self.globs)


class Highlight(BaseModel):
    """A highlighted span as byte offsets into a match line."""

    model_config = ConfigDict(frozen=True)

    start: int
    end: int


class MatchRecord(BaseModel):
    """One matched line reported by the search tool.

    Attributes:
        file_path: Absolute path of the file ('??' when the tool omitted it)
        line_number: 1-based line number, 0 when unknown
        content: The matched line with trailing whitespace stripped
        highlights: Submatch spans in the order the tool reported them
    """

    model_config = ConfigDict(frozen=True)

    file_path: str = Field(default="??", description="Absolute file path")
    line_number: int = Field(default=0, ge=0, description="1-based line number")
    content: str = Field(default="", description="Matched line text")
    highlights: tuple[Highlight, ...] = Field(default=(), description="Submatch spans")


class SearchBatch(BaseModel):
    """A group of matches flushed together to the consumer.

    Attributes:
        sequence: Position of this batch within its session, starting at 1
        matches: Matches in the order the tool emitted them
    """

    model_config = ConfigDict(frozen=True)

    sequence: int = Field(..., ge=1)
    matches: tuple[MatchRecord, ...] = ()


class SearchSummary(BaseModel):
    """Statistics from the tool's closing summary event."""

    elapsed_seconds: float | None = None
    searches: int | None = None
    searches_with_match: int | None = None
    matched_lines: int | None = None
    matches: int | None = None
    bytes_searched: int | None = None


class SessionState(str, Enum):
    """Lifecycle states of a search session."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Whether no further transitions are possible."""
        return self in (SessionState.COMPLETED, SessionState.CANCELLED, SessionState.FAILED)
