"""Pydantic models for the search surface and its HTTP API."""

from typing import Any, Literal

from pydantic import BaseModel, Field

from ripsearch.search.display import MatchView
from ripsearch.search.models import SearchParameters, SearchSummary, SessionState


class SearchRequest(BaseModel):
    """Edits to apply to the surface's parameters.

    Every field is optional; omitted fields keep their current value.
    `glob` is the comma-separated filter exactly as the user typed it.
    """

    query: str | None = None
    root_path: str | None = None
    glob: str | None = None
    case_insensitive: bool | None = None
    include_hidden: bool | None = None
    regex_mode: bool | None = None
    stream: bool = False

    def changes(self) -> dict[str, Any]:
        """Return the parameter fields that were provided."""
        data = self.model_dump(exclude_none=True, exclude={"stream"})
        if "glob" in data:
            data["globs"] = data.pop("glob")
        return data


class SurfaceSnapshot(BaseModel):
    """Point-in-time view of a search surface.

    Attributes:
        parameters: Parameters currently being edited
        last_applied: Parameters last submitted to a session
        state: State of the current session (idle before the first run)
        session_id: Identifier of the current session
        total_matches: Matches accumulated for the current session
        batches: Batches delivered by the current session
        dirty: Edited parameters differ from the last submitted ones
        show_submit: Whether the run/stop control is actionable
        submit_action: What the control does right now
        active_filter: Glob filter of the last submitted run
        status_message: One-line status for display
        error: Failure message when the session failed
        summary: Tool statistics once the run has finished
    """

    parameters: SearchParameters
    last_applied: SearchParameters | None = None
    state: SessionState = SessionState.IDLE
    session_id: str | None = None
    total_matches: int = 0
    batches: int = 0
    dirty: bool = False
    show_submit: bool = False
    submit_action: Literal["search", "stop"] | None = None
    active_filter: str = ""
    status_message: str = ""
    error: str | None = None
    summary: SearchSummary | None = None


class SurfaceEvent(BaseModel):
    """An incremental update pushed to surface subscribers."""

    type: Literal["batch", "state"]
    session_id: str
    sequence: int | None = None
    state: SessionState | None = None
    matches: list[MatchView] = Field(default_factory=list)
    total_matches: int = 0
    error: str | None = None


class ResultsPage(BaseModel):
    """A slice of the accumulated results."""

    offset: int = 0
    limit: int = 0
    total: int = 0
    results: list[MatchView] = Field(default_factory=list)


class ErrorDetail(BaseModel):
    """Error detail structure."""

    message: str
    type: str = "search_error"
    code: str | None = None


class ErrorResponse(BaseModel):
    """Error response wrapper."""

    error: ErrorDetail
