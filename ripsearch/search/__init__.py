"""Search session controller: parameters, stream parsing, sessions, staleness."""

from ripsearch.search.command import build_command
from ripsearch.search.models import (
    Highlight,
    MatchRecord,
    SearchBatch,
    SearchParameters,
    SearchSummary,
    SessionState,
    parse_globs,
)
from ripsearch.search.parser import ResultStreamParser, decode_line
from ripsearch.search.session import SearchSession
from ripsearch.search.tracker import SessionStateTracker, should_show_submit_affordance

__all__ = [
    "Highlight",
    "MatchRecord",
    "ResultStreamParser",
    "SearchBatch",
    "SearchParameters",
    "SearchSession",
    "SearchSummary",
    "SessionState",
    "SessionStateTracker",
    "build_command",
    "decode_line",
    "parse_globs",
    "should_show_submit_affordance",
]
