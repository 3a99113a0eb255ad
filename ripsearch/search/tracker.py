"""Staleness tracking between edited and last-submitted parameters."""

from ripsearch.search.models import SearchParameters


def should_show_submit_affordance(
    edited: SearchParameters,
    last_applied: SearchParameters | None,
    running: bool,
) -> bool:
    """Decide whether the run/stop control should be actionable.

    The control is shown while a search runs (as "stop") and whenever
    the edited parameters have a query and differ from what was last
    submitted (as "run").

    Examples:
        >>> p = SearchParameters(query="a", root_path="/r")
        >>> should_show_submit_affordance(p, p, running=False)
        False
        >>> should_show_submit_affordance(p, None, running=False)
        True
    """
    if running:
        return True
    return edited.has_query and edited != last_applied


class SessionStateTracker:
    """Remembers the parameters last submitted to a session.

    `last_applied` only changes through `on_session_submitted`, never
    because the edited parameters change.
    """

    def __init__(self) -> None:
        self._last_applied: SearchParameters | None = None

    @property
    def last_applied(self) -> SearchParameters | None:
        return self._last_applied

    @property
    def has_run(self) -> bool:
        return self._last_applied is not None

    def on_session_submitted(self, parameters: SearchParameters) -> None:
        """Record the exact parameters passed to `SearchSession.start()`."""
        self._last_applied = parameters

    def is_dirty(self, edited: SearchParameters) -> bool:
        """Whether the edited parameters differ from what was submitted."""
        if self._last_applied is None:
            return edited.has_query
        return edited != self._last_applied

    def should_show_submit_affordance(self, edited: SearchParameters, running: bool) -> bool:
        return should_show_submit_affordance(edited, self._last_applied, running)
