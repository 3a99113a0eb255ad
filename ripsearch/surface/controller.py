"""Search surface: long-lived owner of one search's state.

The surface holds the parameters being edited, the staleness tracker,
the current session and the matches accumulated for it. Views come and
go; they read snapshots, page through results and subscribe to events,
but the state lives here.

Locking: `_command_lock` serializes submit/cancel and is held while
calling into a session. `_state_lock` guards the surface's own fields
and is only taken briefly, including from session callbacks. Session
callbacks never take `_command_lock`. Listeners are not called from
session callbacks at all: events go through an EventDispatcher, so a
listener may cancel or resubmit without holding any lock. A listener
may still receive events that were queued before a cancel; the
`cancelled` state event is the last one for its session.
"""

import threading
from collections.abc import Callable
from functools import lru_cache, partial
from pathlib import Path
from typing import Any

from ripsearch.config import get_settings
from ripsearch.dependencies import InvalidParametersError, SessionStateError, logger
from ripsearch.search.display import MatchView, format_status, to_match_view
from ripsearch.search.models import MatchRecord, SearchBatch, SearchParameters, SessionState
from ripsearch.search.session import DEFAULT_BATCH_SIZE, SearchSession
from ripsearch.search.tracker import SessionStateTracker
from ripsearch.surface.events import EventDispatcher
from ripsearch.surface.models import SurfaceEvent, SurfaceSnapshot

Listener = Callable[[SurfaceEvent], None]


def validate_root(root_path: str) -> Path:
    """Check that a search root is an existing absolute directory.

    Raises:
        InvalidParametersError: If the path is relative or not a directory
    """
    path = Path(root_path)
    if not path.is_absolute():
        raise InvalidParametersError(f"Search root must be absolute: {root_path}")
    if not path.is_dir():
        raise InvalidParametersError(f"Search root is not a directory: {root_path}")
    return path


class SearchSurface:
    """Owns edited parameters, the current session and its results.

    Args:
        parameters: Initial parameters (typically just a root path)
        executable: ripgrep path passed to each session
        batch_size: Matches per batch for each session
        session_factory: Callable building a SearchSession
    """

    def __init__(
        self,
        parameters: SearchParameters,
        *,
        executable: str | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        session_factory: Callable[..., SearchSession] = SearchSession,
    ) -> None:
        self._executable = executable
        self._batch_size = batch_size
        self._session_factory = session_factory

        self._command_lock = threading.RLock()
        self._state_lock = threading.Lock()
        self._parameters = parameters
        self._tracker = SessionStateTracker()
        self._session: SearchSession | None = None
        self._generation = 0
        self._results: list[MatchRecord] = []
        self._listeners: list[Listener] = []
        self._dispatcher = EventDispatcher()

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def parameters(self) -> SearchParameters:
        return self._parameters

    @property
    def tracker(self) -> SessionStateTracker:
        return self._tracker

    @property
    def session(self) -> SearchSession | None:
        return self._session

    @property
    def state(self) -> SessionState:
        session = self._session
        return session.state if session is not None else SessionState.IDLE

    @property
    def is_running(self) -> bool:
        return self.state is SessionState.RUNNING

    # -------------------------------------------------------------------------
    # Editing
    # -------------------------------------------------------------------------

    def set_parameters(self, parameters: SearchParameters) -> SearchParameters:
        """Replace the edited parameters. Never touches `last_applied`."""
        with self._state_lock:
            self._parameters = parameters
        return parameters

    def edit(self, **changes: Any) -> SearchParameters:
        """Apply field changes to the edited parameters.

        Accepts SearchParameters field names; `globs` may be the
        comma-separated filter string.
        """
        with self._state_lock:
            self._parameters = SearchParameters(**{**self._parameters.model_dump(), **changes})
            return self._parameters

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def submit(self, parameters: SearchParameters | None = None) -> SearchSession:
        """Start a search for the given (or currently edited) parameters.

        Args:
            parameters: Parameters to run; they also become the edited ones

        Returns:
            The started session

        Raises:
            InvalidParametersError: Blank query or invalid root path
            SessionStateError: A search is already running
            SpawnError: The search executable could not be launched
        """
        with self._command_lock:
            if self.is_running:
                raise SessionStateError("A search is already running; cancel it first")
            if parameters is not None:
                self.set_parameters(parameters)
            params = self._parameters

            if not params.has_query:
                raise InvalidParametersError("Search query must not be blank")
            validate_root(params.root_path)

            with self._state_lock:
                self._generation += 1
                generation = self._generation
            session = self._session_factory(
                self._executable,
                on_batch=partial(self._handle_batch, generation),
                on_state_change=partial(self._handle_state, generation),
                batch_size=self._batch_size,
            )

            with self._state_lock:
                self._session = session
                self._results = []
                self._tracker.on_session_submitted(params)

            logger.info(
                "search_submitted",
                extra={
                    "session_id": session.session_id,
                    "query": params.query,
                    "root_path": params.root_path,
                    "globs": list(params.globs),
                },
            )
            session.start(params)
            return session

    def cancel(self) -> None:
        """Cancel the running search, if any."""
        with self._command_lock:
            session = self._session
            if session is not None:
                session.cancel()

    def toggle(self) -> SearchSession | None:
        """Run/stop control: cancel when running, otherwise submit."""
        with self._command_lock:
            if self.is_running:
                self.cancel()
                return None
            return self.submit()

    def clear_filter(self) -> SearchSession:
        """Drop the glob filter and rerun the search."""
        with self._command_lock:
            self.cancel()
            params = self.edit(globs=())
            return self.submit(params)

    def close(self, timeout: float | None = 5.0) -> None:
        """Cancel any running search and wait for its process to exit."""
        with self._command_lock:
            session = self._session
        if session is not None:
            session.close(timeout)

    def wait(self, timeout: float | None = 5.0) -> SessionState:
        """Wait for the current session to end and its events to reach listeners.

        Returns:
            The surface state at the time of return
        """
        session = self._session
        if session is not None:
            session.wait(timeout)
        self._dispatcher.drain(timeout)
        return self.state

    # -------------------------------------------------------------------------
    # Observation
    # -------------------------------------------------------------------------

    @property
    def listener_count(self) -> int:
        with self._state_lock:
            return len(self._listeners)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener for surface events.

        Returns:
            A function that removes the listener
        """
        with self._state_lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._state_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def snapshot(self) -> SurfaceSnapshot:
        """Describe the surface's current state."""
        with self._state_lock:
            session = self._session
            params = self._parameters
            last_applied = self._tracker.last_applied
            total = len(self._results)

        state = session.state if session is not None else SessionState.IDLE
        running = state is SessionState.RUNNING
        show_submit = self._tracker.should_show_submit_affordance(params, running)
        return SurfaceSnapshot(
            parameters=params,
            last_applied=last_applied,
            state=state,
            session_id=session.session_id if session else None,
            total_matches=total,
            batches=session.batch_count if session else 0,
            dirty=self._tracker.is_dirty(params),
            show_submit=show_submit,
            submit_action=("stop" if running else "search") if show_submit else None,
            active_filter=last_applied.glob_text if last_applied else "",
            status_message=format_status(state, total, last_applied),
            error=str(session.error) if session and session.error else None,
            summary=session.summary if session else None,
        )

    def results(self, offset: int = 0, limit: int | None = None) -> list[MatchView]:
        """Return a page of accumulated results as display views."""
        with self._state_lock:
            end = None if limit is None else offset + limit
            records = self._results[offset:end]
            last_applied = self._tracker.last_applied
        root = last_applied.root_path if last_applied else self._parameters.root_path
        return [to_match_view(r, root) for r in records]

    @property
    def total_matches(self) -> int:
        with self._state_lock:
            return len(self._results)

    # -------------------------------------------------------------------------
    # Session Callbacks
    # -------------------------------------------------------------------------

    def _handle_batch(self, generation: int, batch: SearchBatch) -> None:
        with self._state_lock:
            session = self._session
            if generation != self._generation or session is None:
                return
            self._results.extend(batch.matches)
            total = len(self._results)
            listeners = list(self._listeners)

        if not listeners:
            return
        root = session.parameters.root_path if session.parameters else ""
        event = SurfaceEvent(
            type="batch",
            session_id=session.session_id,
            sequence=batch.sequence,
            matches=[to_match_view(r, root) for r in batch.matches],
            total_matches=total,
        )
        self._notify(listeners, event)

    def _handle_state(self, generation: int, state: SessionState) -> None:
        with self._state_lock:
            session = self._session
            if generation != self._generation or session is None:
                return
            total = len(self._results)
            listeners = list(self._listeners)

        logger.debug(
            "search_state_changed",
            extra={"session_id": session.session_id, "state": state.value},
        )
        event = SurfaceEvent(
            type="state",
            session_id=session.session_id,
            state=state,
            total_matches=total,
            error=str(session.error) if state is SessionState.FAILED and session.error else None,
        )
        self._notify(listeners, event)

    def _notify(self, listeners: list[Listener], event: SurfaceEvent) -> None:
        self._dispatcher.dispatch(listeners, event)


@lru_cache
def get_search_surface() -> SearchSurface:
    """Get the process-wide search surface (FastAPI dependency)."""
    settings = get_settings()
    return SearchSurface(
        SearchParameters(root_path=str(settings.default_root)),
        executable=settings.rg_path,
        batch_size=settings.batch_size,
    )
