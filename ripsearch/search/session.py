"""Search session: one ripgrep process and its lifecycle.

A session moves through Idle -> Running -> Completed | Cancelled | Failed.
`start()` spawns the process and a daemon reader thread; the thread
decodes output, groups matches into batches and hands each batch to the
consumer. `cancel()` flips the state under the same lock the reader
holds while delivering, so once it returns nothing else is delivered.
"""

import subprocess
import threading
import uuid
from collections.abc import Callable
from typing import Any

from ripsearch.dependencies import (
    SessionStateError,
    SpawnError,
    StreamIOError,
    locate_executable,
    logger,
)
from ripsearch.search.command import build_command
from ripsearch.search.models import (
    MatchRecord,
    SearchBatch,
    SearchParameters,
    SearchSummary,
    SessionState,
)
from ripsearch.search.parser import ResultStreamParser

DEFAULT_BATCH_SIZE = 10

BatchCallback = Callable[[SearchBatch], None]
StateCallback = Callable[[SessionState], None]


class SearchSession:
    """Owns a single search process invocation.

    Callbacks run on the reader thread (except the transitions caused by
    `start()` and `cancel()`, which run on the caller's thread), one at a
    time and in production order.

    Args:
        executable: Path to ripgrep; looked up on PATH when None
        on_batch: Called with each flushed SearchBatch
        on_state_change: Called with each new SessionState
        batch_size: Matches per incremental delivery
        popen: Process factory with the subprocess.Popen signature
    """

    def __init__(
        self,
        executable: str | None = None,
        *,
        on_batch: BatchCallback | None = None,
        on_state_change: StateCallback | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        popen: Callable[..., Any] = subprocess.Popen,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.session_id = uuid.uuid4().hex[:12]
        self._executable = executable
        self._on_batch = on_batch
        self._on_state_change = on_state_change
        self._batch_size = batch_size
        self._popen = popen

        self._lock = threading.RLock()
        self._state = SessionState.IDLE
        self._process: Any = None
        self._thread: threading.Thread | None = None
        self._batch_count = 0
        self._match_count = 0
        self._returncode: int | None = None

        self.parameters: SearchParameters | None = None
        self.error: Exception | None = None
        self.summary: SearchSummary | None = None

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is SessionState.RUNNING

    @property
    def batch_count(self) -> int:
        """Number of batches delivered so far."""
        return self._batch_count

    @property
    def match_count(self) -> int:
        """Number of matches delivered so far."""
        return self._match_count

    @property
    def returncode(self) -> int | None:
        """Exit status of the process once it has been reaped."""
        return self._returncode

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def start(self, parameters: SearchParameters) -> None:
        """Spawn the search process and begin streaming results.

        Args:
            parameters: Search configuration to run

        Raises:
            SessionStateError: If the session is not idle
            InvalidParametersError: If the query is blank (session stays idle)
            SpawnError: If the process could not be launched (session fails)
        """
        with self._lock:
            if self._state is not SessionState.IDLE:
                raise SessionStateError(f"Cannot start a session that is {self._state.value}")

            command = build_command(parameters)
            self.parameters = parameters
            try:
                executable = locate_executable(self._executable)
                self._process = self._popen(
                    [executable, *command],
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    text=True,
                    encoding="utf-8",
                    errors="replace",
                    bufsize=1,
                )
            except SpawnError as e:
                self._fail(e)
                raise
            except (OSError, ValueError) as e:
                error = SpawnError(f"Failed to start search process: {e}")
                self._fail(error)
                raise error from e

            logger.info(
                "search_session_started",
                extra={
                    "session_id": self.session_id,
                    "pid": getattr(self._process, "pid", None),
                    "command": command,
                },
            )
            self._transition(SessionState.RUNNING)
            self._thread = threading.Thread(
                target=self._read_output,
                args=(self._process,),
                name=f"search-session-{self.session_id}",
                daemon=True,
            )
            self._thread.start()

    def cancel(self) -> None:
        """Stop a running search; a no-op in any other state.

        The state is Cancelled when this returns. The partially filled
        batch is discarded and no further callbacks are made.
        """
        with self._lock:
            if self._state is not SessionState.RUNNING:
                return
            self._transition(SessionState.CANCELLED)
            logger.info(
                "search_session_cancelled",
                extra={"session_id": self.session_id, "batches": self._batch_count},
            )
            _terminate(self._process)

    def wait(self, timeout: float | None = None) -> SessionState:
        """Block until the reader thread has finished (or timeout expires).

        Returns:
            The session state at the time of return
        """
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        return self._state

    def close(self, timeout: float | None = 5.0) -> None:
        """Cancel if running and wait for the process to be reaped."""
        self.cancel()
        self.wait(timeout)

    def __enter__(self) -> "SearchSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Reader Thread
    # -------------------------------------------------------------------------

    def _read_output(self, process: Any) -> None:
        parser = ResultStreamParser(process.stdout)
        pending: list[MatchRecord] = []
        try:
            for record in parser:
                pending.append(record)
                if len(pending) >= self._batch_size:
                    if not self._flush(pending):
                        return
                    pending = []
        except (OSError, ValueError) as e:
            with self._lock:
                if self._state is not SessionState.RUNNING:
                    return
                logger.error(
                    "search_stream_failed",
                    extra={"session_id": self.session_id, "error": str(e)},
                    exc_info=True,
                )
                self.error = StreamIOError(f"Failed reading search output: {e}")
                self._transition(SessionState.FAILED)
                _terminate(process)
            return
        finally:
            self.summary = parser.summary
            self._reap(process)

        with self._lock:
            if self._state is not SessionState.RUNNING:
                return
            if pending:
                self._flush(pending)
            self._transition(SessionState.COMPLETED)
            logger.info(
                "search_session_completed",
                extra={
                    "session_id": self.session_id,
                    "batches": self._batch_count,
                    "matches": self._match_count,
                    "returncode": self._returncode,
                },
            )

    def _flush(self, pending: list[MatchRecord]) -> bool:
        """Deliver pending matches as one batch; False if no longer running."""
        with self._lock:
            if self._state is not SessionState.RUNNING:
                return False
            self._batch_count += 1
            self._match_count += len(pending)
            batch = SearchBatch(sequence=self._batch_count, matches=tuple(pending))
            logger.debug(
                "search_batch_flushed",
                extra={
                    "session_id": self.session_id,
                    "sequence": batch.sequence,
                    "size": len(batch.matches),
                },
            )
            self._emit(self._on_batch, batch)
            return True

    def _reap(self, process: Any) -> None:
        try:
            self._returncode = process.wait()
        finally:
            if process.stdout is not None:
                process.stdout.close()

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    def _fail(self, error: Exception) -> None:
        logger.error(
            "search_spawn_failed",
            extra={"session_id": self.session_id, "error": str(error)},
        )
        self.error = error
        self._transition(SessionState.FAILED)

    def _transition(self, state: SessionState) -> None:
        self._state = state
        self._emit(self._on_state_change, state)

    def _emit(self, callback: Callable[[Any], None] | None, value: Any) -> None:
        if callback is None:
            return
        try:
            callback(value)
        except Exception as e:
            logger.error(
                "search_callback_failed",
                extra={"session_id": self.session_id, "error": str(e)},
                exc_info=True,
            )


def _terminate(process: Any) -> None:
    """Kill the process; errors (e.g. already exited) are ignored."""
    if process is None:
        return
    try:
        process.kill()
    except OSError:
        pass
