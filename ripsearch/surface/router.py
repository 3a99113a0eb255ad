"""FastAPI router for the /v1/search endpoints."""

import asyncio
from collections.abc import AsyncGenerator, Callable

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask
from pydantic import ValidationError

from ripsearch.dependencies import (
    InvalidParametersError,
    SearchError,
    SessionStateError,
    SpawnError,
    logger,
)
from ripsearch.surface.controller import SearchSurface, get_search_surface
from ripsearch.surface.models import (
    ErrorDetail,
    ErrorResponse,
    ResultsPage,
    SearchRequest,
    SurfaceEvent,
    SurfaceSnapshot,
)

router = APIRouter(prefix="/v1", tags=["search"])


def error_response(e: Exception) -> HTTPException:
    """Map a search error onto an HTTPException with an ErrorResponse body."""
    if isinstance(e, (InvalidParametersError, ValidationError)):
        code, error_type, status_code = (
            "invalid_parameters",
            "invalid_request_error",
            status.HTTP_400_BAD_REQUEST,
        )
    elif isinstance(e, SessionStateError):
        code, error_type, status_code = (
            "session_state",
            "invalid_request_error",
            status.HTTP_409_CONFLICT,
        )
    elif isinstance(e, SpawnError):
        code, error_type, status_code = (
            "spawn_error",
            "search_error",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    else:
        code, error_type, status_code = (
            "search_error",
            "search_error",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    return HTTPException(
        status_code=status_code,
        detail=ErrorResponse(
            error=ErrorDetail(message=str(e), type=error_type, code=code)
        ).model_dump(),
    )


async def stream_search_events(
    queue: "asyncio.Queue[SurfaceEvent]",
    session_id: str,
    unsubscribe: Callable[[], None],
) -> AsyncGenerator[str, None]:
    """Relay surface events for one session as server-sent events.

    Stops after the session's terminal state. The search itself keeps
    running if the client goes away; only the subscription is dropped.

    Yields:
        `data: {event}` lines followed by a final `data: [DONE]`
    """
    try:
        while True:
            event = await queue.get()
            if event.session_id != session_id:
                continue
            yield f"data: {event.model_dump_json()}\n\n"
            if event.type == "state" and event.state is not None and event.state.is_terminal:
                break
        yield "data: [DONE]\n\n"
    finally:
        unsubscribe()


@router.get("/search", response_model=SurfaceSnapshot)
async def get_search(surface: SearchSurface = Depends(get_search_surface)) -> SurfaceSnapshot:
    """Return the surface snapshot."""
    return surface.snapshot()


@router.put("/search/parameters", response_model=SurfaceSnapshot)
async def edit_parameters(
    request: SearchRequest,
    surface: SearchSurface = Depends(get_search_surface),
) -> SurfaceSnapshot:
    """Edit the parameters without running a search."""
    try:
        surface.edit(**request.changes())
    except ValidationError as e:
        raise error_response(e)
    return surface.snapshot()


@router.post("/search", response_model=None)
async def submit_search(
    request: SearchRequest,
    surface: SearchSurface = Depends(get_search_surface),
) -> SurfaceSnapshot | StreamingResponse:
    """Apply any edits and start a search.

    With `stream: true` the response is an event stream of batches and
    state changes for the new session; otherwise the snapshot is
    returned right after the search starts.
    """
    logger.info("search_request_received", extra={"stream": request.stream})

    unsubscribe: Callable[[], None] | None = None
    queue: asyncio.Queue[SurfaceEvent] = asyncio.Queue()
    if request.stream:
        loop = asyncio.get_running_loop()
        unsubscribe = surface.subscribe(
            lambda event: loop.call_soon_threadsafe(queue.put_nowait, event)
        )

    try:
        if request.changes():
            surface.edit(**request.changes())
        session = surface.submit()
    except (SearchError, ValidationError) as e:
        if unsubscribe is not None:
            unsubscribe()
        logger.warning(
            "search_request_rejected",
            extra={"error": str(e), "error_type": type(e).__name__},
        )
        raise error_response(e)

    if unsubscribe is None:
        return surface.snapshot()

    return StreamingResponse(
        stream_search_events(queue, session.session_id, unsubscribe),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
        background=BackgroundTask(unsubscribe),
    )


@router.post("/search/cancel", response_model=SurfaceSnapshot)
async def cancel_search(surface: SearchSurface = Depends(get_search_surface)) -> SurfaceSnapshot:
    """Cancel the running search (a no-op when nothing runs)."""
    surface.cancel()
    return surface.snapshot()


@router.post("/search/toggle", response_model=SurfaceSnapshot)
async def toggle_search(surface: SearchSurface = Depends(get_search_surface)) -> SurfaceSnapshot:
    """Run/stop control: cancel a running search, otherwise run the edited parameters."""
    try:
        surface.toggle()
    except SearchError as e:
        raise error_response(e)
    return surface.snapshot()


@router.post("/search/clear-filter", response_model=SurfaceSnapshot)
async def clear_filter(surface: SearchSurface = Depends(get_search_surface)) -> SurfaceSnapshot:
    """Remove the glob filter and rerun the search."""
    try:
        surface.clear_filter()
    except SearchError as e:
        raise error_response(e)
    return surface.snapshot()


@router.get("/search/results", response_model=ResultsPage)
async def get_results(
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    surface: SearchSurface = Depends(get_search_surface),
) -> ResultsPage:
    """Return a page of the accumulated results."""
    return ResultsPage(
        offset=offset,
        limit=limit,
        total=surface.total_matches,
        results=surface.results(offset, limit),
    )
