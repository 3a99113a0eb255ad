"""Tests for the HTTP API."""

import asyncio
import json
from collections.abc import Callable
from pathlib import Path
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from ripsearch import __version__
from ripsearch.search.models import SessionState
from ripsearch.surface.controller import SearchSurface
from ripsearch.surface.models import SearchRequest, SurfaceEvent
from ripsearch.surface.router import stream_search_events, submit_search
from ripsearch.tests.fakes import FakePopen, fake_process, match_line

SurfaceFactory = Callable[..., SearchSurface]
Installer = Callable[[SearchSurface], SearchSurface]


def sse_events(body: str) -> list[str]:
    """Split an event-stream body into its `data:` payloads."""
    return [
        chunk.removeprefix("data: ")
        for chunk in body.split("\n\n")
        if chunk.startswith("data: ")
    ]


def error_code(response) -> str:
    return response.json()["detail"]["error"]["code"]


class TestHealth:
    """Tests for service endpoints."""

    def test_health(self, client: TestClient) -> None:
        """Test the health check payload."""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == __version__
        assert "default_root" in data

    def test_root(self, client: TestClient) -> None:
        """Test the root endpoint."""
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["name"] == "ripsearch"


class TestSearchEndpoints:
    """Tests for /v1/search."""

    def test_get_initial_snapshot(
        self, client: TestClient, surface_factory: SurfaceFactory, override_surface: Installer
    ) -> None:
        """Test reading the surface before any run."""
        override_surface(surface_factory(FakePopen()))

        response = client.get("/v1/search")

        assert response.status_code == 200
        data = response.json()
        assert data["state"] == "idle"
        assert data["status_message"] == "Ready to search"
        assert data["last_applied"] is None

    def test_put_parameters_edits_only(
        self, client: TestClient, surface_factory: SurfaceFactory, override_surface: Installer
    ) -> None:
        """Test that editing does not start a search."""
        popen = FakePopen()
        override_surface(surface_factory(popen))

        response = client.put(
            "/v1/search/parameters",
            json={"query": "foo", "glob": "*.py, ,*.md", "case_insensitive": True},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["parameters"]["query"] == "foo"
        assert data["parameters"]["globs"] == ["*.py", "*.md"]
        assert data["parameters"]["case_insensitive"] is True
        assert data["dirty"] is True
        assert data["submit_action"] == "search"
        assert popen.calls == []

    def test_submit_streams_batches(
        self,
        client: TestClient,
        surface_factory: SurfaceFactory,
        override_surface: Installer,
        search_root: Path,
    ) -> None:
        """Test the event stream for a streamed submit."""
        lines = [match_line(path=f"{search_root}/a.py", line_number=n) for n in range(1, 13)]
        surface = override_surface(surface_factory(FakePopen(fake_process(lines))))

        response = client.post("/v1/search", json={"query": "foo", "stream": True})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        payloads = sse_events(response.text)
        assert payloads[-1] == "[DONE]"
        events = [json.loads(p) for p in payloads[:-1]]
        assert [(e["type"], e["state"], e["sequence"]) for e in events] == [
            ("state", "running", None),
            ("batch", None, 1),
            ("batch", None, 2),
            ("state", "completed", None),
        ]
        assert len(events[1]["matches"]) == 10
        assert events[1]["matches"][0]["display_path"] == "a.py"
        assert events[-1]["total_matches"] == 12
        assert surface.listener_count == 0

    def test_submit_without_stream_returns_snapshot(
        self,
        client: TestClient,
        surface_factory: SurfaceFactory,
        override_surface: Installer,
    ) -> None:
        """Test that a plain submit answers with the snapshot."""
        surface = override_surface(
            surface_factory(FakePopen(fake_process([], hold_open=True)))
        )

        response = client.post("/v1/search", json={"query": "foo"})

        assert response.status_code == 200
        data = response.json()
        assert data["state"] == "running"
        assert data["last_applied"]["query"] == "foo"
        assert data["submit_action"] == "stop"

        cancelled = client.post("/v1/search/cancel")
        assert cancelled.json()["state"] == "cancelled"
        surface.close()

    def test_blank_query_is_bad_request(
        self, client: TestClient, surface_factory: SurfaceFactory, override_surface: Installer
    ) -> None:
        """Test that a blank query is rejected with 400."""
        override_surface(surface_factory(FakePopen()))

        response = client.post("/v1/search", json={"query": "   "})

        assert response.status_code == 400
        assert error_code(response) == "invalid_parameters"

    def test_relative_root_is_bad_request(
        self, client: TestClient, surface_factory: SurfaceFactory, override_surface: Installer
    ) -> None:
        """Test that a relative root is rejected with 400."""
        override_surface(surface_factory(FakePopen()))

        response = client.post("/v1/search", json={"query": "foo", "root_path": "rel/dir"})

        assert response.status_code == 400
        assert error_code(response) == "invalid_parameters"

    def test_submit_while_running_conflicts(
        self, client: TestClient, surface_factory: SurfaceFactory, override_surface: Installer
    ) -> None:
        """Test that a second submit during a run is a 409."""
        surface = override_surface(
            surface_factory(FakePopen(fake_process([], hold_open=True)))
        )
        client.post("/v1/search", json={"query": "foo"})

        response = client.post("/v1/search", json={"query": "bar"})

        assert response.status_code == 409
        assert error_code(response) == "session_state"
        surface.close()

    def test_spawn_failure_is_server_error(
        self, client: TestClient, surface_factory: SurfaceFactory, override_surface: Installer
    ) -> None:
        """Test that a launch failure is a 500 with spawn_error."""
        surface = override_surface(
            surface_factory(FakePopen(error=FileNotFoundError(2, "No such file", "rg")))
        )

        response = client.post("/v1/search", json={"query": "foo", "stream": True})

        assert response.status_code == 500
        assert error_code(response) == "spawn_error"
        assert client.get("/v1/search").json()["state"] == "failed"
        assert surface.snapshot().status_message == "Search failed"

    def test_cancel_when_idle(
        self, client: TestClient, surface_factory: SurfaceFactory, override_surface: Installer
    ) -> None:
        """Test that cancel without a run is a no-op."""
        override_surface(surface_factory(FakePopen()))

        response = client.post("/v1/search/cancel")

        assert response.status_code == 200
        assert response.json()["state"] == "idle"

    def test_clear_filter_reruns(
        self,
        client: TestClient,
        surface_factory: SurfaceFactory,
        override_surface: Installer,
    ) -> None:
        """Test that clear-filter reruns without globs."""
        popen = FakePopen(fake_process([match_line()]), fake_process([match_line()]))
        surface = override_surface(surface_factory(popen))
        client.post("/v1/search", json={"query": "foo", "glob": "*.kt"})
        surface.session.wait(timeout=5)

        response = client.post("/v1/search/clear-filter")
        surface.session.wait(timeout=5)

        assert response.status_code == 200
        assert response.json()["last_applied"]["globs"] == []
        assert "-g" in popen.calls[0][0]
        assert "-g" not in popen.calls[1][0]

    def test_clear_filter_without_query(
        self, client: TestClient, surface_factory: SurfaceFactory, override_surface: Installer
    ) -> None:
        """Test that clear-filter with nothing to run is a 400."""
        override_surface(surface_factory(FakePopen()))

        response = client.post("/v1/search/clear-filter")

        assert response.status_code == 400

    def test_results_paging(
        self,
        client: TestClient,
        surface_factory: SurfaceFactory,
        override_surface: Installer,
    ) -> None:
        """Test paging through accumulated results."""
        lines = [match_line(line_number=n) for n in range(1, 26)]
        surface = override_surface(surface_factory(FakePopen(fake_process(lines))))
        client.post("/v1/search", json={"query": "foo"})
        surface.session.wait(timeout=5)

        response = client.get("/v1/search/results", params={"offset": 20, "limit": 10})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 25
        assert [r["line_number"] for r in data["results"]] == [21, 22, 23, 24, 25]
        assert data["results"][0]["segments"][0] == {"text": "foo", "highlighted": True}

    def test_results_rejects_negative_offset(
        self, client: TestClient, surface_factory: SurfaceFactory, override_surface: Installer
    ) -> None:
        """Test query validation on the results endpoint."""
        override_surface(surface_factory(FakePopen()))

        response = client.get("/v1/search/results", params={"offset": -1})

        assert response.status_code == 422


class TestStreamSearchEvents:
    """Tests for the SSE relay generator."""

    @staticmethod
    def event(session_id: str, **fields) -> SurfaceEvent:
        return SurfaceEvent(session_id=session_id, **fields)

    @pytest.mark.asyncio
    async def test_stops_after_terminal_state(self) -> None:
        """Test that the stream ends with [DONE] after a terminal event."""
        queue: asyncio.Queue[SurfaceEvent] = asyncio.Queue()
        unsubscribe = Mock()
        for item in [
            self.event("s1", type="state", state=SessionState.RUNNING),
            self.event("s1", type="batch", sequence=1, total_matches=10),
            self.event("s1", type="state", state=SessionState.CANCELLED, total_matches=10),
            self.event("s1", type="batch", sequence=2),
        ]:
            queue.put_nowait(item)

        chunks = [c async for c in stream_search_events(queue, "s1", unsubscribe)]

        assert len(chunks) == 4
        assert chunks[-1] == "data: [DONE]\n\n"
        assert json.loads(chunks[2].removeprefix("data: "))["state"] == "cancelled"
        unsubscribe.assert_called_once()
        assert queue.qsize() == 1

    @pytest.mark.asyncio
    async def test_ignores_other_sessions(self) -> None:
        """Test that events of an earlier session are filtered out."""
        queue: asyncio.Queue[SurfaceEvent] = asyncio.Queue()
        queue.put_nowait(self.event("old", type="state", state=SessionState.CANCELLED))
        queue.put_nowait(self.event("new", type="state", state=SessionState.FAILED, error="boom"))

        chunks = [c async for c in stream_search_events(queue, "new", Mock())]

        assert len(chunks) == 2
        payload = json.loads(chunks[0].removeprefix("data: "))
        assert payload["session_id"] == "new"
        assert payload["error"] == "boom"

    @pytest.mark.asyncio
    async def test_unsubscribes_when_closed_early(self) -> None:
        """Test that closing the stream drops the subscription."""
        queue: asyncio.Queue[SurfaceEvent] = asyncio.Queue()
        queue.put_nowait(self.event("s1", type="batch", sequence=1))
        unsubscribe = Mock()

        stream = stream_search_events(queue, "s1", unsubscribe)
        first = await stream.__anext__()
        await stream.aclose()

        assert first.startswith("data: ")
        unsubscribe.assert_called_once()


class TestToggleEndpoint:
    """Tests for the run/stop control endpoint."""

    def test_toggle_runs_then_stops(
        self, client: TestClient, surface_factory: SurfaceFactory, override_surface: Installer
    ) -> None:
        """Test that toggle starts an idle search and stops a running one."""
        popen = FakePopen(fake_process([], hold_open=True))
        surface = override_surface(surface_factory(popen))
        client.put("/v1/search/parameters", json={"query": "foo"})

        started = client.post("/v1/search/toggle")
        stopped = client.post("/v1/search/toggle")

        assert started.status_code == 200
        assert started.json()["state"] == "running"
        assert started.json()["submit_action"] == "stop"
        assert stopped.status_code == 200
        assert stopped.json()["state"] == "cancelled"
        assert popen.process.killed is True
        surface.close()

    def test_toggle_without_query(
        self, client: TestClient, surface_factory: SurfaceFactory, override_surface: Installer
    ) -> None:
        """Test that toggle with nothing to run is a 400."""
        override_surface(surface_factory(FakePopen()))

        response = client.post("/v1/search/toggle")

        assert response.status_code == 400
        assert error_code(response) == "invalid_parameters"


class TestStreamSubscription:
    """Tests for subscription cleanup of streamed submits."""

    @pytest.mark.asyncio
    async def test_unsubscribes_without_iterating_body(
        self, surface_factory: SurfaceFactory
    ) -> None:
        """Test that the response cleans up even if the body is never read."""
        surface = surface_factory(FakePopen(fake_process([], hold_open=True)))

        response = await submit_search(SearchRequest(query="foo", stream=True), surface)
        try:
            assert surface.listener_count == 1
            assert response.background is not None

            await response.background()

            assert surface.listener_count == 0
        finally:
            surface.close()
