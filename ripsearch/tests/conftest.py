"""Shared pytest fixtures."""

import os
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest
from dotenv import load_dotenv

# Load environment variables before importing app modules
load_dotenv()

# Keep tests independent of a locally installed ripgrep
os.environ.setdefault("RG_PATH", "/nonexistent/rg")

from fastapi.testclient import TestClient  # noqa: E402

from ripsearch.main import app  # noqa: E402
from ripsearch.search.models import SearchParameters  # noqa: E402
from ripsearch.search.session import SearchSession  # noqa: E402
from ripsearch.surface.controller import SearchSurface, get_search_surface  # noqa: E402
from ripsearch.tests.fakes import FakePopen, fake_process  # noqa: E402


@pytest.fixture
def make_popen() -> Callable[..., FakePopen]:
    """Factory for a FakePopen serving the given output lines."""

    def _make(
        lines: list[str] | None = None,
        *,
        hold_open: bool = False,
        error: Exception | None = None,
        returncode: int = 0,
    ) -> FakePopen:
        return FakePopen(
            fake_process(lines, hold_open=hold_open, error=error, returncode=returncode)
        )

    return _make


@pytest.fixture
def search_root(tmp_path: Path) -> Path:
    """Create a temporary directory to search under."""
    root = tmp_path / "root"
    root.mkdir()
    (root / "a.py").write_text("import os\nprint('foo')\n")
    (root / "notes.md").write_text("# foo\n")
    return root


@pytest.fixture
def params(search_root: Path) -> SearchParameters:
    """Parameters with a query, rooted at search_root."""
    return SearchParameters(query="foo", root_path=str(search_root))


@pytest.fixture
def surface_factory(search_root: Path) -> Callable[[FakePopen], SearchSurface]:
    """Build a SearchSurface whose sessions launch through a FakePopen."""

    def _make(popen: FakePopen, batch_size: int = 10) -> SearchSurface:
        def session_factory(executable: str | None, **kwargs: Any) -> SearchSession:
            return SearchSession("rg", popen=popen, **kwargs)

        return SearchSurface(
            SearchParameters(root_path=str(search_root)),
            batch_size=batch_size,
            session_factory=session_factory,
        )

    return _make


@pytest.fixture
def client() -> Iterator[TestClient]:
    """Create a FastAPI test client; dependency overrides are reset after."""
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def override_surface() -> Callable[[SearchSurface], SearchSurface]:
    """Install a SearchSurface as the app's surface dependency."""

    def _install(surface: SearchSurface) -> SearchSurface:
        app.dependency_overrides[get_search_surface] = lambda: surface
        return surface

    return _install
