"""
Pytest fixtures for PaperGraph tests.
"""

import fitz
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from unittest.mock import MagicMock, AsyncMock

from config import Settings
from graph.graph_store import GraphStore
from jobs.job_store import JobStore

from fakes import FakeCompletion


@pytest.fixture
def test_settings():
    """Settings with pacing disabled."""
    return Settings(chunk_delay_seconds=0, min_edge_confidence=0.4)


@pytest.fixture
def store():
    """In-memory graph store."""
    return GraphStore()


@pytest.fixture
def job_store():
    """In-memory job store."""
    return JobStore()


@pytest.fixture
def fake_completion():
    return FakeCompletion()


@pytest.fixture
def pdf_bytes():
    """A one-page PDF produced with PyMuPDF."""
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), "Our method, FastSplat, extends 3D Gaussian Splatting.")
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def mock_db():
    """Mock database connection."""
    db = MagicMock()
    db.is_connected = True
    db.fetch = AsyncMock(return_value=[])
    db.fetchrow = AsyncMock(return_value=None)
    db.fetchval = AsyncMock(return_value=None)
    db.execute = AsyncMock(return_value="INSERT 0 1")
    return db


@pytest.fixture
def app():
    """Get FastAPI app instance."""
    from main import app
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def async_client(app):
    """Create async HTTP client for testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
