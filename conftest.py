import os
import tempfile

# api builds its default app at import time; keep that database out of the working tree
os.environ.setdefault(
    "READING_LOG_DB_FILE",
    os.path.join(tempfile.gettempdir(), f"reading_log_test_{os.getpid()}.db"),
)

import httpx
import pytest
from fastapi.testclient import TestClient

from api import create_app, get_cover_service
from config import Settings
from covers import CoverService
from database import Database
from library import Library

COVERS_BASE_URL = "https://covers.example.test/b/isbn"


@pytest.fixture
def db(tmp_path):
    # Each test gets its own database file
    database = Database(str(tmp_path / "library_test.db"))
    database.initialize()
    return database


@pytest.fixture
def lib(db):
    return Library(db)


@pytest.fixture
def app(tmp_path):
    return create_app(Settings(db_file=str(tmp_path / "api_test.db")))


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def mock_covers(app):
    """Install a CoverService whose upstream is answered by ``handler``."""
    def install(handler):
        http = httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
        service = CoverService(http, COVERS_BASE_URL)
        app.dependency_overrides[get_cover_service] = lambda: service
        return service

    yield install
    app.dependency_overrides.clear()
