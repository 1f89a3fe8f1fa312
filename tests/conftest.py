# tests/conftest.py
# Shared fixtures: an in-memory store, a service with a fixed clock and an HTTP client.
# Environment is set before any pastelife module is imported so the app never dials Redis.

import os

os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("TEST_MODE", "1")
os.environ.setdefault("APP_DOMAIN", "http://testserver")

from datetime import datetime, timezone  # noqa: E402

import pytest  # noqa: E402

from pastelife.database import InMemoryPasteStore  # noqa: E402
from pastelife.service import PasteService  # noqa: E402

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def t0() -> datetime:
    return T0


@pytest.fixture
def store() -> InMemoryPasteStore:
    return InMemoryPasteStore(timeout=1.0)


@pytest.fixture
def service(store) -> PasteService:
    return PasteService(store=store, base_url="http://paste.test/", clock=lambda: T0)


@pytest.fixture
def client(store):
    from fastapi.testclient import TestClient
    from pastelife.config import Settings
    from pastelife.main import create_app

    settings = Settings()
    settings.TEST_MODE = True
    settings.APP_DOMAIN = "http://testserver"
    app = create_app(settings=settings, store=store)
    with TestClient(app) as test_client:
        yield test_client
