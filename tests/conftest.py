import httpx
import pytest
from httpx import ASGITransport

from tests.fakes import FakePageSource


@pytest.fixture
def mock_env(monkeypatch, tmp_path):
    monkeypatch.setenv("OUTPUT_DIR", str(tmp_path))
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("PACING_DELAY", "0")
    monkeypatch.setenv("SETTLE_DELAY", "0")
    return tmp_path


@pytest.fixture
def fake_pages():
    return FakePageSource()


@pytest.fixture
async def client(mock_env, fake_pages):
    from phone_enricher.main import app, lifespan

    async with lifespan(app):
        # Never launch a real browser in tests
        app.state.page_source = fake_pages
        async with httpx.AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as c:
            yield c
