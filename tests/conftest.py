import tempfile
from pathlib import Path

import pytest
import pytest_asyncio

from backend.database import set_db_path, init_db
from tests.fakes import FakeOpenRouter, RecordingSleep


@pytest.fixture
def temp_db_path():
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        path = f.name
    yield path
    Path(path).unlink(missing_ok=True)


@pytest.fixture
def test_settings(temp_db_path):
    from backend.config import Settings
    return Settings(
        openrouter_api_key="sk-or-test-fake",
        openrouter_base_url="https://openrouter.test/api/v1",
        database_url=temp_db_path,
    )


@pytest_asyncio.fixture
async def initialized_db(temp_db_path):
    set_db_path(temp_db_path)
    await init_db()
    yield temp_db_path


@pytest.fixture
def fake_openrouter():
    return FakeOpenRouter()


@pytest.fixture
def openrouter_client(test_settings, fake_openrouter):
    from backend.services.openrouter_client import OpenRouterClient
    return OpenRouterClient(test_settings, transport=fake_openrouter.transport())


@pytest.fixture
def recorded_sleep():
    return RecordingSleep()
