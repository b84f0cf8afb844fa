import pytest
from httpx import ASGITransport, AsyncClient

from records_api.config import Settings
from records_api.crud import RecordRepository
from records_api.database import create_tables
from records_api.main import create_app


def make_record(i: int, **overrides) -> dict:
    data = {
        "name": f"Person {i:02d}",
        "email": f"person{i}@acme.io",
        "message": f"Message number {i}",
    }
    data.update(overrides)
    return data


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DB_URL=f"sqlite+aiosqlite:///{tmp_path / 'records.db'}",
        DB_CREATE_TABLES=False,
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
async def app(settings):
    app = create_app(settings)
    await create_tables(app.state.engine)
    yield app
    await app.state.engine.dispose()


@pytest.fixture
async def session(app):
    async with app.state.sessionmaker() as session:
        yield session


@pytest.fixture
def repo(session):
    return RecordRepository(session)


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
