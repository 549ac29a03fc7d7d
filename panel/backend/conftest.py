import os
from typing import Any, Callable

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("BACKGROUND_REFRESH", "false")
os.environ.setdefault("DEFAULT_API_KEY", "")
os.environ.setdefault("DEFAULT_DEMO_MODE", "false")

from rdmonitor.database import Base, get_db
from rdmonitor.main import app
from rdmonitor.services.aggregator import TrafficAggregator
from rdmonitor.services.demo_data import SyntheticTrafficGenerator
from rdmonitor.services.rd_client import RDClient

TEST_DATABASE_URL = "sqlite:///:memory:"
TEST_API_BASE = "https://api.test/rest/1.0/"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False}, poolclass=StaticPool)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeAPI:
    """Canned Real-Debrid endpoints served through httpx.MockTransport.

    Each route maps an endpoint path (relative to the API root) to either an
    httpx.Response or a callable (sync or async) taking the request.
    """

    def __init__(self):
        self.routes: dict[str, Any] = {}
        self.requests: list[httpx.Request] = []

    def route(self, endpoint: str, handler: Any) -> None:
        self.routes[endpoint] = handler

    def json(self, endpoint: str, payload: Any, status_code: int = 200) -> None:
        self.routes[endpoint] = httpx.Response(status_code, json=payload)

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        endpoint = request.url.path[len("/rest/1.0/"):]
        handler = self.routes.get(endpoint)
        if handler is None:
            return httpx.Response(404, json={"error": "unknown_ressource"})
        if isinstance(handler, httpx.Response):
            return handler
        result = handler(request)
        if not isinstance(result, httpx.Response):
            result = await result
        return result

    def client_factory(self) -> Callable:
        def factory(config) -> RDClient:
            return RDClient(
                config.api_key,
                base_url=TEST_API_BASE,
                transport=httpx.MockTransport(self._handle),
            )
        return factory


@pytest.fixture
def fake_api():
    return FakeAPI()


@pytest.fixture
def aggregator(fake_api):
    return TrafficAggregator(
        client_factory=fake_api.client_factory(),
        generator=SyntheticTrafficGenerator(seed=1234),
        demo_delay=(0, 0),
    )


@pytest.fixture(scope="function")
def db():
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


def _make_db_override(db_session):
    def _override():
        yield db_session
    return _override


@pytest.fixture(scope="function")
def client(db, aggregator):
    app.dependency_overrides[get_db] = _make_db_override(db)
    previous = app.state.aggregator
    app.state.aggregator = aggregator
    with TestClient(app) as c:
        yield c
    app.state.aggregator = previous
    app.dependency_overrides.clear()
