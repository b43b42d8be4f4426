from typing import Callable, Dict, List, Tuple, Union

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from config import ClientCredentials, ProviderCredentials, get_provider_credentials
from database import Base, get_db
from main import app
from services.connectors.http import get_provider_http_client
from services.connectors.state import NullNonceStore, get_state_nonce_store
from services.session_token import create_session_token


CONNECT_USER_ID = "creator-1"
OTHER_USER_ID = "creator-2"
CONNECT_AUTH_HEADER = {"Authorization": f"Bearer {create_session_token(CONNECT_USER_ID)['token']}"}
OTHER_AUTH_HEADER = {"Authorization": f"Bearer {create_session_token(OTHER_USER_ID)['token']}"}

FAKE_CREDENTIALS = ProviderCredentials(
    meta=ClientCredentials("meta-app-id", "meta-app-secret"),
    tiktok=ClientCredentials("tiktok-client-key", "tiktok-secret"),
    twitter=ClientCredentials("x-consumer-key", "x-consumer-secret"),
    linkedin=ClientCredentials("linkedin-client-id", "linkedin-secret"),
)

Responder = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


def _bare_url(url: httpx.URL) -> str:
    return f"{url.scheme}://{url.host}{url.path}"


class ProviderStub:
    """Scripted provider endpoints for httpx.MockTransport."""

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], List[Responder]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, url: str, *responses: Responder) -> None:
        self.routes.setdefault((method.upper(), url), []).extend(responses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, _bare_url(request.url))
        queued = self.routes.get(key)
        if not queued:
            return httpx.Response(599, text=f"unexpected request {key}")
        responder = queued.pop(0) if len(queued) > 1 else queued[0]
        if callable(responder):
            return responder(request)
        return responder

    def requests_to(self, url: str) -> List[httpx.Request]:
        return [req for req in self.requests if _bare_url(req.url) == url]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def provider_stub():
    return ProviderStub()


@pytest_asyncio.fixture
async def connect_client(tmp_path, provider_stub):
    db_path = tmp_path / "social_connect.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async def override_get_db():
        async with session_maker() as session:
            yield session

    async def override_http_client():
        async with provider_stub.client() as client:
            yield client

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_provider_http_client] = override_http_client
    app.dependency_overrides[get_provider_credentials] = lambda: FAKE_CREDENTIALS
    app.dependency_overrides[get_state_nonce_store] = lambda: NullNonceStore()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client, session_maker

    app.dependency_overrides.clear()
    await engine.dispose()
