import base64
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from conftest import FAKE_CREDENTIALS, ProviderStub
from services.connectors.normalizer import normalize_profile
from services.connectors.pkce import derive_code_challenge
from services.connectors.providers import TwitterConnectorProvider, get_connector_provider
from services.connectors.registry import PROVIDER_CONFIGS, get_provider_config
from services.connectors.state import decode_state, encode_state
from services.connectors.types import (
    NormalizationNotImplementedError,
    ProfileFetchFailedError,
    ProviderNotImplementedError,
    ProviderUnavailableError,
    TokenExchangeFailedError,
    TokenRefreshFailedError,
    UnsupportedProviderError,
)


IMPLEMENTED = ("meta", "tiktok", "twitter", "linkedin")


def _form(request: httpx.Request) -> dict:
    return {key: values[0] for key, values in parse_qs(request.content.decode()).items()}


@pytest.mark.parametrize("platform", IMPLEMENTED)
def test_authorization_url_targets_provider_and_embeds_state(platform):
    provider = get_connector_provider(platform, FAKE_CREDENTIALS)
    state = encode_state("u1", platform)

    request = provider.build_authorization_url(redirect_uri="https://app.example/cb", state=state)

    parsed = urlparse(request.authorization_url)
    configured = urlparse(PROVIDER_CONFIGS[platform].authorization_endpoint)
    assert parsed.netloc == configured.netloc
    assert parsed.path == configured.path

    query = parse_qs(parsed.query)
    assert query["redirect_uri"] == ["https://app.example/cb"]
    assert query["response_type"] == ["code"]
    assert query["scope"] == [" ".join(PROVIDER_CONFIGS[platform].scopes)]
    decoded = decode_state(query["state"][0])
    assert decoded.user_id == "u1"
    assert decoded.platform == platform


def test_scopes_are_percent_encoded_with_spaces():
    provider = get_connector_provider("linkedin", FAKE_CREDENTIALS)
    request = provider.build_authorization_url(redirect_uri="https://app.example/cb", state="abc")

    assert request.authorization_url.startswith(
        "https://www.linkedin.com/oauth/v2/authorization?client_id=linkedin-client-id"
    )
    assert "scope=openid%20profile%20email" in request.authorization_url
    assert "redirect_uri=https%3A%2F%2Fapp.example%2Fcb" in request.authorization_url
    assert request.code_verifier is None


def test_tiktok_uses_client_key_parameter():
    provider = get_connector_provider("tiktok", FAKE_CREDENTIALS)
    request = provider.build_authorization_url(redirect_uri="https://app.example/cb", state="abc")

    query = parse_qs(urlparse(request.authorization_url).query)
    assert query["client_key"] == ["tiktok-client-key"]
    assert "client_id" not in query


def test_twitter_authorization_url_carries_pkce_challenge():
    provider = get_connector_provider("twitter", FAKE_CREDENTIALS)
    request = provider.build_authorization_url(redirect_uri="https://app.example/cb", state="abc")

    query = parse_qs(urlparse(request.authorization_url).query)
    assert request.code_verifier
    assert query["code_challenge"] == [derive_code_challenge(request.code_verifier)]
    assert query["code_challenge_method"] == ["S256"]


def test_unknown_platform_is_unsupported():
    with pytest.raises(UnsupportedProviderError) as exc_info:
        get_connector_provider("myspace", FAKE_CREDENTIALS)
    assert exc_info.value.status_code == 400
    assert exc_info.value.message == "Unsupported platform: myspace"


def test_registered_platform_without_implementation_is_not_implemented():
    assert get_provider_config("youtube").platform == "youtube"
    with pytest.raises(ProviderNotImplementedError) as exc_info:
        get_connector_provider("youtube", FAKE_CREDENTIALS)
    assert exc_info.value.status_code == 501


@pytest.mark.asyncio
async def test_meta_code_exchange_sends_secret_in_body():
    stub = ProviderStub()
    token_url = PROVIDER_CONFIGS["meta"].token_endpoint
    stub.add("POST", token_url, httpx.Response(200, json={"access_token": "meta-token", "expires_in": 5184000}))
    provider = get_connector_provider("meta", FAKE_CREDENTIALS)

    async with stub.client() as client:
        grant = await provider.exchange_code(client, code="c-1", redirect_uri="https://app.example/cb")

    assert grant.access_token == "meta-token"
    assert grant.expires_in == 5184000
    assert grant.refresh_token is None
    form = _form(stub.requests_to(token_url)[0])
    assert form == {
        "client_id": "meta-app-id",
        "client_secret": "meta-app-secret",
        "code": "c-1",
        "redirect_uri": "https://app.example/cb",
        "grant_type": "authorization_code",
    }


@pytest.mark.asyncio
async def test_twitter_code_exchange_uses_basic_auth_and_verifier():
    stub = ProviderStub()
    token_url = PROVIDER_CONFIGS["twitter"].token_endpoint
    stub.add(
        "POST",
        token_url,
        httpx.Response(200, json={"access_token": "x-token", "refresh_token": "x-refresh", "scope": "tweet.read"}),
    )
    provider = get_connector_provider("twitter", FAKE_CREDENTIALS)

    async with stub.client() as client:
        grant = await provider.exchange_code(
            client,
            code="c-2",
            redirect_uri="https://app.example/cb",
            code_verifier="verifier-123",
        )

    assert grant.refresh_token == "x-refresh"
    assert grant.scope == "tweet.read"
    request = stub.requests_to(token_url)[0]
    expected = base64.b64encode(b"x-consumer-key:x-consumer-secret").decode()
    assert request.headers["Authorization"] == f"Basic {expected}"
    assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
    form = _form(request)
    assert form["code_verifier"] == "verifier-123"
    assert form["client_id"] == "x-consumer-key"
    assert "client_secret" not in form


@pytest.mark.asyncio
async def test_code_exchange_failure_is_not_retried():
    stub = ProviderStub()
    token_url = PROVIDER_CONFIGS["linkedin"].token_endpoint
    stub.add("POST", token_url, httpx.Response(503, text="upstream down"))
    provider = get_connector_provider("linkedin", FAKE_CREDENTIALS)

    async with stub.client() as client:
        with pytest.raises(TokenExchangeFailedError) as exc_info:
            await provider.exchange_code(client, code="c", redirect_uri="https://app.example/cb")

    assert exc_info.value.message == "Token exchange failed: 503"
    assert "upstream down" not in exc_info.value.message
    assert len(stub.requests_to(token_url)) == 1


@pytest.mark.asyncio
async def test_token_response_without_access_token_fails_exchange():
    stub = ProviderStub()
    token_url = PROVIDER_CONFIGS["tiktok"].token_endpoint
    stub.add("POST", token_url, httpx.Response(200, json={"error": "invalid_grant"}))
    provider = get_connector_provider("tiktok", FAKE_CREDENTIALS)

    async with stub.client() as client:
        with pytest.raises(TokenExchangeFailedError):
            await provider.exchange_code(client, code="c", redirect_uri="https://app.example/cb")


@pytest.mark.asyncio
async def test_refresh_retries_server_errors_then_succeeds():
    stub = ProviderStub()
    token_url = PROVIDER_CONFIGS["twitter"].token_endpoint
    stub.add(
        "POST",
        token_url,
        httpx.Response(503),
        httpx.Response(502),
        httpx.Response(200, json={"access_token": "fresh", "expires_in": 7200}),
    )
    provider = TwitterConnectorProvider(
        config=PROVIDER_CONFIGS["twitter"],
        credentials=FAKE_CREDENTIALS.twitter,
        refresh_attempts=3,
        refresh_backoff_seconds=0,
    )

    async with stub.client() as client:
        grant = await provider.refresh_access_token(client, refresh_token="old-refresh")

    assert grant.access_token == "fresh"
    assert len(stub.requests_to(token_url)) == 3
    assert _form(stub.requests_to(token_url)[-1]) == {
        "grant_type": "refresh_token",
        "refresh_token": "old-refresh",
    }


@pytest.mark.asyncio
async def test_refresh_gives_up_after_bounded_attempts():
    stub = ProviderStub()
    token_url = PROVIDER_CONFIGS["twitter"].token_endpoint
    stub.add("POST", token_url, httpx.Response(500))
    provider = TwitterConnectorProvider(
        config=PROVIDER_CONFIGS["twitter"],
        credentials=FAKE_CREDENTIALS.twitter,
        refresh_attempts=2,
        refresh_backoff_seconds=0,
    )

    async with stub.client() as client:
        with pytest.raises(TokenRefreshFailedError) as exc_info:
            await provider.refresh_access_token(client, refresh_token="r")

    assert exc_info.value.message == "Token refresh failed: 500"
    assert len(stub.requests_to(token_url)) == 2


@pytest.mark.asyncio
async def test_refresh_transport_errors_surface_as_provider_unavailable():
    def _boom(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    stub = ProviderStub()
    stub.add("POST", PROVIDER_CONFIGS["linkedin"].token_endpoint, _boom)
    provider = get_connector_provider("linkedin", FAKE_CREDENTIALS)
    provider.refresh_backoff_seconds = 0

    async with stub.client() as client:
        with pytest.raises(ProviderUnavailableError):
            await provider.refresh_access_token(client, refresh_token="r")


@pytest.mark.asyncio
async def test_meta_refresh_uses_exchange_grant():
    stub = ProviderStub()
    token_url = PROVIDER_CONFIGS["meta"].token_endpoint
    stub.add("POST", token_url, httpx.Response(200, json={"access_token": "long-lived"}))
    provider = get_connector_provider("meta", FAKE_CREDENTIALS)

    async with stub.client() as client:
        await provider.refresh_access_token(client, refresh_token="short-lived")

    form = _form(stub.requests_to(token_url)[0])
    assert form["grant_type"] == "fb_exchange_token"
    assert form["fb_exchange_token"] == "short-lived"


@pytest.mark.asyncio
async def test_meta_profile_fetch_passes_token_in_query_string():
    stub = ProviderStub()
    profile_url = PROVIDER_CONFIGS["meta"].profile_endpoint
    stub.add(
        "GET",
        profile_url,
        httpx.Response(
            200,
            json={"id": "1789", "name": "brandcreator", "picture": {"data": {"url": "https://cdn.example/p.jpg"}}},
        ),
    )
    provider = get_connector_provider("meta", FAKE_CREDENTIALS)

    async with stub.client() as client:
        profile = await provider.fetch_profile(client, access_token="meta-token")

    request = stub.requests_to(profile_url)[0]
    assert request.url.params["access_token"] == "meta-token"
    assert request.url.params["fields"] == "id,name,picture"
    assert "Authorization" not in request.headers
    assert profile.platform_user_id == "1789"
    assert profile.avatar_url == "https://cdn.example/p.jpg"
    assert profile.profile_url == "https://instagram.com/brandcreator"


@pytest.mark.asyncio
async def test_profile_fetch_failure_reports_status_only():
    stub = ProviderStub()
    profile_url = PROVIDER_CONFIGS["tiktok"].profile_endpoint
    stub.add("GET", profile_url, httpx.Response(401, json={"error": {"message": "token revoked"}}))
    provider = get_connector_provider("tiktok", FAKE_CREDENTIALS)

    async with stub.client() as client:
        with pytest.raises(ProfileFetchFailedError) as exc_info:
            await provider.fetch_profile(client, access_token="t")

    assert exc_info.value.message == "Profile fetch failed: 401"
    request = stub.requests_to(profile_url)[0]
    assert request.headers["Authorization"] == "Bearer t"
    assert "follower_count" in request.url.params["fields"]


def test_normalize_tiktok_envelope():
    profile = normalize_profile(
        "tiktok",
        {
            "data": {
                "user": {
                    "open_id": "open-1",
                    "display_name": "dancer",
                    "avatar_url": "https://cdn.example/a.jpg",
                    "follower_count": 5400,
                    "following_count": 12,
                }
            }
        },
    )
    assert profile.platform_user_id == "open-1"
    assert profile.username == "dancer"
    assert profile.profile_url == "https://tiktok.com/@dancer"
    assert profile.followers == 5400
    assert profile.following == 12
    assert profile.engagement is None


def test_normalize_twitter_public_metrics():
    profile = normalize_profile(
        "twitter",
        {
            "data": {
                "id": "42",
                "name": "Creator One",
                "username": "creator_one",
                "profile_image_url": "https://pbs.example/42.jpg",
                "description": "I make videos",
                "public_metrics": {"followers_count": 1200, "following_count": 80},
            }
        },
    )
    assert profile.username == "creator_one"
    assert profile.display_name == "Creator One"
    assert profile.profile_url == "https://x.com/creator_one"
    assert profile.followers == 1200
    assert profile.following == 80
    assert profile.bio == "I make videos"


def test_normalize_linkedin_prefers_email_for_username():
    profile = normalize_profile(
        "linkedin",
        {"sub": "abc123", "name": "Pro Person", "email": "pro@example.com", "picture": "https://media.example/p"},
    )
    assert profile.username == "pro@example.com"
    assert profile.display_name == "Pro Person"
    assert profile.profile_url == "https://linkedin.com/in/abc123"
    assert profile.followers is None

    without_email = normalize_profile("linkedin", {"sub": "abc123", "name": "Pro Person"})
    assert without_email.username == "Pro Person"


def test_normalize_unknown_platform_raises():
    with pytest.raises(NormalizationNotImplementedError):
        normalize_profile("youtube", {"items": []})
