from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from config import settings
from services.session_token import SESSION_TOKEN_TYPE, create_session_token, decode_session_token


def _signed(**overrides) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "iss": "social-connect-api",
        "sub": "creator-1",
        "type": SESSION_TOKEN_TYPE,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(hours=1)).timestamp()),
    }
    claims.update(overrides)
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def test_issued_token_decodes_to_claims():
    issued = create_session_token("creator-1", email="c1@example.com", expires_hours=2)

    claims = decode_session_token(issued["token"])
    assert claims.user_id == "creator-1"
    assert claims.email == "c1@example.com"
    assert int(claims.expires_at.timestamp()) == issued["expires_at"]


@pytest.mark.parametrize(
    "token",
    [
        "not-a-jwt",
        _signed(iss="someone-else"),
        _signed(type="password_reset"),
        _signed(sub=""),
        _signed(exp=int((datetime.now(timezone.utc) - timedelta(minutes=5)).timestamp())),
        jwt.encode({"sub": "creator-1", "type": SESSION_TOKEN_TYPE}, "other-secret", algorithm="HS256"),
    ],
)
def test_unusable_tokens_are_rejected(token):
    with pytest.raises(ValueError):
        decode_session_token(token)


@pytest.mark.asyncio
async def test_foreign_issuer_session_is_unauthorized(connect_client):
    client, _ = connect_client

    response = await client.post(
        "/social-connect",
        json={"action": "status", "platform": "twitter"},
        headers={"Authorization": f"Bearer {_signed(iss='someone-else')}"},
    )
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}
