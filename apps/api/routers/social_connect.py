"""
Social connect router: a single dispatch endpoint for the OAuth connector.
"""

import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from config import ProviderCredentials, get_provider_credentials
from database import get_db
from routers.auth_scope import AuthContext, get_optional_auth_context, require_auth
from services import social_connect
from services.connectors.http import get_provider_http_client
from services.connectors.state import StateNonceStore, get_state_nonce_store
from services.connectors.types import (
    ConnectorError,
    InternalServerError,
    InvalidActionError,
    MissingFieldError,
)

logger = logging.getLogger(__name__)

router = APIRouter()

class SocialConnectRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: str = ""
    platform: Optional[str] = None
    code: Optional[str] = None
    redirect_uri: Optional[str] = Field(default=None, alias="redirectUri")
    state: Optional[str] = None
    account_id: Optional[str] = Field(default=None, alias="accountId")
    code_verifier: Optional[str] = Field(default=None, alias="codeVerifier")


def _require(value: Optional[str], field: str) -> str:
    if value is None or not str(value).strip():
        raise MissingFieldError(field)
    return str(value).strip()


async def dispatch_action(
    request: SocialConnectRequest,
    *,
    auth: Optional[AuthContext],
    db: AsyncSession,
    http_client: httpx.AsyncClient,
    credentials: ProviderCredentials,
    nonce_store: StateNonceStore,
):
    action = (request.action or "").strip()
    logger.info("Action: %s, Platform: %s", action, request.platform)

    # The provider redirect carries no app session; callback trusts the state token instead.
    if action != "callback":
        auth = require_auth(auth)

    if action == "init":
        return social_connect.init_connection(
            platform=_require(request.platform, "platform"),
            redirect_uri=_require(request.redirect_uri, "redirectUri"),
            user_id=auth.user_id,
            credentials=credentials,
        )
    if action == "callback":
        return await social_connect.complete_callback(
            db,
            http_client,
            platform=_require(request.platform, "platform"),
            code=_require(request.code, "code"),
            redirect_uri=_require(request.redirect_uri, "redirectUri"),
            state=_require(request.state, "state"),
            credentials=credentials,
            nonce_store=nonce_store,
            code_verifier=request.code_verifier,
        )
    if action == "refresh":
        return await social_connect.refresh_connection(
            db,
            http_client,
            account_id=_require(request.account_id, "accountId"),
            user_id=auth.user_id,
            credentials=credentials,
        )
    if action == "disconnect":
        return await social_connect.disconnect_connection(
            db,
            account_id=_require(request.account_id, "accountId"),
            user_id=auth.user_id,
        )
    if action == "sync":
        return await social_connect.sync_connection(
            db,
            http_client,
            account_id=_require(request.account_id, "accountId"),
            user_id=auth.user_id,
            credentials=credentials,
        )
    if action == "status":
        return await social_connect.get_connection_status(
            db,
            user_id=auth.user_id,
            platform=_require(request.platform, "platform"),
        )
    raise InvalidActionError()


@router.post("/social-connect")
async def social_connect_endpoint(
    request: SocialConnectRequest,
    auth: Optional[AuthContext] = Depends(get_optional_auth_context),
    db: AsyncSession = Depends(get_db),
    http_client: httpx.AsyncClient = Depends(get_provider_http_client),
    credentials: ProviderCredentials = Depends(get_provider_credentials),
    nonce_store: StateNonceStore = Depends(get_state_nonce_store),
):
    """Route a connector action (init/callback/refresh/disconnect/sync/status)."""
    try:
        return await dispatch_action(
            request,
            auth=auth,
            db=db,
            http_client=http_client,
            credentials=credentials,
            nonce_store=nonce_store,
        )
    except ConnectorError:
        raise
    except Exception as exc:
        logger.exception("social-connect %s failed: %s", request.action, exc)
        raise InternalServerError() from exc
