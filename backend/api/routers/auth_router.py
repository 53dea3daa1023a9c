"""Discord credential API routes

After Supabase completes the Discord login, the browser hands the session's
provider tokens to ``POST /api/auth/discord/credential`` once. From then on
the backend owns the token pair and refreshes it; the browser never sees it
again.
"""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from core.dependencies import get_credential_store, get_current_user_id
from core.errors import CredentialNotFound
from services import CredentialStore, DiscordAPIClient
from shared.models.credential import DiscordCredential

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth/discord", tags=["authentication"])


# ============================================
# Request/Response Models
# ============================================


class CredentialCapture(BaseModel):
    access_token: str = Field(min_length=1, repr=False)
    refresh_token: str = Field(min_length=1, repr=False)
    expires_in: int | None = Field(default=None, gt=0)


class CredentialStored(BaseModel):
    stored: bool
    expires_at: datetime


class CredentialStatus(BaseModel):
    connected: bool
    expires_at: datetime | None = None
    expired: bool = False


class DisconnectResponse(BaseModel):
    removed: bool


class ScopesResponse(BaseModel):
    scopes: list[str]
    prompt: str = "consent"


# ============================================
# Endpoints
# ============================================


@router.post("/credential", response_model=CredentialStored)
async def capture_credential(
    body: CredentialCapture,
    user_id: str = Depends(get_current_user_id),
    store: CredentialStore = Depends(get_credential_store),
) -> CredentialStored:
    """Store the Discord token pair issued at login (upsert)"""
    credential = DiscordCredential.issue(
        user_id, body.access_token, body.refresh_token, body.expires_in
    )
    stored = await store.put(credential)
    logger.info(f"Discord credential captured for user {user_id}")
    return CredentialStored(stored=True, expires_at=stored.expires_at)


@router.get("/credential", response_model=CredentialStatus)
async def get_credential_status(
    user_id: str = Depends(get_current_user_id),
    store: CredentialStore = Depends(get_credential_store),
) -> CredentialStatus:
    """Whether a Discord credential is stored; token values are never returned"""
    try:
        credential = await store.get(user_id)
    except CredentialNotFound:
        return CredentialStatus(connected=False)
    return CredentialStatus(
        connected=True,
        expires_at=credential.expires_at,
        expired=credential.is_expired(datetime.now(UTC)),
    )


@router.delete("/credential", response_model=DisconnectResponse)
async def delete_credential(
    user_id: str = Depends(get_current_user_id),
    store: CredentialStore = Depends(get_credential_store),
) -> DisconnectResponse:
    """Forget the stored Discord credential (logout)"""
    removed = await store.delete(user_id)
    return DisconnectResponse(removed=removed)


@router.get("/scopes", response_model=ScopesResponse)
async def get_oauth_scopes() -> ScopesResponse:
    """OAuth scopes the dashboard login must request"""
    return ScopesResponse(scopes=list(DiscordAPIClient.OAUTH_SCOPES))
