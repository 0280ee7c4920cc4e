"""
FastAPI dependencies.

Process-wide services (HTTP client, request queue, response cache) live
on app.state and are created in the lifespan handler. Everything built
here is per request.
"""

from fastapi import Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from fitsync.config import settings
from fitsync.db.session import get_async_db
from fitsync.features.strava import (
    CookieTokenStore,
    StravaClient,
    StravaOAuth,
    TokenManager,
)
from fitsync.features.strava.sync import SyncService


def get_oauth(request: Request) -> StravaOAuth:
    return StravaOAuth(request.app.state.http_client)


def get_token_store(request: Request, response: Response) -> CookieTokenStore:
    return CookieTokenStore(request, response, secure=settings.is_production)


def get_token_manager(
    store: CookieTokenStore = Depends(get_token_store),
    oauth: StravaOAuth = Depends(get_oauth),
) -> TokenManager:
    return TokenManager(store, oauth)


def get_strava_client(request: Request) -> StravaClient:
    state = request.app.state
    return StravaClient(state.http_client, state.request_queue, state.response_cache)


async def get_authorized_client(
    client: StravaClient = Depends(get_strava_client),
    tokens: TokenManager = Depends(get_token_manager),
) -> StravaClient:
    """Client with a valid access token already set."""
    token = await tokens.get_valid_access_token()
    client.set_access_token(token.access_token)
    return client


def get_sync_service(
    db: AsyncSession = Depends(get_async_db),
    client: StravaClient = Depends(get_authorized_client),
    tokens: TokenManager = Depends(get_token_manager),
) -> SyncService:
    return SyncService(db, client, tokens)
