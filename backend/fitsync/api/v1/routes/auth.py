"""
Strava OAuth Routes

Endpoints:
- /auth/login - Redirect to Strava authorization
- /auth/callback - Exchange code, set session cookies
- /auth/logout - Clear session cookies
"""

import logging
import secrets
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from fitsync.api.deps import get_oauth, get_strava_client, get_token_store
from fitsync.config import settings
from fitsync.db.session import get_async_db
from fitsync.features.strava import (
    AthleteRepository,
    CookieTokenStore,
    StravaClient,
    StravaError,
    StravaOAuth,
    persist_token_response,
)

logger = logging.getLogger(__name__)

router = APIRouter()

OAUTH_STATE_COOKIE = "strava_oauth_state"
OAUTH_STATE_MAX_AGE = 10 * 60


def _callback_url(request: Request) -> str:
    return settings.strava_redirect_uri or str(request.url_for("auth_callback"))


def _error_redirect(error: str) -> RedirectResponse:
    return RedirectResponse(url=f"/?error={quote(error)}", status_code=302)


@router.get("/auth/login")
async def login(request: Request, oauth: StravaOAuth = Depends(get_oauth)):
    """Initiate Strava OAuth flow."""
    if not oauth.client_id:
        raise HTTPException(status_code=500, detail="STRAVA_CLIENT_ID not configured")

    # CSRF protection: the callback must echo this value back
    state = secrets.token_urlsafe(32)
    response = RedirectResponse(
        url=oauth.get_authorization_url(_callback_url(request), state=state),
        status_code=302,
    )
    response.set_cookie(
        OAUTH_STATE_COOKIE,
        state,
        max_age=OAUTH_STATE_MAX_AGE,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    return response


@router.get("/auth/callback", name="auth_callback")
async def callback(
    request: Request,
    code: str = Query(None),
    state: str = Query(None),
    error: str = Query(None),
    oauth: StravaOAuth = Depends(get_oauth),
    db: AsyncSession = Depends(get_async_db),
):
    """
    Handle Strava OAuth callback.

    Exchanges the code for tokens, stores them in cookies and
    mirrors the athlete summary that comes with the token response.
    """
    if error:
        logger.warning(f"Strava OAuth error: {error}")
        return _error_redirect(error)

    if not code:
        return _error_redirect("no_code")

    if not oauth.configured:
        return _error_redirect("missing_config")

    expected_state = request.cookies.get(OAUTH_STATE_COOKIE)
    if not state or not expected_state or not secrets.compare_digest(state, expected_state):
        logger.warning("Invalid OAuth state")
        return _error_redirect("invalid_state")

    try:
        token_data = await oauth.exchange_code(code)
    except StravaError as e:
        logger.error(f"Token exchange failed: {e}")
        return _error_redirect(e.message or "token_exchange_failed")

    response = RedirectResponse(url="/", status_code=302)
    response.delete_cookie(OAUTH_STATE_COOKIE)
    store = CookieTokenStore(request, response, secure=settings.is_production)
    try:
        persist_token_response(store, token_data)
    except StravaError as e:
        logger.error(f"Token exchange returned unusable data: {e}")
        return _error_redirect("token_exchange_failed")

    athlete = token_data.get("athlete")
    if athlete and athlete.get("id") is not None:
        await AthleteRepository(db).upsert_athlete(athlete)
        await db.commit()
        logger.info(f"Strava connected: athlete_id={athlete['id']}")

    return response


@router.post("/auth/logout")
async def logout(
    store: CookieTokenStore = Depends(get_token_store),
    client: StravaClient = Depends(get_strava_client),
):
    """Clear all Strava session cookies and cached responses."""
    store.clear()
    client.clear_cache()
    return {"success": True}
