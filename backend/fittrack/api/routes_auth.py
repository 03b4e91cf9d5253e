# fittrack/api/routes_auth.py
# GitHub login (authlib). The session only ever holds the local user id.

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from authlib.integrations.starlette_client import OAuth, OAuthError
from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse

from fittrack.core.clock import Clock
from fittrack.core.config import settings
from fittrack.core.deps import SESSION_KEY, current_user, get_clock, require_auth
from fittrack.core.errors import Internal
from fittrack.core.responses import error_response, success
from fittrack.db.init import get_store
from fittrack.db.store import EntityStore
from fittrack.services.users import find_or_create_github_user

log = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

FAILED_URL = "/auth/login-failed"

oauth = OAuth()
oauth.register(
    name="github",
    client_id=settings.GITHUB_CLIENT_ID,
    client_secret=settings.GITHUB_CLIENT_SECRET,
    access_token_url="https://github.com/login/oauth/access_token",
    authorize_url="https://github.com/login/oauth/authorize",
    api_base_url="https://api.github.com/",
    client_kwargs={"scope": "user:email"},
)

if not settings.GITHUB_CLIENT_ID or not settings.GITHUB_CLIENT_SECRET:
    log.warning("GitHub OAuth credentials not set; /auth/github will fail")


def _primary_email(emails: Any) -> Optional[str]:
    if not isinstance(emails, list):
        return None
    for e in emails:
        if e.get("primary") and e.get("verified"):
            return e.get("email")
    for e in emails:
        if e.get("verified"):
            return e.get("email")
    return None


async def github_identity(request: Request) -> Optional[Dict[str, Any]]:
    """
    Finish the OAuth handshake and return {id, displayName, email, username, avatarUrl},
    or None when GitHub refused or the state check failed.
    """
    try:
        token = await oauth.github.authorize_access_token(request)
        profile = (await oauth.github.get("user", token=token)).json()
        email = profile.get("email")
        if not email:
            emails = (await oauth.github.get("user/emails", token=token)).json()
            email = _primary_email(emails)
    except OAuthError as e:
        log.warning("github oauth failed: %s", e.error)
        return None

    return {
        "id": profile["id"],
        "displayName": profile.get("name"),
        "email": email,
        "username": profile.get("login"),
        "avatarUrl": profile.get("avatar_url"),
    }


@router.get("/github")
async def github_login(request: Request):
    if not settings.GITHUB_CLIENT_ID:
        raise Internal("GitHub OAuth is not configured")
    callback_url = settings.GITHUB_CALLBACK_URL or str(request.url_for("github_callback"))
    log.info("redirecting to github, callback=%s", callback_url)
    return await oauth.github.authorize_redirect(request, callback_url)


@router.get("/github/callback", name="github_callback")
async def github_callback(
    request: Request,
    identity: Optional[Dict[str, Any]] = Depends(github_identity),
    store: EntityStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
):
    if identity is None:
        return RedirectResponse(FAILED_URL, status_code=302)

    user = await find_or_create_github_user(store, identity, clock)
    request.session[SESSION_KEY] = str(user["_id"])
    log.info("github login ok user=%s username=%s", user["_id"], user.get("username"))

    return success(message="Authentication successful", user={
        "id": str(user["_id"]),
        "name": user.get("name"),
        "email": user.get("email"),
        "username": user.get("username"),
    })


@router.get("/me")
async def me(user: Dict[str, Any] = Depends(require_auth)):
    return success({
        "id": str(user["_id"]),
        "name": user.get("name"),
        "email": user.get("email"),
        "username": user.get("username"),
        "profileCompletion": user.get("profileCompletion"),
    }, "User retrieved successfully")


@router.get("/logout")
async def logout(request: Request, user: Optional[Dict[str, Any]] = Depends(current_user)):
    request.session.clear()
    log.info("user logged out user=%s", user["_id"] if user else None)
    return success(message="Logged out successfully")


@router.get("/login-failed")
async def login_failed():
    log.warning("github login failed")
    return error_response(401, "Authentication failed. Please try again.")
