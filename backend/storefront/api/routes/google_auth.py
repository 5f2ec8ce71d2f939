"""
Google OAuth 登录路由

GET /auth/google           跳转到 Google 授权页
GET /auth/google/callback  授权码换 token、验证 ID token，写入登录 cookie 后跳回前端
"""
from __future__ import annotations

import logging

from fastapi import APIRouter
from fastapi.responses import RedirectResponse

from storefront import crud
from storefront.api.deps import SessionDep
from storefront.api.routes.auth import set_auth_cookie
from storefront.core.config import settings
from storefront.integrations import google_oauth

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth/google", tags=["auth"])


def _client_url(path: str = "") -> str:
    return f"{settings.CLIENT_ORIGIN.rstrip('/')}{path}"


@router.get("")
def google_login() -> RedirectResponse:
    return RedirectResponse(google_oauth.build_authorize_url(), status_code=302)


@router.get("/callback")
def google_callback(session: SessionDep, code: str | None = None) -> RedirectResponse:
    if not code:
        return RedirectResponse(_client_url("/login?error=google"), status_code=302)

    email = google_oauth.fetch_verified_email(code)
    if not email:
        return RedirectResponse(_client_url("/login?error=no-email"), status_code=302)

    user = crud.get_or_create_verified_user(session=session, email=email)
    logger.info("Google login for user %s", user.id)
    response = RedirectResponse(_client_url(), status_code=302)
    set_auth_cookie(response, user)
    return response
