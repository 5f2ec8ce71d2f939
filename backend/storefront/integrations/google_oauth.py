"""
Google OAuth 集成模块

授权码换取 token 后，用 Google 的 JWKS 验证 ID token（签名、audience、issuer），
只信任验证通过的 email。
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any
from urllib.parse import urlencode

import httpx
import jwt

from storefront.api.errors import AppError
from storefront.core.config import settings

AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
JWKS_URL = "https://www.googleapis.com/oauth2/v3/certs"
ISSUERS = ["https://accounts.google.com", "accounts.google.com"]
SCOPES = ["openid", "profile", "email"]

OAUTH_TIMEOUT_SECONDS = 30


@lru_cache(maxsize=1)
def _jwks_client() -> jwt.PyJWKClient:
    return jwt.PyJWKClient(JWKS_URL)


def _require_config() -> None:
    if not settings.GOOGLE_CLIENT_ID or not settings.GOOGLE_CLIENT_SECRET or not settings.GOOGLE_REDIRECT_URI:
        raise AppError(code=500401, message="Google OAuth 未設定", status_code=500)


def build_authorize_url() -> str:
    _require_config()
    query = {
        "client_id": settings.GOOGLE_CLIENT_ID,
        "redirect_uri": settings.GOOGLE_REDIRECT_URI,
        "response_type": "code",
        "scope": " ".join(SCOPES),
        "access_type": "offline",
    }
    return f"{AUTHORIZE_URL}?{urlencode(query)}"


def exchange_code(code: str) -> dict[str, Any]:
    """用授权码换取 token（包含 id_token）"""
    _require_config()
    try:
        with httpx.Client(timeout=OAUTH_TIMEOUT_SECONDS) as client:
            r = client.post(
                TOKEN_URL,
                data={
                    "code": code,
                    "client_id": settings.GOOGLE_CLIENT_ID,
                    "client_secret": settings.GOOGLE_CLIENT_SECRET,
                    "redirect_uri": settings.GOOGLE_REDIRECT_URI,
                    "grant_type": "authorization_code",
                },
            )
            r.raise_for_status()
            return r.json()
    except httpx.HTTPError as e:
        raise AppError(code=502401, message=f"Google token exchange error: {e}", status_code=502)


def verify_id_token(id_token: str) -> dict[str, Any]:
    """
    验证 Google ID token

    Raises:
        AppError: 签名 / audience / issuer / 过期时间任一不通过
    """
    try:
        signing_key = _jwks_client().get_signing_key_from_jwt(id_token)
        return jwt.decode(
            id_token,
            signing_key.key,
            algorithms=["RS256"],
            audience=settings.GOOGLE_CLIENT_ID,
            issuer=ISSUERS,
        )
    except jwt.PyJWTError as e:
        raise AppError(code=401401, message=f"Invalid Google ID token: {e}", status_code=401)


def fetch_verified_email(code: str) -> str | None:
    """完成授权码流程，返回 Google 账号的 email（没有则返回 None）"""
    tokens = exchange_code(code)
    id_token = tokens.get("id_token")
    if not id_token:
        raise AppError(code=502402, message="Google did not return an id_token", status_code=502)
    claims = verify_id_token(id_token)
    email = claims.get("email")
    return str(email) if email else None
