"""
认证路由模块

邮箱 + 密码注册（需先通过邮箱验证码）与登录。
登录成功后把 JWT 写入 httpOnly cookie（auth_token），之后的请求都从 cookie 认证。
"""
from __future__ import annotations

import logging
import re
import secrets
import smtplib
from datetime import timedelta

from fastapi import APIRouter, Response

from storefront import crud
from storefront.api.deps import SessionDep, TokenPayloadDep
from storefront.api.errors import AppError
from storefront.api.schemas import (
    ApiEnvelope,
    LoginEmailRequest,
    RegisterEmailRequest,
    SendEmailCodeRequest,
)
from storefront.core import security
from storefront.core.config import settings
from storefront.integrations.email import send_verification_email
from storefront.models import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

EMAIL_RE = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")
CODE_RE = re.compile(r"^\d{6}$")
MIN_PASSWORD_LENGTH = 6


def _check_email(email: str) -> str:
    email = (email or "").strip()
    if not EMAIL_RE.match(email):
        raise AppError(code=400001, message="請輸入正確的 Email", status_code=400)
    return email


def set_auth_cookie(response: Response, user: User) -> None:
    """签发 JWT 并写入登录 cookie"""
    expires = timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS)
    token = security.create_access_token(user.id, expires_delta=expires, email=user.email)
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        max_age=int(expires.total_seconds()),
        httponly=True,
        samesite="lax",
        secure=settings.ENVIRONMENT != "local",
    )


@router.get("/me", response_model=ApiEnvelope)
def me(payload: TokenPayloadDep) -> ApiEnvelope:
    """
    当前登录信息

    请求路径: GET /api/v1/auth/me
    """
    return ApiEnvelope(
        data={
            "userId": int(payload.sub) if payload.sub and payload.sub.isdigit() else payload.sub,
            "email": payload.email,
            "isAdmin": security.is_admin_email(payload.email),
        }
    )


@router.post("/send-email-code", response_model=ApiEnvelope)
def send_email_code(session: SessionDep, body: SendEmailCodeRequest) -> ApiEnvelope:
    """
    发送注册验证码

    已完成注册的邮箱返回 409；验证码 6 位数字，EMAIL_CODE_EXPIRE_MINUTES 分钟内有效。
    """
    email = _check_email(body.email)
    user = crud.get_user_by_email(session=session, email=email)
    if user is not None and user.email_verified:
        raise AppError(code=409001, message="此 Email 已完成註冊", status_code=409)

    code = f"{secrets.randbelow(900000) + 100000}"
    crud.upsert_email_code(
        session=session, email=email, code=code, ttl_minutes=settings.EMAIL_CODE_EXPIRE_MINUTES
    )
    try:
        send_verification_email(email, code)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Failed to send verification email to %s: %s", email, e)
        raise AppError(code=502501, message="驗證碼寄送失敗", status_code=502)
    return ApiEnvelope(data={"message": "驗證碼已寄出"})


@router.post("/register-email", response_model=ApiEnvelope)
def register_email(
    session: SessionDep, body: RegisterEmailRequest, response: Response
) -> ApiEnvelope:
    """邮箱注册：校验验证码后建立（或升级）账号，并直接登录"""
    email = _check_email(body.email)
    if len(body.password or "") < MIN_PASSWORD_LENGTH:
        raise AppError(code=400002, message="密碼至少需要 6 個字元", status_code=400)
    if not CODE_RE.match(body.verification_code or ""):
        raise AppError(code=400003, message="請輸入 6 位數驗證碼", status_code=400)

    crud.check_email_code(session=session, email=email, code=body.verification_code)
    user = crud.register_with_password(
        session=session, email=email, password_hash=security.get_password_hash(body.password)
    )
    set_auth_cookie(response, user)
    return ApiEnvelope(data={"message": "註冊成功", "userId": user.id})


@router.post("/login-email", response_model=ApiEnvelope)
def login_email(session: SessionDep, body: LoginEmailRequest, response: Response) -> ApiEnvelope:
    """邮箱登录，只允许已验证的账号"""
    email = (body.email or "").strip()
    if not EMAIL_RE.match(email) or not body.password:
        raise AppError(code=400004, message="Email 或密碼格式不正確", status_code=400)

    user = crud.get_verified_by_email(session=session, email=email)
    if user is None or not user.password_hash:
        raise AppError(code=401003, message="帳號不存在或未驗證", status_code=401)
    if not security.verify_password(body.password, user.password_hash):
        raise AppError(code=401004, message="Email 或密碼錯誤", status_code=401)

    set_auth_cookie(response, user)
    return ApiEnvelope(data={"userId": user.id})


@router.post("/logout", response_model=ApiEnvelope)
def logout(response: Response) -> ApiEnvelope:
    response.delete_cookie(
        key=settings.AUTH_COOKIE_NAME,
        httponly=True,
        samesite="lax",
        secure=settings.ENVIRONMENT != "local",
    )
    return ApiEnvelope(data={"message": "已登出"})
