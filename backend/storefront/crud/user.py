"""用户与邮箱验证码 CRUD 操作"""
from datetime import datetime, timedelta

from sqlmodel import Session, select

from storefront.api.errors import AppError
from storefront.models import EmailVerification, User, as_utc, utc_now


def get_by_email(*, session: Session, email: str) -> User | None:
    """根据邮箱查询用户"""
    return session.exec(select(User).where(User.email == email)).first()


def upsert_email_code(
    *, session: Session, email: str, code: str, ttl_minutes: int
) -> EmailVerification:
    """写入验证码，同一邮箱只保留最新的一条"""
    record = session.get(EmailVerification, email)
    expires_at = utc_now() + timedelta(minutes=ttl_minutes)
    if record is None:
        record = EmailVerification(email=email, code=code, expires_at=expires_at)
    record.code = code
    record.expires_at = expires_at
    record.is_used = False
    session.add(record)
    session.commit()
    session.refresh(record)
    return record


def check_email_code(*, session: Session, email: str, code: str, now: datetime | None = None) -> None:
    """
    校验注册验证码

    Raises:
        AppError: 验证码不存在 / 已使用 / 已过期 / 不一致（均为 400）
    """
    record = session.get(EmailVerification, email)
    if record is None:
        raise AppError(code=400011, message="請先取得驗證碼", status_code=400)
    if record.is_used:
        raise AppError(code=400012, message="驗證碼已使用，請重新取得", status_code=400)
    if as_utc(record.expires_at) < (now or utc_now()):
        raise AppError(code=400013, message="驗證碼已過期", status_code=400)
    if record.code != code:
        raise AppError(code=400014, message="驗證碼錯誤", status_code=400)


def register_with_password(*, session: Session, email: str, password_hash: str) -> User:
    """
    以邮箱 + 密码完成注册

    邮箱已存在但尚未验证（例如之前只发过验证码）时升级该账号；
    已验证的邮箱返回 409。验证码在同一事务中标记为已使用。
    """
    user = get_by_email(session=session, email=email)
    if user is not None and user.email_verified:
        raise AppError(code=409001, message="此 Email 已註冊", status_code=409)
    if user is None:
        user = User(email=email)
    user.password_hash = password_hash
    user.email_verified = True
    session.add(user)

    record = session.get(EmailVerification, email)
    if record is not None:
        record.is_used = True
        session.add(record)

    session.commit()
    session.refresh(user)
    return user


def get_verified_by_email(*, session: Session, email: str) -> User | None:
    stmt = select(User).where(User.email == email).where(User.email_verified.is_(True))
    return session.exec(stmt).first()


def get_or_create_verified_user(*, session: Session, email: str) -> User:
    """Google 登录：邮箱已由 Google 验证，不存在则直接创建"""
    user = get_by_email(session=session, email=email)
    if user is not None:
        return user
    user = User(email=email, email_verified=True)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user
