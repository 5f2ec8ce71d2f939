"""
用户模型模块

定义用户与邮箱验证码相关的数据库模型。
"""
from datetime import datetime

from sqlalchemy import Column, DateTime, String
from sqlmodel import Field, SQLModel

from .base import utc_now


class User(SQLModel, table=True):
    """
    用户模型

    支持两种登录方式：
    - 邮箱 + 密码（需要先通过邮箱验证码完成注册）
    - Google OAuth（邮箱由 Google 验证，password_hash 为空）

    字段说明：
    - email: 邮箱（唯一）
    - password_hash: bcrypt 密码哈希（Google 用户为空）
    - email_verified: 邮箱是否已验证；未验证的账号不能用密码登录
    """
    __tablename__ = "users"
    id: int | None = Field(default=None, primary_key=True)
    email: str | None = Field(
        default=None,
        sa_column=Column(String(255), unique=True, index=True, nullable=True),
    )
    password_hash: str | None = Field(default=None, max_length=255)
    email_verified: bool = Field(default=False)

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class EmailVerification(SQLModel, table=True):
    """
    邮箱验证码

    每个邮箱只保留最新一条验证码，重新发送时覆盖。
    """
    __tablename__ = "email_verifications"
    email: str = Field(sa_column=Column(String(255), primary_key=True))
    code: str = Field(max_length=6)
    expires_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    is_used: bool = Field(default=False)
