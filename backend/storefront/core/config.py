"""
应用配置模块

使用 Pydantic Settings 管理所有环境变量和配置。
配置从项目根目录的 .env 文件读取，支持类型验证和默认值。

金流 / 物流的签名密钥不会被业务代码直接读取，
而是通过 ecpay_payment_credentials() / ecpay_logistics_credentials()
转换成不可变的 EcpayCredentials 结构后注入到签名器中。
"""
import secrets  # 用于生成安全的随机字符串
import warnings  # 用于发出警告
from dataclasses import dataclass
from typing import Annotated, Any, Literal  # 类型注解工具

from pydantic import (
    AnyUrl,  # URL 类型验证
    BeforeValidator,  # 字段验证前的转换器
    HttpUrl,  # HTTP URL 类型验证
    PostgresDsn,  # PostgreSQL 连接字符串验证
    computed_field,  # 计算字段装饰器
    model_validator,  # 模型验证器装饰器
)
from pydantic_settings import BaseSettings, SettingsConfigDict  # 配置管理
from typing_extensions import Self  # 用于类型注解中引用自身类型


def parse_cors(v: Any) -> list[str] | str:
    """
    解析逗号分隔的配置值

    支持两种格式：
    1. 逗号分隔的字符串："http://localhost:3000,http://localhost:3001"
    2. 列表格式：["http://localhost:3000", "http://localhost:3001"]

    Raises:
        ValueError: 当输入格式不正确时
    """
    if isinstance(v, str) and not v.startswith("["):
        return [i.strip() for i in v.split(",") if i.strip()]
    elif isinstance(v, list | str):
        return v
    raise ValueError(v)


@dataclass(frozen=True)
class EcpayCredentials:
    """
    绿界（ECPay）商户凭证

    金流与物流使用不同的商户号和 HashKey/HashIV，
    因此签名器在构造时显式接收这份结构，而不是从环境变量读取。
    """
    merchant_id: str
    hash_key: str
    hash_iv: str


class Settings(BaseSettings):
    """
    应用配置类

    配置来源优先级：
    1. 环境变量（最高优先级）
    2. .env 文件
    3. 代码中的默认值（最低优先级）
    """
    model_config = SettingsConfigDict(
        # 使用项目根目录的 .env 文件（backend/ 目录的上一级）
        env_file="../.env",
        env_ignore_empty=True,
        extra="ignore",
    )
    API_V1_STR: str = "/api/v1"
    SECRET_KEY: str = secrets.token_urlsafe(32)  # JWT 签名密钥（默认随机生成）
    ACCESS_TOKEN_EXPIRE_DAYS: int = 7  # 登录 cookie / JWT 有效天数
    AUTH_COOKIE_NAME: str = "auth_token"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"

    BACKEND_CORS_ORIGINS: Annotated[
        list[AnyUrl] | str, BeforeValidator(parse_cors)
    ] = []

    # 前端站点（登录、付款完成后跳转的目标）
    CLIENT_ORIGIN: str = "http://localhost:3000"
    # 本服务对外地址（用于拼接绿界回调 URL）
    SERVER_BASE_URL: str = "http://localhost:3001"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def all_cors_origins(self) -> list[str]:
        """CORS 允许的源：配置项 + 前端站点（去除尾部斜杠）"""
        origins = [str(origin).rstrip("/") for origin in self.BACKEND_CORS_ORIGINS]
        client = self.CLIENT_ORIGIN.rstrip("/")
        if client not in origins:
            origins.append(client)
        return origins

    PROJECT_NAME: str = "PLG Storefront"
    SENTRY_DSN: HttpUrl | None = None

    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "plg"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> PostgresDsn:
        return PostgresDsn.build(
            scheme="postgresql+psycopg",
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_SERVER,
            port=self.POSTGRES_PORT,
            path=self.POSTGRES_DB,
        )

    # SMTP 邮件服务器配置（用于发送注册验证码）
    SMTP_TLS: bool = True
    SMTP_SSL: bool = False
    SMTP_PORT: int = 587
    SMTP_HOST: str | None = None
    SMTP_USER: str | None = None
    SMTP_PASSWORD: str | None = None
    EMAILS_FROM_EMAIL: str | None = None
    EMAILS_FROM_NAME: str | None = None
    EMAIL_CODE_EXPIRE_MINUTES: int = 5

    @computed_field  # type: ignore[prop-decorator]
    @property
    def emails_enabled(self) -> bool:
        return bool(self.SMTP_HOST and (self.EMAILS_FROM_EMAIL or self.SMTP_USER))

    ADMIN_EMAILS: Annotated[list[str] | str, BeforeValidator(parse_cors)] = []

    # Redis（后台对账任务的分布式锁）
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str | None = None

    # Google OAuth
    GOOGLE_CLIENT_ID: str | None = None
    GOOGLE_CLIENT_SECRET: str | None = None
    GOOGLE_REDIRECT_URI: str | None = None

    # 绿界金流（默认值为绿界公开的测试商户）
    ECPAY_PAYMENT_URL: str = "https://payment-stage.ecpay.com.tw/Cashier/AioCheckOut/V5"
    ECPAY_MERCHANT_ID: str = "2000132"
    ECPAY_HASH_KEY: str = "5294y06JbISpM5x9"
    ECPAY_HASH_IV: str = "v77hoKGq4kWxNNIS"

    # 绿界物流（C2C 测试商户）
    ECPAY_LOGISTICS_MERCHANT_ID: str = "2000933"
    ECPAY_LOGISTICS_HASH_KEY: str = "XBERn1YOvpM9nfZc"
    ECPAY_LOGISTICS_HASH_IV: str = "h1ONHk4P4yqbl5LK"
    ECPAY_LOGISTICS_CREATE_URL: str = "https://logistics-stage.ecpay.com.tw/Express/Create"
    ECPAY_LOGISTICS_MAP_URL: str = "https://logistics-stage.ecpay.com.tw/Express/map"
    ECPAY_LOGISTICS_SENDER_NAME: str = "PLG寄件"
    ECPAY_LOGISTICS_SENDER_CELLPHONE: str = "0911222333"
    STORE_SELECTION_TTL_MINUTES: int = 30

    # Shopify
    SHOPIFY_STORE_DOMAIN: str | None = None
    SHOPIFY_ACCESS_TOKEN: str | None = None
    SHOPIFY_API_VERSION: str = "2024-04"
    SHOPIFY_STOREFRONT_ACCESS_TOKEN: str | None = None
    SHOPIFY_STOREFRONT_VERSION: str = "2024-04"
    SHOPIFY_WEBHOOK_SECRET: str = ""

    # 付款回调处理的租约时间：超过该时间仍未完成的处理视为已崩溃
    PAYMENT_CLAIM_LEASE_SECONDS: int = 120
    RECONCILE_INTERVAL_MINUTES: int = 10

    def ecpay_payment_credentials(self) -> EcpayCredentials:
        return EcpayCredentials(
            merchant_id=self.ECPAY_MERCHANT_ID,
            hash_key=self.ECPAY_HASH_KEY,
            hash_iv=self.ECPAY_HASH_IV,
        )

    def ecpay_logistics_credentials(self) -> EcpayCredentials:
        return EcpayCredentials(
            merchant_id=self.ECPAY_LOGISTICS_MERCHANT_ID,
            hash_key=self.ECPAY_LOGISTICS_HASH_KEY,
            hash_iv=self.ECPAY_LOGISTICS_HASH_IV,
        )

    def _check_default_secret(self, var_name: str, value: str | None) -> None:
        """
        检查敏感配置是否使用了默认值

        本地环境只警告，其他环境直接报错，强制修改。
        """
        if value == "changethis":
            message = (
                f'The value of {var_name} is "changethis", '
                "for security, please change it, at least for deployments."
            )
            if self.ENVIRONMENT == "local":
                warnings.warn(message, stacklevel=1)
            else:
                raise ValueError(message)

    @model_validator(mode="after")
    def _enforce_non_default_secrets(self) -> Self:
        self._check_default_secret("SECRET_KEY", self.SECRET_KEY)
        self._check_default_secret("POSTGRES_PASSWORD", self.POSTGRES_PASSWORD)
        self._check_default_secret("ECPAY_HASH_KEY", self.ECPAY_HASH_KEY)
        return self


# 创建全局配置实例，整个应用共享
settings = Settings()  # type: ignore
