"""
邮件发送模块

通过 SMTP 发送注册验证码。未配置 SMTP 时只记录日志，不发送。
"""
import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr

from storefront.core.config import settings

logger = logging.getLogger(__name__)


def build_verification_message(to: str, code: str) -> EmailMessage:
    minutes = settings.EMAIL_CODE_EXPIRE_MINUTES
    sender = settings.EMAILS_FROM_EMAIL or settings.SMTP_USER or ""
    message = EmailMessage()
    message["Subject"] = "PLG 註冊驗證碼"
    message["From"] = formataddr((settings.EMAILS_FROM_NAME or settings.PROJECT_NAME, sender))
    message["To"] = to
    message.set_content(f"您的驗證碼為 {code}，{minutes} 分鐘內有效。")
    message.add_alternative(
        f"<p>您的驗證碼為 <strong>{code}</strong>，{minutes} 分鐘內有效。</p>",
        subtype="html",
    )
    return message


def send_verification_email(to: str, code: str) -> bool:
    """发送验证码邮件，返回是否实际发送"""
    if not settings.emails_enabled:
        logger.warning("SMTP not configured, verification code for %s not sent", to)
        return False

    message = build_verification_message(to, code)
    smtp_cls = smtplib.SMTP_SSL if settings.SMTP_SSL else smtplib.SMTP
    with smtp_cls(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as smtp:
        if settings.SMTP_TLS and not settings.SMTP_SSL:
            smtp.starttls()
        if settings.SMTP_USER and settings.SMTP_PASSWORD:
            smtp.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        smtp.send_message(message)
    logger.info("Verification email sent to %s", to)
    return True
