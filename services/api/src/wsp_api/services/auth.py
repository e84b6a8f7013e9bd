"""本地身份提供方：注册、登录与口令哈希。"""

import base64
import binascii
from datetime import datetime, timezone
import hashlib
import hmac
import logging
import secrets

from sqlalchemy import select
from sqlalchemy.orm import Session

from wsp_api.core.config import get_settings
from wsp_api.core.identity import JwtIdentityProvider
from wsp_api.db.session import transaction
from wsp_api.exceptions import HttpErrors
from wsp_api.models.account import Account, AccountCredential
from wsp_api.services import accounts as account_service

logger = logging.getLogger("wsp_api.services.auth")

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"


def hash_password(password: str, *, iterations: int | None = None) -> str:
    """使用 PBKDF2-SHA256 生成口令哈希。"""
    rounds = iterations or get_settings().auth_password_hash_iterations
    salt = secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)
    salt_b64 = base64.b64encode(salt).decode("ascii")
    digest_b64 = base64.b64encode(digest).decode("ascii")
    return f"pbkdf2_sha256${rounds}${salt_b64}${digest_b64}"


def verify_password(password: str, password_hash: str) -> bool:
    """校验口令是否匹配。"""
    try:
        algorithm, iterations_text, salt_b64, expected_digest_b64 = password_hash.split("$", 3)
        if algorithm != "pbkdf2_sha256":
            return False
        iterations = int(iterations_text)
        salt = base64.b64decode(salt_b64.encode("ascii"))
        expected_digest = base64.b64decode(expected_digest_b64.encode("ascii"))
    except (ValueError, TypeError, binascii.Error):
        return False

    actual_digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return hmac.compare_digest(actual_digest, expected_digest)


def sign_up(
    db: Session,
    *,
    email: str,
    password: str,
    full_name: str | None = None,
    phone: str | None = None,
    password_iterations: int | None = None,
) -> Account:
    """注册：账号与口令凭据在同一事务内创建，账号 ID 即令牌主体标识。"""
    with transaction(db):
        account = account_service.build_account(db, email=email, full_name=full_name, phone=phone)
        db.add(
            AccountCredential(
                account_id=account.id,
                password_hash=hash_password(password, iterations=password_iterations),
                password_updated_at=datetime.now(timezone.utc),
            )
        )
        db.flush()
    logger.info("account signed up account_id=%s", account.id)
    return account


def sign_in(db: Session, *, email: str, password: str) -> Account:
    """登录：邮箱与口令匹配时返回账号，否则统一返回 401。"""
    row = db.execute(
        select(Account, AccountCredential)
        .join(AccountCredential, AccountCredential.account_id == Account.id)
        .where(Account.email == account_service.normalize_email(email))
    ).first()
    if row is None or not verify_password(password, row[1].password_hash):
        logger.warning("sign in rejected email=%s", account_service.normalize_email(email))
        raise HttpErrors.Unauthorized(INVALID_CREDENTIALS_MESSAGE)
    return row[0]


def issue_session(provider: JwtIdentityProvider, account: Account) -> dict[str, object]:
    """为账号签发访问令牌并组装返回结构。"""
    token, expires_at = provider.issue_access_token(
        subject=str(account.id),
        email=account.email,
        name=account.full_name,
    )
    expires_in = max(0, int((expires_at - datetime.now(timezone.utc)).total_seconds()))
    return {
        "access_token": token,
        "token_type": "bearer",
        "expires_at": expires_at,
        "expires_in": expires_in,
    }
