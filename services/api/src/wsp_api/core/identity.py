"""身份提供方：令牌校验与签发。"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from functools import lru_cache
import logging
import re
from typing import Any, Protocol
from uuid import uuid4

import jwt
from jwt import PyJWKClient, PyJWTError

from wsp_api.core.config import Settings, get_settings

logger = logging.getLogger("wsp_api.identity")


class IdentityProviderError(Exception):
    """身份提供方无法完成校验（令牌非法、密钥集合不可达等）。"""


@dataclass(frozen=True)
class VerifiedIdentity:
    """校验通过的外部身份。"""

    # 主体标识（sub），与本地账号主键一致。
    subject: str
    email: str | None = None
    name: str | None = None
    # 原始声明集。
    claims: dict[str, Any] = field(default_factory=dict)


class IdentityProvider(Protocol):
    """身份提供方接口。

    `verify` 返回 None 表示令牌不对应任何身份；
    校验过程失败时抛出 IdentityProviderError。
    """

    def verify(self, token: str) -> VerifiedIdentity | None: ...


@lru_cache
def _get_jwks_client(jwks_url: str, timeout: int) -> PyJWKClient:
    """缓存密钥集合客户端，减少重复网络开销。"""
    return PyJWKClient(jwks_url, timeout=timeout)


class JwtIdentityProvider:
    """基于 JWT 的身份提供方。

    配置了 `auth_jwks_url` 时通过密钥集合远程取公钥验签，
    否则使用对称密钥本地验签。两种方式对调用方表现一致。
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def _signing_key(self, token: str) -> Any:
        if self.settings.auth_jwks_url:
            client = _get_jwks_client(self.settings.auth_jwks_url, self.settings.auth_jwks_timeout_seconds)
            return client.get_signing_key_from_jwt(token).key
        return self.settings.auth_jwt_secret

    def decode(self, token: str) -> dict[str, Any]:
        """按配置解码并校验令牌。"""
        settings = self.settings
        options = {"verify_signature": True, "verify_aud": bool(settings.auth_jwt_audience)}
        try:
            return jwt.decode(
                token,
                key=self._signing_key(token),
                algorithms=settings.auth_algorithms,
                issuer=settings.auth_jwt_issuer,
                audience=settings.auth_jwt_audience,
                leeway=settings.auth_jwt_leeway_seconds,
                options=options,
            )
        except PyJWTError as exc:
            logger.info("token verification failed reason=%s", exc.__class__.__name__)
            raise IdentityProviderError(str(exc)) from exc

    def verify(self, token: str) -> VerifiedIdentity | None:
        claims = self.decode(token)
        subject = str(claims.get("sub") or "").strip()
        if not subject:
            return None

        email = claims.get("email")
        name = claims.get("name") or claims.get("preferred_username")
        return VerifiedIdentity(
            subject=subject,
            email=email if isinstance(email, str) else None,
            name=name if isinstance(name, str) else None,
            claims=claims,
        )

    @property
    def can_issue_tokens(self) -> bool:
        """配置了远程密钥集合时本服务不签发令牌。"""
        return not self.settings.auth_jwks_url

    def issue_access_token(
        self,
        *,
        subject: str,
        email: str | None = None,
        name: str | None = None,
    ) -> tuple[str, datetime]:
        """签发访问令牌（仅对称密钥模式可用）。"""
        settings = self.settings
        if not self.can_issue_tokens:
            raise IdentityProviderError("token issuing is disabled when a remote key set is configured")

        now = datetime.now(timezone.utc)
        expires_at = now + timedelta(seconds=settings.auth_access_token_ttl_seconds)
        claims: dict[str, Any] = {
            "sub": subject,
            "iat": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
            "jti": str(uuid4()),
        }
        if email:
            claims["email"] = email
        if name:
            claims["name"] = name
        if settings.auth_jwt_issuer:
            claims["iss"] = settings.auth_jwt_issuer
        if settings.auth_jwt_audience:
            claims["aud"] = settings.auth_jwt_audience

        token = jwt.encode(claims, settings.auth_jwt_secret, algorithm=settings.auth_algorithms[0])
        return token, expires_at


def extract_bearer_token(authorization: str | None) -> str | None:
    """从 Authorization 头中提取 Bearer token，兼容重复头被逗号拼接的场景。"""
    if not authorization:
        return None
    tokens = [token.strip() for token in re.findall(r"Bearer\s+([^,\s]+)", authorization, flags=re.IGNORECASE)]
    tokens = [token for token in tokens if token]
    if not tokens:
        return None
    return tokens[-1]
