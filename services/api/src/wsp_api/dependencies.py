"""请求认证与授权依赖链。

职责:
1. 按权限注册表判定路由是否需要认证，并通过身份提供方校验访问令牌。
2. 解析调用方声明（account / super / 工作空间角色），执行授权判定。
3. 按需校验账号生命周期状态。
4. 生成后续路由统一使用的不可变 RequestContext。

FastAPI 在单个请求内缓存依赖结果，因此各阶段只执行一次且严格按序执行：
认证 -> 授权 -> 状态校验。
"""

from collections.abc import Callable
from dataclasses import dataclass, replace
import logging
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.orm import Session

from wsp_api.core.identity import IdentityProvider, IdentityProviderError, VerifiedIdentity, extract_bearer_token
from wsp_api.core.permissions import Claim, PermissionDescriptor, PermissionRegistry, is_authorized, route_key
from wsp_api.core.rate_limit import InMemoryRateLimiter, RateLimitTier
from wsp_api.db.session import get_db
from wsp_api.exceptions import HttpErrors
from wsp_api.models.account import Account
from wsp_api.models.enums import AccountStatus
from wsp_api.models.workspace import Membership
from wsp_api.utils.request import client_ip

logger = logging.getLogger("wsp_api.auth")

bearer_scheme = HTTPBearer(auto_error=False)

WORKSPACE_HEADER = "x-workspace-id"


@dataclass(frozen=True)
class RequestContext:
    """请求上下文。

    认证阶段创建，授权阶段以副本形式补充声明，之后只读。
    """

    # 当前请求账号 ID（即令牌主体标识）。
    account_id: UUID
    # x-workspace-id 请求头，缺省为空串。
    workspace_id: str
    # 身份提供方校验通过的身份。
    identity: VerifiedIdentity
    # 授权阶段解析出的声明集合。
    claims: frozenset[str] = frozenset()


def get_permission_registry(request: Request) -> PermissionRegistry:
    return request.app.state.permission_registry


def get_identity_provider(request: Request) -> IdentityProvider:
    return request.app.state.identity_provider


def get_route_key(request: Request) -> str:
    """取路由器匹配到的路径模板，而不是原始 URL。"""
    route = request.scope.get("route")
    path = getattr(route, "path", None) or request.url.path
    return route_key(path, request.app.state.api_prefix)


def get_permission_descriptor(
    request: Request,
    registry: PermissionRegistry = Depends(get_permission_registry),
) -> PermissionDescriptor:
    """读取当前路由的权限描述；未登记的路由一律拒绝。"""
    key = get_route_key(request)
    descriptor = registry.lookup(key)
    if descriptor is None:
        logger.error("route without permission entry method=%s route=%s", request.method, key)
        raise HttpErrors.Forbidden()
    return descriptor


def authenticate(
    request: Request,
    descriptor: PermissionDescriptor = Depends(get_permission_descriptor),
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    provider: IdentityProvider = Depends(get_identity_provider),
) -> RequestContext | None:
    """认证阶段：公开路由直接放行，返回 None。"""
    if not descriptor.authenticated:
        return None

    authorization = None
    if credentials is not None and credentials.credentials:
        authorization = f"{credentials.scheme} {credentials.credentials}"
    token = extract_bearer_token(authorization)
    if not token:
        raise HttpErrors.Unauthorized()

    try:
        identity = provider.verify(token)
    except IdentityProviderError as exc:
        raise HttpErrors.InvalidToken() from exc
    if identity is None:
        raise HttpErrors.Unauthorized()

    try:
        account_id = UUID(identity.subject)
    except ValueError as exc:
        raise HttpErrors.InvalidToken("Token subject is not a valid account id") from exc

    return RequestContext(
        account_id=account_id,
        workspace_id=request.headers.get(WORKSPACE_HEADER, "").strip(),
        identity=identity,
    )


def resolve_claims(db: Session, *, account_id: UUID, workspace_id: str) -> frozenset[str]:
    """解析调用方声明。

    - 每个已存在账号都持有 account。
    - is_super_admin 为真时持有 super。
    - x-workspace-id 指向的工作空间内成员角色（admin / user）。
    """
    account = db.get(Account, account_id)
    if account is None:
        raise HttpErrors.Unauthorized("Account not found")

    claims: set[str] = {Claim.ACCOUNT}
    if account.is_super_admin:
        claims.add(Claim.SUPER)

    if workspace_id:
        try:
            workspace_uuid = UUID(workspace_id)
        except ValueError as exc:
            raise HttpErrors.ValidationFailed(f"Invalid {WORKSPACE_HEADER} header") from exc
        role = db.execute(
            select(Membership.role)
            .where(Membership.workspace_id == workspace_uuid)
            .where(Membership.account_id == account_id)
        ).scalar_one_or_none()
        if role:
            claims.add(str(role))

    return frozenset(claims)


def authorize(
    request: Request,
    ctx: RequestContext | None = Depends(authenticate),
    descriptor: PermissionDescriptor = Depends(get_permission_descriptor),
    db: Session = Depends(get_db),
) -> RequestContext | None:
    """授权阶段：解析声明并执行授权判定。"""
    if ctx is None:
        return None

    params = dict(request.path_params)
    if descriptor.workspace_param:
        if not ctx.workspace_id:
            raise HttpErrors.MissingParameter(WORKSPACE_HEADER)
        path_workspace = str(params.get(descriptor.workspace_param) or "")
        if ctx.workspace_id.lower() != path_workspace.lower():
            logger.warning(
                "workspace header mismatch account_id=%s header=%s path=%s",
                ctx.account_id,
                ctx.workspace_id,
                path_workspace,
            )
            raise HttpErrors.Forbidden("Workspace header does not match the requested workspace")

    claims = resolve_claims(db, account_id=ctx.account_id, workspace_id=ctx.workspace_id)
    requirement = descriptor.requirement_for(request.method)
    if not is_authorized(requirement, claims=claims, caller_id=ctx.account_id, params=params):
        logger.warning(
            "access denied account_id=%s method=%s route=%s claims=%s",
            ctx.account_id,
            request.method,
            get_route_key(request),
            sorted(claims),
        )
        raise HttpErrors.Forbidden()

    return replace(ctx, claims=claims)


def require_active_account(
    ctx: RequestContext | None = Depends(authorize),
    descriptor: PermissionDescriptor = Depends(get_permission_descriptor),
    db: Session = Depends(get_db),
) -> RequestContext | None:
    """账号状态校验：非 active 账号禁止访问受保护接口。"""
    if ctx is None or not descriptor.check_status:
        return ctx

    account = db.get(Account, ctx.account_id)
    if account is None:
        raise HttpErrors.Unauthorized("Account not found")
    if account.status != AccountStatus.ACTIVE:
        logger.warning("inactive account rejected account_id=%s status=%s", ctx.account_id, account.status)
        raise HttpErrors.AccountInactive(str(account.status))
    return ctx


def get_request_context(ctx: RequestContext | None = Depends(require_active_account)) -> RequestContext:
    """业务路由使用的上下文，保证调用方已通过认证。"""
    if ctx is None:
        raise HttpErrors.Unauthorized()
    return ctx


def rate_limit(tier: RateLimitTier) -> Callable[[Request], None]:
    """按档位构造限流依赖，以客户端 IP 计数。"""

    def _dep(request: Request) -> None:
        limiters: dict[RateLimitTier, InMemoryRateLimiter] = request.app.state.rate_limiters
        key = client_ip(request) or "anonymous"
        if not limiters[tier].allow(key):
            logger.warning("rate limit exceeded tier=%s client=%s path=%s", tier, key, request.url.path)
            raise HttpErrors.TooManyRequests()

    return _dep


# 认证 -> 授权 -> 状态校验，挂在路由器级别。
ACCESS_PIPELINE = [Depends(require_active_account)]
