"""路由权限注册表与授权判定。

职责:
1. 以路由模板（如 `/workspaces/{id}`）为键，声明是否需要认证及各方法的角色要求。
2. 应用启动时对照实际路由表校验注册表完整性，缺项即拒绝启动。
3. 提供无 I/O 的授权判定函数，便于单元测试。
"""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
import logging
import re
from typing import Any

from fastapi.routing import APIRoute
from starlette.routing import BaseRoute

logger = logging.getLogger("wsp_api.permissions")


class RequirementKind(StrEnum):
    """角色要求类型。"""

    ANY = "any"  # 任意已认证调用方。
    ROLES = "roles"  # 工作空间角色集合。
    OWNER = "owner"  # 调用方必须是路径参数标识的资源本人。
    SUPER = "super"  # 全局超级管理员。


class Claim(StrEnum):
    """调用方持有的声明。"""

    ACCOUNT = "account"  # 已解析出本地账号的调用方均持有。
    USER = "user"  # 当前工作空间普通成员。
    ADMIN = "admin"  # 当前工作空间管理员。
    SUPER = "super"  # 全局超级管理员。


WORKSPACE_MEMBER_CLAIMS = frozenset({Claim.USER, Claim.ADMIN})
# 资源归属判定时参与比对的路径参数名。
OWNER_PARAM_NAMES = ("id", "user_id")


@dataclass(frozen=True)
class RoleRequirement:
    """单个方法的角色要求。"""

    kind: RequirementKind
    roles: frozenset[str] = frozenset()
    # 仅对 ROLES 生效：成员本人访问自身资源时放行。
    owner_fallback: bool = False

    @classmethod
    def any(cls) -> "RoleRequirement":
        return cls(RequirementKind.ANY)

    @classmethod
    def role(cls, *roles: str, owner_fallback: bool = False) -> "RoleRequirement":
        if not roles:
            raise ValueError("role requirement needs at least one role")
        return cls(RequirementKind.ROLES, frozenset(roles), owner_fallback)

    @classmethod
    def owner(cls) -> "RoleRequirement":
        return cls(RequirementKind.OWNER)

    @classmethod
    def super_admin(cls) -> "RoleRequirement":
        return cls(RequirementKind.SUPER)


ANY = RoleRequirement.any()
OWNER = RoleRequirement.owner()
SUPER = RoleRequirement.super_admin()
MEMBER = RoleRequirement.role(Claim.ADMIN, Claim.USER)
WORKSPACE_ADMIN = RoleRequirement.role(Claim.ADMIN)


@dataclass(frozen=True)
class PermissionDescriptor:
    """单条路由的权限描述。"""

    authenticated: bool
    method_roles: Mapping[str, RoleRequirement] = field(default_factory=dict)
    # 标识工作空间的路径参数名，设置后要求 x-workspace-id 与之一致。
    workspace_param: str | None = None
    # 是否在授权后校验账号生命周期状态。
    check_status: bool = True

    def requirement_for(self, method: str) -> RoleRequirement | None:
        return self.method_roles.get(method.upper())


def public(*methods: str) -> PermissionDescriptor:
    """无需认证的路由。"""
    return PermissionDescriptor(
        authenticated=False,
        method_roles={method.upper(): ANY for method in methods},
        check_status=False,
    )


def protected(
    method_roles: Mapping[str, RoleRequirement],
    *,
    workspace_param: str | None = None,
    check_status: bool = True,
) -> PermissionDescriptor:
    """需要认证的路由。"""
    return PermissionDescriptor(
        authenticated=True,
        method_roles={method.upper(): requirement for method, requirement in method_roles.items()},
        workspace_param=workspace_param,
        check_status=check_status,
    )


PERMISSIONS: dict[str, PermissionDescriptor] = {
    "/health/live": public("GET"),
    "/health/ready": public("GET"),
    "/login": public("POST"),
    "/signup": public("POST"),
    "/me": protected({"GET": ANY}),
    "/accounts/{id}": protected({"GET": OWNER, "PATCH": OWNER}),
    "/workspaces": protected({"GET": ANY, "POST": ANY}),
    "/workspaces/{id}": protected(
        {"GET": MEMBER, "PATCH": WORKSPACE_ADMIN, "DELETE": WORKSPACE_ADMIN},
        workspace_param="id",
    ),
    "/workspaces/{id}/profile": protected({"PATCH": MEMBER}, workspace_param="id"),
    "/workspaces/{id}/members": protected({"GET": MEMBER, "POST": WORKSPACE_ADMIN}, workspace_param="id"),
    "/workspaces/{id}/members/{user_id}": protected(
        {
            "PUT": WORKSPACE_ADMIN,
            # 成员可自行退出工作空间。
            "DELETE": RoleRequirement.role(Claim.ADMIN, owner_fallback=True),
        },
        workspace_param="id",
    ),
    "/admin/accounts": protected({"GET": SUPER, "POST": SUPER}),
    "/admin/accounts/{id}/role": protected({"PUT": SUPER}),
    "/admin/accounts/{id}/status": protected({"PUT": SUPER}),
    "/admin/workspaces": protected({"GET": SUPER, "POST": SUPER}),
    "/admin/workspaces/{id}": protected({"DELETE": SUPER}),
    "/admin/memberships": protected({"GET": SUPER}),
    "/admin/audit-logs": protected({"GET": SUPER}),
    "/admin/audit-logs/stats": protected({"GET": SUPER}),
}


class PermissionRegistryError(RuntimeError):
    """注册表与路由表不一致，应用不得启动。"""

    def __init__(self, missing: list[tuple[str, str]], *, reason: str | None = None):
        self.missing = missing
        if reason is None:
            listed = ", ".join(f"{method} {key}" for key, method in missing)
            reason = f"There are routes without permissions set: {listed}"
        super().__init__(reason)


_COLON_PARAM = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")


def normalize_route_template(template: str) -> str:
    """统一路由模板写法：`/users/:id` 与 `/users/{id}` 视为同一键。"""
    normalized = _COLON_PARAM.sub(r"{\1}", template.strip())
    if len(normalized) > 1:
        normalized = normalized.rstrip("/")
    return normalized or "/"


def route_key(path: str, prefix: str = "") -> str:
    """由路由器匹配到的路径模板生成注册表键（去掉统一前缀）。"""
    if prefix and path.startswith(prefix):
        path = path[len(prefix):]
    return normalize_route_template(path or "/")


class PermissionRegistry:
    """只读权限注册表。"""

    def __init__(self, table: Mapping[str, PermissionDescriptor]):
        self._table = {normalize_route_template(key): descriptor for key, descriptor in table.items()}

    def lookup(self, key: str) -> PermissionDescriptor | None:
        return self._table.get(normalize_route_template(key))

    def requirement_for(self, key: str, method: str) -> RoleRequirement | None:
        descriptor = self.lookup(key)
        if descriptor is None:
            return None
        return descriptor.requirement_for(method)

    def missing_entries(self, routes: Iterable[tuple[str, str]]) -> list[tuple[str, str]]:
        """返回没有权限声明的 (路由键, 方法) 列表。"""
        missing: list[tuple[str, str]] = []
        for key, method in routes:
            descriptor = self.lookup(key)
            if descriptor is None or descriptor.requirement_for(method) is None:
                missing.append((normalize_route_template(key), method.upper()))
        return missing

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and normalize_route_template(key) in self._table

    def __len__(self) -> int:
        return len(self._table)


def iter_api_routes(routes: Iterable[BaseRoute], prefix: str = "") -> Iterator[tuple[str, set[str]]]:
    """展开应用路由表，产出业务路由的 (完整路径, 方法集合)。

    较新的 FastAPI 把 `include_router` 挂载的子路由器作为单个条目保存，
    其前缀记在挂载上下文里，这里递归展开并拼接前缀。
    """
    for route in routes:
        if isinstance(route, APIRoute):
            yield prefix + route.path, set(route.methods or ())
            continue
        included = getattr(route, "original_router", None)
        if included is not None:
            context = getattr(route, "include_context", None)
            yield from iter_api_routes(included.routes, prefix + (getattr(context, "prefix", "") or ""))


def build_permission_registry(
    routes: Iterable[BaseRoute],
    *,
    prefix: str = "",
    table: Mapping[str, PermissionDescriptor] = PERMISSIONS,
) -> PermissionRegistry:
    """构建注册表并对照应用路由做完整性校验。

    仅校验业务路由（APIRoute），文档类路由不参与。一条业务路由都没找到时同样拒绝启动。
    """
    registry = PermissionRegistry(table)
    pairs = [
        (route_key(path, prefix), method)
        for path, methods in iter_api_routes(routes)
        for method in sorted(methods)
    ]
    if not pairs:
        error = PermissionRegistryError([], reason="No application routes found to validate")
        logger.error("%s", error)
        raise error
    missing = registry.missing_entries(pairs)
    if missing:
        error = PermissionRegistryError(missing)
        logger.error("%s", error)
        raise error
    logger.info("permission registry validated routes=%d entries=%d", len(pairs), len(registry))
    return registry


def is_resource_owner(caller_id: Any, params: Mapping[str, Any]) -> bool:
    """路径参数 `id` / `user_id` 任一等于调用方 ID 即视为本人资源。"""
    if not caller_id:
        return False
    caller = str(caller_id).lower()
    return any(str(params.get(name) or "").lower() == caller for name in OWNER_PARAM_NAMES)


def is_authorized(
    requirement: RoleRequirement | None,
    *,
    claims: Iterable[str] | None,
    caller_id: Any,
    params: Mapping[str, Any] | None = None,
) -> bool:
    """授权判定（按顺序，首个命中的规则生效）。

    1. 路由未声明要求 -> 放行。
    2. 调用方缺少身份或声明集合为空 -> 拒绝。
    3. 持有全局 super 声明 -> 放行。
    4. OWNER -> 路径参数等于调用方 ID 时放行。
    5. ROLES -> 声明与要求有交集时放行；开启 owner_fallback 时，
       工作空间成员访问本人资源也放行。
    6. ANY -> 放行。
    7. 其余拒绝。
    """
    if requirement is None:
        return True

    claim_set = frozenset(claims or ())
    if not caller_id or not claim_set:
        return False

    if Claim.SUPER in claim_set:
        return True

    path_params = params or {}
    if requirement.kind == RequirementKind.OWNER:
        return is_resource_owner(caller_id, path_params)

    if requirement.kind == RequirementKind.ROLES:
        if claim_set & requirement.roles:
            return True
        return (
            requirement.owner_fallback
            and bool(claim_set & WORKSPACE_MEMBER_CLAIMS)
            and is_resource_owner(caller_id, path_params)
        )

    if requirement.kind == RequirementKind.ANY:
        return True

    return False
