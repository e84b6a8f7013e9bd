"""领域枚举定义。"""

from enum import StrEnum


class AccountStatus(StrEnum):
    """账号生命周期状态。"""

    ACTIVE = "active"  # 正常可用。
    INACTIVE = "inactive"  # 已停用，禁止访问受保护接口。
    SUSPENDED = "suspended"  # 被管理员封禁。


class MembershipRole(StrEnum):
    """工作空间成员角色。"""

    ADMIN = "admin"  # 工作空间管理员，可管理成员与空间配置。
    USER = "user"  # 普通成员。


class AuditAction(StrEnum):
    """审计动作标识。"""

    ACCOUNT_CREATED = "account_created"
    ACCOUNT_STATUS_UPDATED = "account_status_updated"
    ACCOUNT_ROLE_UPDATED = "account_role_updated"
    ACCOUNT_UPDATED = "account_updated"

    WORKSPACE_CREATED = "workspace_created"
    WORKSPACE_UPDATED = "workspace_updated"
    WORKSPACE_DELETED = "workspace_deleted"

    MEMBER_ADDED = "member_added"
    MEMBER_REMOVED = "member_removed"
    MEMBER_ROLE_UPDATED = "member_role_updated"

    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILED = "login_failed"
    SIGNUP_SUCCESS = "signup_success"


class EntityType(StrEnum):
    """审计实体类型。"""

    ACCOUNT = "account"
    WORKSPACE = "workspace"
    MEMBERSHIP = "membership"
    PROFILE = "profile"
