"""接口成功响应 `data` 字段结构定义。

说明：
1. 所有业务接口统一返回 `SuccessResponse[data=...]`。
2. 本文件专注于定义各接口在 `data` 中的业务字段。
3. 字段描述会直接用于 Swagger 展示，便于联调时理解含义。
"""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import Field

from wsp_api.schemas.common import BaseSchema, PaginationMeta


class HealthStatusData(BaseSchema):
    """健康检查返回结构。"""

    status: str = Field(description="健康状态值，常见为 ok 或 ready。")
    database: str | None = Field(default=None, description="就绪探针检测的数据库方言。")


class AccountData(BaseSchema):
    """账号信息结构。"""

    id: UUID = Field(description="账号 ID，与身份提供方主体标识一致。")
    full_name: str | None = Field(default=None, description="姓名。")
    email: str = Field(description="登录邮箱。")
    phone: str | None = Field(default=None, description="联系电话。")
    is_super_admin: bool = Field(description="是否为全局超级管理员。")
    status: str = Field(description="账号状态：active / inactive / suspended。")
    created_at: datetime | None = Field(default=None, description="创建时间。")
    updated_at: datetime | None = Field(default=None, description="更新时间。")


class AccountSummaryData(BaseSchema):
    """账号摘要，用于成员列表等嵌套场景。"""

    id: UUID = Field(description="账号 ID。")
    full_name: str | None = Field(default=None, description="姓名。")
    email: str = Field(description="登录邮箱。")


class AccountEnvelopeData(BaseSchema):
    """单个账号返回结构。"""

    account: AccountData = Field(description="账号信息。")


class AuthSessionData(BaseSchema):
    """注册 / 登录结果结构。"""

    access_token: str = Field(description="访问令牌。")
    token_type: str = Field(default="bearer", description="令牌类型。")
    expires_at: datetime = Field(description="令牌过期时间（UTC）。")
    expires_in: int = Field(description="距过期剩余秒数。")
    account: AccountData = Field(description="当前账号信息。")


class WorkspaceData(BaseSchema):
    """工作空间信息结构。"""

    id: UUID = Field(description="工作空间 ID。")
    name: str = Field(description="工作空间名称。")
    description: str | None = Field(default=None, description="工作空间描述。")
    account_id: UUID = Field(description="创建者账号 ID。")
    created_at: datetime | None = Field(default=None, description="创建时间。")
    updated_at: datetime | None = Field(default=None, description="更新时间。")


class ProfileData(BaseSchema):
    """工作空间内档案结构。"""

    id: UUID = Field(description="档案 ID。")
    name: str = Field(description="在该工作空间内的展示名。")
    workspace_id: UUID = Field(description="工作空间 ID。")
    account_id: UUID = Field(description="账号 ID。")
    created_at: datetime | None = Field(default=None, description="创建时间。")


class MembershipData(BaseSchema):
    """工作空间成员关系结构。"""

    id: UUID = Field(description="成员关系 ID。")
    workspace_id: UUID = Field(description="工作空间 ID。")
    account_id: UUID = Field(description="账号 ID。")
    role: str = Field(description="成员角色：admin / user。")


class ProfileEnvelopeData(BaseSchema):
    """单个档案返回结构。"""

    profile: ProfileData = Field(description="档案信息。")


class WorkspaceMemberData(BaseSchema):
    """工作空间成员视图：成员关系 + 档案 + 账号摘要。"""

    membership: MembershipData = Field(description="成员关系。")
    profile: ProfileData | None = Field(default=None, description="成员在该空间的档案。")
    account: AccountSummaryData | None = Field(default=None, description="成员账号摘要。")


class WorkspaceDetailData(BaseSchema):
    """工作空间详情结构。"""

    workspace: WorkspaceData = Field(description="工作空间信息。")
    members: list[WorkspaceMemberData] = Field(description="成员列表。")
    member_count: int = Field(description="成员数量。")


class WorkspaceCreatedData(BaseSchema):
    """创建工作空间 / 加入工作空间的返回结构。"""

    workspace: WorkspaceData = Field(description="工作空间信息。")
    membership: MembershipData = Field(description="创建的成员关系。")
    profile: ProfileData = Field(description="创建的档案。")


class WorkspaceListData(BaseSchema):
    """工作空间列表结构。"""

    workspaces: list[WorkspaceData] = Field(description="工作空间列表。")


class WorkspaceDeletedData(BaseSchema):
    """删除工作空间返回结构。"""

    deleted_workspace_id: UUID = Field(description="已删除的工作空间 ID。")
    workspace_name: str = Field(description="已删除的工作空间名称。")


class MemberJoinedData(BaseSchema):
    """新增成员返回结构。"""

    membership: MembershipData = Field(description="新建成员关系。")
    profile: ProfileData = Field(description="新建档案。")


class MembershipEnvelopeData(BaseSchema):
    """单个成员关系返回结构。"""

    membership: MembershipData = Field(description="成员关系。")


class MemberRemovedData(BaseSchema):
    """移除成员返回结构。"""

    workspace_id: UUID = Field(description="工作空间 ID。")
    account_id: UUID = Field(description="被移除的账号 ID。")


class MeWorkspaceItem(BaseSchema):
    """当前账号所属的某个工作空间视图。"""

    workspace: WorkspaceData = Field(description="工作空间信息。")
    profile: ProfileData | None = Field(default=None, description="当前账号在该空间的档案。")
    role: str = Field(description="当前账号在该空间的角色。")


class MeData(BaseSchema):
    """`/me` 接口返回结构。"""

    account: AccountData = Field(description="当前账号信息。")
    workspaces: list[MeWorkspaceItem] = Field(description="当前账号所属的全部工作空间。")
    workspace_count: int = Field(description="所属工作空间数量。")


class AccountListData(BaseSchema):
    """账号分页列表结构。"""

    accounts: list[AccountData] = Field(description="账号列表。")
    pagination: PaginationMeta = Field(description="分页信息。")


class AdminWorkspaceItem(BaseSchema):
    """管理端工作空间视图。"""

    workspace: WorkspaceData = Field(description="工作空间信息。")
    owner: AccountSummaryData | None = Field(default=None, description="创建者账号摘要。")
    member_count: int = Field(description="成员数量。")


class AdminWorkspaceListData(BaseSchema):
    """管理端工作空间分页列表结构。"""

    workspaces: list[AdminWorkspaceItem] = Field(description="工作空间列表。")
    pagination: PaginationMeta = Field(description="分页信息。")


class WorkspaceSummaryData(BaseSchema):
    """工作空间摘要。"""

    id: UUID = Field(description="工作空间 ID。")
    name: str = Field(description="工作空间名称。")


class AdminMembershipItem(BaseSchema):
    """管理端成员关系视图。"""

    membership: MembershipData = Field(description="成员关系。")
    workspace: WorkspaceSummaryData | None = Field(default=None, description="工作空间摘要。")
    account: AccountSummaryData | None = Field(default=None, description="账号摘要。")


class AdminMembershipListData(BaseSchema):
    """管理端成员关系分页列表结构。"""

    memberships: list[AdminMembershipItem] = Field(description="成员关系列表。")
    pagination: PaginationMeta = Field(description="分页信息。")


class AuditLogData(BaseSchema):
    """审计日志结构。"""

    id: UUID = Field(description="日志 ID。")
    action: str = Field(description="动作标识。")
    entity_type: str = Field(description="实体类型。")
    entity_id: str = Field(description="实体 ID。")
    actor_id: UUID = Field(description="操作者账号 ID。")
    actor_email: str = Field(description="操作者邮箱。")
    target_id: UUID | None = Field(default=None, description="被操作账号 ID。")
    target_email: str | None = Field(default=None, description="被操作账号邮箱。")
    details: dict[str, Any] | None = Field(default=None, description="结构化附加信息。")
    ip_address: str | None = Field(default=None, description="客户端 IP。")
    user_agent: str | None = Field(default=None, description="客户端标识。")
    workspace_id: UUID | None = Field(default=None, description="关联工作空间 ID。")
    created_at: datetime | None = Field(default=None, description="记录时间。")


class AuditLogListData(BaseSchema):
    """审计日志分页列表结构。"""

    audit_logs: list[AuditLogData] = Field(description="审计日志列表。")
    pagination: PaginationMeta = Field(description="分页信息。")


class ActionCountData(BaseSchema):
    action: str = Field(description="动作标识。")
    count: int = Field(description="次数。")


class EntityTypeCountData(BaseSchema):
    entity_type: str = Field(description="实体类型。")
    count: int = Field(description="次数。")


class ActorCountData(BaseSchema):
    actor_id: UUID = Field(description="操作者账号 ID。")
    actor_email: str = Field(description="操作者邮箱。")
    count: int = Field(description="次数。")


class DailyActivityData(BaseSchema):
    day: date = Field(description="日期（UTC）。")
    count: int = Field(description="当日记录数。")


class AuditStatsData(BaseSchema):
    """审计统计结构。"""

    period_days: int = Field(description="统计周期（天）。")
    since: datetime = Field(description="统计起始时间（UTC）。")
    action_stats: list[ActionCountData] = Field(description="按动作统计。")
    entity_type_stats: list[EntityTypeCountData] = Field(description="按实体类型统计。")
    top_actors: list[ActorCountData] = Field(description="最活跃的 10 个操作者。")
    daily_activity: list[DailyActivityData] = Field(description="每日活动量。")
