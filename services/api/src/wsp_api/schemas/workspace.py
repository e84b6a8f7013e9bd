"""工作空间与成员相关请求结构。"""

from uuid import UUID

from pydantic import BaseModel, Field


class WorkspaceCreateRequest(BaseModel):
    """创建工作空间请求体。"""

    name: str = Field(min_length=1, max_length=100, description="工作空间名称。", examples=["Research"])
    description: str | None = Field(default=None, description="工作空间说明。")
    profile_name: str | None = Field(
        default=None,
        min_length=1,
        max_length=100,
        description="创建者在该空间的展示名，缺省取账号姓名。",
    )


class WorkspaceUpdateRequest(BaseModel):
    """更新工作空间请求体。"""

    name: str | None = Field(default=None, min_length=1, max_length=100, description="新的工作空间名称。")
    description: str | None = Field(default=None, description="新的工作空间说明。")


class ProfileUpdateRequest(BaseModel):
    """更新本人在工作空间内的档案。"""

    name: str = Field(min_length=1, max_length=100, description="新的展示名。")


class MemberAddRequest(BaseModel):
    """新增工作空间成员请求体。

    角色在服务层校验，非法值返回 VALIDATION_FAILED。
    """

    account_id: UUID = Field(description="目标账号 ID。")
    role: str = Field(default="user", description="成员角色：admin / user。", examples=["user"])
    profile_name: str | None = Field(default=None, min_length=1, max_length=100, description="成员展示名。")


class MemberRoleUpdateRequest(BaseModel):
    """变更成员角色请求体。"""

    role: str = Field(description="新的成员角色：admin / user。", examples=["admin"])


class AdminWorkspaceCreateRequest(BaseModel):
    """超级管理员为指定账号创建工作空间。"""

    account_id: UUID = Field(description="工作空间归属账号 ID。")
    name: str = Field(min_length=1, max_length=100, description="工作空间名称。")
    description: str | None = Field(default=None, description="工作空间说明。")
    profile_name: str | None = Field(default=None, min_length=1, max_length=100, description="归属账号的展示名。")
