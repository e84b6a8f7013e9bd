"""账号相关请求结构。"""

from pydantic import BaseModel, Field

from wsp_api.models.enums import AccountStatus
from wsp_api.schemas.auth import EMAIL_PATTERN


class AccountUpdateRequest(BaseModel):
    """本人更新账号资料。"""

    full_name: str | None = Field(default=None, min_length=1, max_length=256, description="新的姓名。")
    phone: str | None = Field(default=None, max_length=64, description="新的联系电话。")


class AdminAccountCreateRequest(BaseModel):
    """超级管理员代为创建账号。"""

    email: str = Field(
        min_length=5,
        max_length=256,
        pattern=EMAIL_PATTERN,
        description="登录邮箱。",
        examples=["bob@example.com"],
    )
    full_name: str | None = Field(default=None, min_length=1, max_length=256, description="姓名。")
    phone: str | None = Field(default=None, max_length=64, description="联系电话。")
    is_super_admin: bool = Field(default=False, description="是否授予超级管理员。")


class AccountRoleUpdateRequest(BaseModel):
    """超级管理员标记变更。"""

    is_super_admin: bool = Field(description="是否为超级管理员。")


class AccountStatusUpdateRequest(BaseModel):
    """账号状态变更。"""

    status: AccountStatus = Field(description="目标状态。", examples=["suspended"])
