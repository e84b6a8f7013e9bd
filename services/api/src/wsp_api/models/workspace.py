"""工作空间、成员关系与空间内档案模型。"""

from uuid import UUID

from sqlalchemy import ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from wsp_api.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from wsp_api.models.enums import MembershipRole


class Workspace(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """工作空间实体，多租户隔离边界。"""

    __tablename__ = "workspaces"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    # 创建该空间的账号。
    account_id: Mapped[UUID] = mapped_column(ForeignKey("accounts.id"), nullable=False, index=True)


class Membership(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """账号在工作空间内的角色授予关系。"""

    __tablename__ = "workspace_memberships"
    __table_args__ = (UniqueConstraint("account_id", "workspace_id", name="uk_workspace_membership"),)

    workspace_id: Mapped[UUID] = mapped_column(ForeignKey("workspaces.id"), nullable=False, index=True)
    account_id: Mapped[UUID] = mapped_column(ForeignKey("accounts.id"), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(32), nullable=False, default=MembershipRole.USER)


class Profile(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """账号在某个工作空间内的展示身份。"""

    __tablename__ = "profiles"
    __table_args__ = (UniqueConstraint("account_id", "workspace_id", name="uk_profile_account_workspace"),)

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    workspace_id: Mapped[UUID] = mapped_column(ForeignKey("workspaces.id"), nullable=False, index=True)
    account_id: Mapped[UUID] = mapped_column(ForeignKey("accounts.id"), nullable=False, index=True)
