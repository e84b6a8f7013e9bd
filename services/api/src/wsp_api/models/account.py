"""账号与本地凭据模型。"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from wsp_api.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from wsp_api.models.enums import AccountStatus


class Account(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """全局身份实体，主键与身份提供方签发的 sub 一致。"""

    __tablename__ = "accounts"

    full_name: Mapped[str | None] = mapped_column(String(256))
    # 全局唯一登录邮箱。
    email: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)
    phone: Mapped[str | None] = mapped_column(String(64))
    # 全局超级管理员标记，与工作空间角色无关。
    is_super_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=AccountStatus.ACTIVE)


class AccountCredential(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """本地身份提供方使用的口令凭据。"""

    __tablename__ = "account_credentials"

    account_id: Mapped[UUID] = mapped_column(ForeignKey("accounts.id"), nullable=False, unique=True)
    # 口令哈希，不存明文。
    password_hash: Mapped[str] = mapped_column(String(256), nullable=False)
    password_updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
