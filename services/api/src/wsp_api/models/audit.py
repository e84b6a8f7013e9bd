"""审计日志模型。"""

from typing import Any
from uuid import UUID

from sqlalchemy import JSON, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from wsp_api.models.base import Base, CreatedAtMixin, UUIDPrimaryKeyMixin


class AuditLog(Base, UUIDPrimaryKeyMixin, CreatedAtMixin):
    """关键操作审计日志，只追加不修改。"""

    __tablename__ = "audit_logs"

    # 动作标识，例如 workspace_created / member_removed。
    action: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    entity_id: Mapped[str] = mapped_column(String(128), nullable=False)
    actor_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    actor_email: Mapped[str] = mapped_column(String(256), nullable=False)
    target_id: Mapped[UUID | None] = mapped_column()
    target_email: Mapped[str | None] = mapped_column(String(256))
    # 结构化附加信息，例如变更前后的角色。
    details: Mapped[dict[str, Any] | None] = mapped_column(JSON().with_variant(JSONB(), "postgresql"))
    ip_address: Mapped[str | None] = mapped_column(String(64))
    user_agent: Mapped[str | None] = mapped_column(Text)
    workspace_id: Mapped[UUID | None] = mapped_column(index=True)
