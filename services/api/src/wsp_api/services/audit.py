"""审计服务。

审计写入发生在业务事务提交之后，使用独立保存点；
写入失败只记录日志，不影响已完成的业务操作。
"""

from datetime import datetime, timedelta, timezone
import logging
from typing import Any
from uuid import UUID

from fastapi import Request
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from wsp_api.models.account import Account
from wsp_api.models.audit import AuditLog
from wsp_api.utils.request import client_ip, user_agent

logger = logging.getLogger("wsp_api.services.audit")

UNKNOWN_ACTOR_EMAIL = "unknown"
TOP_ACTORS_LIMIT = 10


def _lookup_email(db: Session, account_id: UUID | None) -> str | None:
    if account_id is None:
        return None
    return db.execute(select(Account.email).where(Account.id == account_id)).scalar_one_or_none()


def _build_entry(
    db: Session,
    *,
    action: str,
    entity_type: str,
    entity_id: str,
    actor_id: UUID,
    target_id: UUID | None,
    details: dict[str, Any] | None,
    workspace_id: UUID | None,
    request: Request | None,
    actor_email: str | None,
    target_email: str | None,
) -> AuditLog:
    if actor_email is None:
        actor_email = _lookup_email(db, actor_id) or UNKNOWN_ACTOR_EMAIL
    if target_id is not None and target_email is None:
        target_email = _lookup_email(db, target_id)

    return AuditLog(
        action=str(action),
        entity_type=str(entity_type),
        entity_id=str(entity_id),
        actor_id=actor_id,
        actor_email=actor_email,
        target_id=target_id,
        target_email=target_email,
        details=details,
        ip_address=client_ip(request) if request is not None else None,
        user_agent=user_agent(request) if request is not None else None,
        workspace_id=workspace_id,
    )


def record_audit(
    db: Session,
    *,
    action: str,
    entity_type: str,
    entity_id: str | UUID,
    actor_id: UUID,
    target_id: UUID | None = None,
    details: dict[str, Any] | None = None,
    workspace_id: UUID | None = None,
    request: Request | None = None,
    actor_email: str | None = None,
    target_email: str | None = None,
) -> AuditLog | None:
    """写入一条审计日志，失败时返回 None。"""
    try:
        with db.begin_nested():
            entry = _build_entry(
                db,
                action=action,
                entity_type=entity_type,
                entity_id=str(entity_id),
                actor_id=actor_id,
                target_id=target_id,
                details=details,
                workspace_id=workspace_id,
                request=request,
                actor_email=actor_email,
                target_email=target_email,
            )
            db.add(entry)
        db.commit()
    except Exception:
        # 审计失败不得中断已提交的业务操作。
        logger.exception(
            "failed to write audit log action=%s entity_type=%s entity_id=%s actor_id=%s",
            action,
            entity_type,
            entity_id,
            actor_id,
        )
        db.rollback()
        return None
    return entry


def list_audit_logs(
    db: Session,
    *,
    page: int,
    limit: int,
    action: str | None = None,
    entity_type: str | None = None,
    actor_id: UUID | None = None,
    entity_id: str | None = None,
    workspace_id: UUID | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> tuple[list[AuditLog], int]:
    """按条件分页查询审计日志，按时间倒序。"""
    conditions = []
    if action:
        conditions.append(AuditLog.action == action)
    if entity_type:
        conditions.append(AuditLog.entity_type == entity_type)
    if actor_id is not None:
        conditions.append(AuditLog.actor_id == actor_id)
    if entity_id:
        conditions.append(AuditLog.entity_id == entity_id)
    if workspace_id is not None:
        conditions.append(AuditLog.workspace_id == workspace_id)
    if start_date is not None:
        conditions.append(AuditLog.created_at >= start_date)
    if end_date is not None:
        conditions.append(AuditLog.created_at <= end_date)

    total = db.execute(select(func.count()).select_from(AuditLog).where(*conditions)).scalar_one()
    logs = (
        db.execute(
            select(AuditLog)
            .where(*conditions)
            .order_by(AuditLog.created_at.desc(), AuditLog.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        .scalars()
        .all()
    )
    return list(logs), int(total)


def audit_stats(db: Session, *, days: int) -> dict[str, Any]:
    """统计最近 N 天的审计活动。"""
    since = datetime.now(timezone.utc) - timedelta(days=days)
    in_period = AuditLog.created_at >= since

    action_rows = db.execute(
        select(AuditLog.action, func.count().label("count"))
        .where(in_period)
        .group_by(AuditLog.action)
        .order_by(func.count().desc(), AuditLog.action)
    ).all()
    entity_rows = db.execute(
        select(AuditLog.entity_type, func.count().label("count"))
        .where(in_period)
        .group_by(AuditLog.entity_type)
        .order_by(func.count().desc(), AuditLog.entity_type)
    ).all()
    actor_rows = db.execute(
        select(AuditLog.actor_id, AuditLog.actor_email, func.count().label("count"))
        .where(in_period)
        .group_by(AuditLog.actor_id, AuditLog.actor_email)
        .order_by(func.count().desc(), AuditLog.actor_email)
        .limit(TOP_ACTORS_LIMIT)
    ).all()

    # 按日聚合在应用层完成，避免依赖方言专属的日期函数。
    daily: dict[str, int] = {}
    for created_at in db.execute(select(AuditLog.created_at).where(in_period)).scalars():
        day = created_at.date().isoformat()
        daily[day] = daily.get(day, 0) + 1

    return {
        "period_days": days,
        "since": since,
        "action_stats": [{"action": action, "count": count} for action, count in action_rows],
        "entity_type_stats": [{"entity_type": entity_type, "count": count} for entity_type, count in entity_rows],
        "top_actors": [
            {"actor_id": actor_id, "actor_email": actor_email, "count": count}
            for actor_id, actor_email, count in actor_rows
        ],
        "daily_activity": [{"day": day, "count": count} for day, count in sorted(daily.items())],
    }
