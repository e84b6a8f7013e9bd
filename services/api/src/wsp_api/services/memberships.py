"""工作空间成员关系服务。

职责:
1. 加入工作空间：成员关系与档案在同一事务内创建。
2. 角色变更与成员移除：持行锁校验“至少保留一名管理员”。
3. 成员视图查询。
"""

import logging
from uuid import UUID

from sqlalchemy import Select, delete, func, select
from sqlalchemy.orm import Session

from wsp_api.db.session import transaction
from wsp_api.exceptions import HttpErrors
from wsp_api.models.account import Account
from wsp_api.models.enums import MembershipRole
from wsp_api.models.workspace import Membership, Profile, Workspace
from wsp_api.services import profiles as profile_service

logger = logging.getLogger("wsp_api.services.memberships")

LAST_ADMIN_MESSAGE = "Cannot remove the last admin of the workspace"


def validate_role(role: str) -> MembershipRole:
    """校验成员角色取值。"""
    try:
        return MembershipRole(role)
    except ValueError as exc:
        allowed = ", ".join(item.value for item in MembershipRole)
        raise HttpErrors.ValidationFailed(f"Invalid role: {role}. Must be one of: {allowed}") from exc


def get_membership(db: Session, *, workspace_id: UUID, account_id: UUID) -> Membership | None:
    return (
        db.execute(
            select(Membership)
            .where(Membership.workspace_id == workspace_id)
            .where(Membership.account_id == account_id)
        )
        .scalar_one_or_none()
    )


def add_membership(db: Session, *, workspace_id: UUID, account_id: UUID, role: MembershipRole) -> Membership:
    """在当前事务内新增成员关系（不提交）。"""
    membership = Membership(workspace_id=workspace_id, account_id=account_id, role=role)
    db.add(membership)
    db.flush()
    return membership


def join_workspace(
    db: Session,
    *,
    workspace_id: UUID,
    account_id: UUID,
    role: str,
    profile_name: str | None = None,
) -> tuple[Membership, Profile]:
    """将账号加入工作空间：成员关系与档案同时提交或同时回滚。"""
    validated_role = validate_role(role)

    if db.get(Workspace, workspace_id) is None:
        raise HttpErrors.WorkspaceNotFound()
    account = db.get(Account, account_id)
    if account is None:
        raise HttpErrors.AccountNotFound()
    if get_membership(db, workspace_id=workspace_id, account_id=account_id) is not None:
        raise HttpErrors.Conflict("Account is already a member of this workspace")

    name = profile_service.normalize_profile_name(
        profile_name or account.full_name,
        fallback=profile_service.DEFAULT_MEMBER_PROFILE_NAME,
    )
    with transaction(db):
        membership = add_membership(db, workspace_id=workspace_id, account_id=account_id, role=validated_role)
        profile = profile_service.create_profile(db, workspace_id=workspace_id, account_id=account_id, name=name)

    logger.info(
        "member joined workspace_id=%s account_id=%s role=%s",
        workspace_id,
        account_id,
        validated_role,
    )
    return membership, profile


def _lock_membership(db: Session, *, workspace_id: UUID, account_id: UUID) -> Membership | None:
    return (
        db.execute(
            select(Membership)
            .where(Membership.workspace_id == workspace_id)
            .where(Membership.account_id == account_id)
            .with_for_update()
        )
        .scalar_one_or_none()
    )


def _admin_lock_statement(workspace_id: UUID) -> Select[tuple[Membership]]:
    # 管理员行一律按主键顺序加锁。
    return (
        select(Membership)
        .where(Membership.workspace_id == workspace_id)
        .where(Membership.role == MembershipRole.ADMIN)
        .order_by(Membership.id)
        .with_for_update()
    )


def _lock_admin_memberships(db: Session, workspace_id: UUID) -> list[Membership]:
    """锁定工作空间全部管理员行，直到当前事务结束。"""
    return list(db.execute(_admin_lock_statement(workspace_id)).scalars().all())


def _lock_target_membership(
    db: Session,
    *,
    workspace_id: UUID,
    account_id: UUID,
) -> tuple[Membership, list[Membership]]:
    """先锁管理员集合，再锁目标成员关系。"""
    admins = _lock_admin_memberships(db, workspace_id)
    membership = _lock_membership(db, workspace_id=workspace_id, account_id=account_id)
    if membership is None:
        raise HttpErrors.NotFound("Membership")
    return membership, admins


def _ensure_not_last_admin(membership: Membership, admins: list[Membership]) -> None:
    if membership.role != MembershipRole.ADMIN:
        return
    if len(admins) <= 1:
        logger.warning(
            "last admin protection workspace_id=%s account_id=%s",
            membership.workspace_id,
            membership.account_id,
        )
        raise HttpErrors.BadRequest(LAST_ADMIN_MESSAGE)


def update_member_role(
    db: Session,
    *,
    workspace_id: UUID,
    account_id: UUID,
    role: str,
) -> tuple[Membership, str]:
    """变更成员角色，返回成员关系与变更前角色。"""
    validated_role = validate_role(role)

    with transaction(db):
        membership, admins = _lock_target_membership(db, workspace_id=workspace_id, account_id=account_id)
        previous_role = str(membership.role)
        if validated_role != MembershipRole.ADMIN:
            _ensure_not_last_admin(membership, admins)
        membership.role = validated_role
        db.flush()

    logger.info(
        "member role updated workspace_id=%s account_id=%s role=%s->%s",
        workspace_id,
        account_id,
        previous_role,
        validated_role,
    )
    return membership, previous_role


def remove_member(db: Session, *, workspace_id: UUID, account_id: UUID) -> Membership:
    """移除成员关系及其档案。"""
    with transaction(db):
        membership, admins = _lock_target_membership(db, workspace_id=workspace_id, account_id=account_id)
        _ensure_not_last_admin(membership, admins)
        profile_service.delete_profile(db, workspace_id=workspace_id, account_id=account_id)
        db.delete(membership)
        db.flush()

    logger.info("member removed workspace_id=%s account_id=%s", workspace_id, account_id)
    return membership


def delete_workspace_memberships(db: Session, workspace_id: UUID) -> int:
    """在当前事务内删除工作空间全部成员关系（不提交）。"""
    result = db.execute(delete(Membership).where(Membership.workspace_id == workspace_id))
    return result.rowcount or 0


def list_workspace_members(db: Session, workspace_id: UUID) -> list[tuple[Membership, Profile | None, Account | None]]:
    """返回工作空间成员视图：成员关系 + 档案 + 账号。"""
    rows = db.execute(
        select(Membership, Profile, Account)
        .outerjoin(
            Profile,
            (Profile.workspace_id == Membership.workspace_id) & (Profile.account_id == Membership.account_id),
        )
        .outerjoin(Account, Account.id == Membership.account_id)
        .where(Membership.workspace_id == workspace_id)
        .order_by(Membership.created_at, Membership.id)
    ).all()
    return [(membership, profile, account) for membership, profile, account in rows]


def list_account_workspaces(db: Session, account_id: UUID) -> list[tuple[Workspace, Membership, Profile | None]]:
    """返回账号所属的全部工作空间及其角色与档案。"""
    rows = db.execute(
        select(Workspace, Membership, Profile)
        .join(Membership, Membership.workspace_id == Workspace.id)
        .outerjoin(
            Profile,
            (Profile.workspace_id == Workspace.id) & (Profile.account_id == Membership.account_id),
        )
        .where(Membership.account_id == account_id)
        .order_by(Workspace.created_at, Workspace.id)
    ).all()
    return [(workspace, membership, profile) for workspace, membership, profile in rows]


def list_memberships(
    db: Session,
    *,
    page: int,
    limit: int,
    workspace_id: UUID | None = None,
    account_id: UUID | None = None,
) -> tuple[list[tuple[Membership, Workspace | None, Account | None]], int]:
    """管理端分页查询成员关系，可按工作空间或账号过滤。"""
    conditions = []
    if workspace_id is not None:
        conditions.append(Membership.workspace_id == workspace_id)
    if account_id is not None:
        conditions.append(Membership.account_id == account_id)

    total = db.execute(select(func.count()).select_from(Membership).where(*conditions)).scalar_one()
    rows = db.execute(
        select(Membership, Workspace, Account)
        .outerjoin(Workspace, Workspace.id == Membership.workspace_id)
        .outerjoin(Account, Account.id == Membership.account_id)
        .where(*conditions)
        .order_by(Membership.created_at, Membership.id)
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()
    return [(membership, workspace, account) for membership, workspace, account in rows], int(total)
