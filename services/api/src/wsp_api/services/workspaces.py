"""工作空间服务。"""

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from wsp_api.db.session import transaction
from wsp_api.exceptions import HttpErrors
from wsp_api.models.account import Account
from wsp_api.models.enums import MembershipRole
from wsp_api.models.workspace import Membership, Profile, Workspace
from wsp_api.services import memberships as membership_service
from wsp_api.services import profiles as profile_service

logger = logging.getLogger("wsp_api.services.workspaces")

WORKSPACE_NAME_MAX_LENGTH = 100


def normalize_workspace_name(name: str) -> str:
    """去除首尾空白并校验长度。"""
    normalized = (name or "").strip()
    if not normalized or len(normalized) > WORKSPACE_NAME_MAX_LENGTH:
        raise HttpErrors.ValidationFailed(
            f"Workspace name must be between 1 and {WORKSPACE_NAME_MAX_LENGTH} characters"
        )
    return normalized


def create_workspace(
    db: Session,
    *,
    name: str,
    account_id: UUID,
    description: str | None = None,
) -> Workspace:
    """在当前事务内新增工作空间（不提交）。"""
    normalized_name = normalize_workspace_name(name)
    if db.get(Account, account_id) is None:
        raise HttpErrors.AccountNotFound()

    workspace = Workspace(name=normalized_name, description=description, account_id=account_id)
    db.add(workspace)
    db.flush()
    return workspace


def create_workspace_with_owner(
    db: Session,
    *,
    name: str,
    account_id: UUID,
    description: str | None = None,
    profile_name: str | None = None,
) -> tuple[Workspace, Membership, Profile]:
    """创建工作空间，并在同一事务内为创建者建立管理员成员关系与档案。"""
    account = db.get(Account, account_id)
    if account is None:
        raise HttpErrors.AccountNotFound()

    name_for_profile = profile_service.normalize_profile_name(
        profile_name or account.full_name,
        fallback=profile_service.DEFAULT_OWNER_PROFILE_NAME,
    )
    with transaction(db):
        workspace = create_workspace(db, name=name, account_id=account_id, description=description)
        membership = membership_service.add_membership(
            db,
            workspace_id=workspace.id,
            account_id=account_id,
            role=MembershipRole.ADMIN,
        )
        profile = profile_service.create_profile(
            db,
            workspace_id=workspace.id,
            account_id=account_id,
            name=name_for_profile,
        )

    logger.info("workspace created workspace_id=%s account_id=%s", workspace.id, account_id)
    return workspace, membership, profile


def get_workspace(db: Session, workspace_id: UUID) -> Workspace:
    """读取工作空间，不存在时抛出 WORKSPACE_NOT_FOUND。"""
    workspace = db.get(Workspace, workspace_id)
    if workspace is None:
        raise HttpErrors.WorkspaceNotFound()
    return workspace


def list_owned_workspaces(db: Session, account_id: UUID) -> list[Workspace]:
    """返回账号创建的全部工作空间。"""
    return list(
        db.execute(
            select(Workspace).where(Workspace.account_id == account_id).order_by(Workspace.created_at, Workspace.id)
        )
        .scalars()
        .all()
    )


def update_workspace(
    db: Session,
    workspace_id: UUID,
    *,
    name: str | None = None,
    description: str | None = None,
) -> tuple[Workspace, dict[str, object]]:
    """更新工作空间名称与描述，返回工作空间与实际变更字段。"""
    with transaction(db):
        workspace = get_workspace(db, workspace_id)
        changes: dict[str, object] = {}
        if name is not None:
            normalized_name = normalize_workspace_name(name)
            if normalized_name != workspace.name:
                workspace.name = normalized_name
                changes["name"] = normalized_name
        if description is not None and description != workspace.description:
            workspace.description = description
            changes["description"] = description
        db.flush()
    return workspace, changes


def delete_workspace(db: Session, workspace_id: UUID) -> Workspace:
    """删除工作空间：依次删除档案、成员关系、工作空间本身，任一步失败整体回滚。"""
    workspace = get_workspace(db, workspace_id)
    with transaction(db):
        profile_count = profile_service.delete_workspace_profiles(db, workspace_id)
        membership_count = membership_service.delete_workspace_memberships(db, workspace_id)
        db.delete(workspace)
        db.flush()

    logger.info(
        "workspace deleted workspace_id=%s profiles=%d memberships=%d",
        workspace_id,
        profile_count,
        membership_count,
    )
    return workspace


def list_all_workspaces(
    db: Session,
    *,
    page: int,
    limit: int,
) -> tuple[list[tuple[Workspace, Account | None, int]], int]:
    """管理端分页列出全部工作空间，附带创建者与成员数量。"""
    member_count = (
        select(func.count())
        .select_from(Membership)
        .where(Membership.workspace_id == Workspace.id)
        .correlate(Workspace)
        .scalar_subquery()
    )
    total = db.execute(select(func.count()).select_from(Workspace)).scalar_one()
    rows = db.execute(
        select(Workspace, Account, member_count)
        .outerjoin(Account, Account.id == Workspace.account_id)
        .order_by(Workspace.created_at, Workspace.id)
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()
    return [(workspace, owner, int(count or 0)) for workspace, owner, count in rows], int(total)
