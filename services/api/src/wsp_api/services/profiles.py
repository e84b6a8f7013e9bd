"""工作空间档案服务。"""

from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from wsp_api.db.session import transaction
from wsp_api.exceptions import HttpErrors
from wsp_api.models.workspace import Profile

# 未指定展示名时的兜底值。
DEFAULT_MEMBER_PROFILE_NAME = "Workspace Member"
DEFAULT_OWNER_PROFILE_NAME = "Workspace Owner"
PROFILE_NAME_MAX_LENGTH = 100


def normalize_profile_name(name: str | None, *, fallback: str) -> str:
    candidate = (name or "").strip() or fallback
    return candidate[:PROFILE_NAME_MAX_LENGTH]


def create_profile(db: Session, *, workspace_id: UUID, account_id: UUID, name: str) -> Profile:
    """在当前事务内新增档案（不提交）。"""
    profile = Profile(workspace_id=workspace_id, account_id=account_id, name=name)
    db.add(profile)
    db.flush()
    return profile


def get_profile(db: Session, *, workspace_id: UUID, account_id: UUID) -> Profile | None:
    return (
        db.execute(
            select(Profile).where(Profile.workspace_id == workspace_id).where(Profile.account_id == account_id)
        )
        .scalar_one_or_none()
    )


def update_own_profile(db: Session, *, workspace_id: UUID, account_id: UUID, name: str) -> Profile:
    """更新调用方本人在工作空间内的档案。

    查询条件同时限定账号与工作空间，调用方无法修改他人档案。
    """
    validated_name = name.strip()
    if not validated_name or len(validated_name) > PROFILE_NAME_MAX_LENGTH:
        raise HttpErrors.ValidationFailed(
            f"Profile name must be between 1 and {PROFILE_NAME_MAX_LENGTH} characters"
        )

    with transaction(db):
        profile = get_profile(db, workspace_id=workspace_id, account_id=account_id)
        if profile is None:
            raise HttpErrors.NotFound("Profile")
        profile.name = validated_name
        db.flush()
    return profile


def delete_profile(db: Session, *, workspace_id: UUID, account_id: UUID) -> int:
    """在当前事务内删除某成员的档案（不提交）。"""
    result = db.execute(
        delete(Profile).where(Profile.workspace_id == workspace_id).where(Profile.account_id == account_id)
    )
    return result.rowcount or 0


def delete_workspace_profiles(db: Session, workspace_id: UUID) -> int:
    """在当前事务内删除工作空间全部档案（不提交）。"""
    result = db.execute(delete(Profile).where(Profile.workspace_id == workspace_id))
    return result.rowcount or 0
