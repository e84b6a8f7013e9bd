"""工作空间、档案与成员管理接口。"""

from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from wsp_api.db.session import get_db
from wsp_api.dependencies import RequestContext, get_request_context
from wsp_api.models.enums import AuditAction, EntityType
from wsp_api.schemas.common import ErrorResponse, SuccessResponse
from wsp_api.schemas.responses import (
    AccountSummaryData,
    MemberJoinedData,
    MemberRemovedData,
    MembershipData,
    MembershipEnvelopeData,
    ProfileData,
    ProfileEnvelopeData,
    WorkspaceCreatedData,
    WorkspaceData,
    WorkspaceDeletedData,
    WorkspaceDetailData,
    WorkspaceListData,
    WorkspaceMemberData,
)
from wsp_api.schemas.workspace import (
    MemberAddRequest,
    MemberRoleUpdateRequest,
    ProfileUpdateRequest,
    WorkspaceCreateRequest,
    WorkspaceUpdateRequest,
)
from wsp_api.services import memberships as membership_service
from wsp_api.services import profiles as profile_service
from wsp_api.services import workspaces as workspace_service
from wsp_api.services.audit import record_audit
from wsp_api.utils.response import success

router = APIRouter(prefix="/workspaces", tags=["workspaces"])

_COMMON_ERRORS = {401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}


def _member_views(db: Session, workspace_id: UUID) -> list[WorkspaceMemberData]:
    return [
        WorkspaceMemberData(
            membership=MembershipData.model_validate(membership),
            profile=ProfileData.model_validate(profile) if profile is not None else None,
            account=AccountSummaryData.model_validate(account) if account is not None else None,
        )
        for membership, profile, account in membership_service.list_workspace_members(db, workspace_id)
    ]


@router.get(
    "",
    summary="查询本人创建的工作空间",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[WorkspaceListData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def list_workspaces(
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    workspaces = workspace_service.list_owned_workspaces(db, ctx.account_id)
    return success(
        request,
        {"workspaces": [WorkspaceData.model_validate(workspace) for workspace in workspaces]},
        message=f"Fetched workspaces: {len(workspaces)}",
    )


@router.post(
    "",
    summary="创建工作空间",
    description="创建工作空间，并在同一事务内将创建者设为管理员、建立其档案。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[WorkspaceCreatedData],
    responses={**_COMMON_ERRORS, 400: {"model": ErrorResponse}},
)
def create_workspace(
    payload: WorkspaceCreateRequest,
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """创建工作空间并初始化创建者成员关系。"""
    workspace, membership, profile = workspace_service.create_workspace_with_owner(
        db,
        name=payload.name,
        account_id=ctx.account_id,
        description=payload.description,
        profile_name=payload.profile_name,
    )
    record_audit(
        db,
        action=AuditAction.WORKSPACE_CREATED,
        entity_type=EntityType.WORKSPACE,
        entity_id=workspace.id,
        actor_id=ctx.account_id,
        workspace_id=workspace.id,
        details={"name": workspace.name},
        request=request,
    )
    return success(
        request,
        {
            "workspace": WorkspaceData.model_validate(workspace),
            "membership": MembershipData.model_validate(membership),
            "profile": ProfileData.model_validate(profile),
        },
        message="Created workspace",
    )


@router.get(
    "/{id}",
    summary="查询工作空间详情",
    description="返回工作空间信息及全部成员（成员关系 + 档案 + 账号摘要）。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[WorkspaceDetailData],
    responses=_COMMON_ERRORS,
)
def get_workspace(
    id: UUID,
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    workspace = workspace_service.get_workspace(db, id)
    members = _member_views(db, id)
    return success(
        request,
        {"workspace": WorkspaceData.model_validate(workspace), "members": members, "member_count": len(members)},
        message="Fetched workspace",
    )


@router.patch(
    "/{id}",
    summary="更新工作空间",
    description="更新工作空间名称与描述，仅工作空间管理员可操作。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[WorkspaceData],
    responses={**_COMMON_ERRORS, 400: {"model": ErrorResponse}},
)
def update_workspace(
    id: UUID,
    payload: WorkspaceUpdateRequest,
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    workspace, changes = workspace_service.update_workspace(
        db,
        id,
        name=payload.name,
        description=payload.description,
    )
    if changes:
        record_audit(
            db,
            action=AuditAction.WORKSPACE_UPDATED,
            entity_type=EntityType.WORKSPACE,
            entity_id=workspace.id,
            actor_id=ctx.account_id,
            workspace_id=workspace.id,
            details={"changes": changes},
            request=request,
        )
    return success(request, WorkspaceData.model_validate(workspace), message="Workspace updated successfully")


@router.delete(
    "/{id}",
    summary="删除工作空间",
    description="在同一事务内删除档案、成员关系与工作空间，仅工作空间管理员可操作。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[WorkspaceDeletedData],
    responses=_COMMON_ERRORS,
)
def delete_workspace(
    id: UUID,
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    workspace = workspace_service.delete_workspace(db, id)
    record_audit(
        db,
        action=AuditAction.WORKSPACE_DELETED,
        entity_type=EntityType.WORKSPACE,
        entity_id=id,
        actor_id=ctx.account_id,
        workspace_id=id,
        details={"name": workspace.name},
        request=request,
    )
    return success(
        request,
        {"deleted_workspace_id": id, "workspace_name": workspace.name},
        message=f'Workspace "{workspace.name}" deleted successfully',
    )


@router.patch(
    "/{id}/profile",
    summary="更新本人档案",
    description="仅能修改调用方本人在该工作空间内的档案。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[ProfileEnvelopeData],
    responses={**_COMMON_ERRORS, 400: {"model": ErrorResponse}},
)
def update_profile(
    id: UUID,
    payload: ProfileUpdateRequest,
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    profile = profile_service.update_own_profile(db, workspace_id=id, account_id=ctx.account_id, name=payload.name)
    return success(request, {"profile": ProfileData.model_validate(profile)}, message="Profile updated successfully")


@router.get(
    "/{id}/members",
    summary="查询成员列表",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[WorkspaceMemberData]],
    responses=_COMMON_ERRORS,
)
def list_members(
    id: UUID,
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    workspace_service.get_workspace(db, id)
    return success(request, _member_views(db, id), message="Fetched members")


@router.post(
    "/{id}/members",
    summary="新增成员",
    description="将已有账号加入工作空间，成员关系与档案同时创建，仅管理员可操作。",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessResponse[MemberJoinedData],
    responses={**_COMMON_ERRORS, 400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def add_member(
    id: UUID,
    payload: MemberAddRequest,
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    membership, profile = membership_service.join_workspace(
        db,
        workspace_id=id,
        account_id=payload.account_id,
        role=payload.role,
        profile_name=payload.profile_name,
    )
    record_audit(
        db,
        action=AuditAction.MEMBER_ADDED,
        entity_type=EntityType.MEMBERSHIP,
        entity_id=membership.id,
        actor_id=ctx.account_id,
        target_id=payload.account_id,
        workspace_id=id,
        details={"role": str(membership.role)},
        request=request,
    )
    return success(
        request,
        {"membership": MembershipData.model_validate(membership), "profile": ProfileData.model_validate(profile)},
        message="Member added successfully",
        code=status.HTTP_201_CREATED,
    )


@router.put(
    "/{id}/members/{user_id}",
    summary="变更成员角色",
    description="仅管理员可操作；不能降级工作空间最后一名管理员。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[MembershipEnvelopeData],
    responses={**_COMMON_ERRORS, 400: {"model": ErrorResponse}},
)
def update_member_role(
    id: UUID,
    user_id: UUID,
    payload: MemberRoleUpdateRequest,
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    membership, previous_role = membership_service.update_member_role(
        db,
        workspace_id=id,
        account_id=user_id,
        role=payload.role,
    )
    record_audit(
        db,
        action=AuditAction.MEMBER_ROLE_UPDATED,
        entity_type=EntityType.MEMBERSHIP,
        entity_id=membership.id,
        actor_id=ctx.account_id,
        target_id=user_id,
        workspace_id=id,
        details={"previous_role": previous_role, "role": str(membership.role)},
        request=request,
    )
    return success(
        request,
        {"membership": MembershipData.model_validate(membership)},
        message="Member role updated successfully",
    )


@router.delete(
    "/{id}/members/{user_id}",
    summary="移除成员",
    description="管理员可移除成员，成员也可移除自己；不能移除工作空间最后一名管理员。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[MemberRemovedData],
    responses={**_COMMON_ERRORS, 400: {"model": ErrorResponse}},
)
def remove_member(
    id: UUID,
    user_id: UUID,
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    membership = membership_service.remove_member(db, workspace_id=id, account_id=user_id)
    record_audit(
        db,
        action=AuditAction.MEMBER_REMOVED,
        entity_type=EntityType.MEMBERSHIP,
        entity_id=membership.id,
        actor_id=ctx.account_id,
        target_id=user_id,
        workspace_id=id,
        details={"role": str(membership.role)},
        request=request,
    )
    return success(request, {"workspace_id": id, "account_id": user_id}, message="Member removed successfully")
