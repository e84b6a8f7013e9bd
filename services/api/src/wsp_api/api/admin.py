"""超级管理员接口。

全部路由仅 super 声明可访问，并使用更严格的限流档位。
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from wsp_api.db.session import get_db
from wsp_api.dependencies import RequestContext, get_request_context
from wsp_api.models.enums import AuditAction, EntityType
from wsp_api.schemas.account import AccountRoleUpdateRequest, AccountStatusUpdateRequest, AdminAccountCreateRequest
from wsp_api.schemas.common import ErrorResponse, SuccessResponse
from wsp_api.schemas.responses import (
    AccountData,
    AccountEnvelopeData,
    AccountListData,
    AccountSummaryData,
    AdminMembershipItem,
    AdminMembershipListData,
    AdminWorkspaceItem,
    AdminWorkspaceListData,
    AuditLogData,
    AuditLogListData,
    AuditStatsData,
    MembershipData,
    ProfileData,
    WorkspaceCreatedData,
    WorkspaceData,
    WorkspaceDeletedData,
    WorkspaceSummaryData,
)
from wsp_api.schemas.workspace import AdminWorkspaceCreateRequest
from wsp_api.services import accounts as account_service
from wsp_api.services import audit as audit_service
from wsp_api.services import memberships as membership_service
from wsp_api.services import workspaces as workspace_service
from wsp_api.services.audit import record_audit
from wsp_api.utils.response import pagination, success

router = APIRouter(prefix="/admin", tags=["admin"])

_ADMIN_ERRORS = {401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 429: {"model": ErrorResponse}}
DEFAULT_PAGE_SIZE = 20
DEFAULT_AUDIT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100


@router.get(
    "/accounts",
    summary="分页查询全部账号",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AccountListData],
    responses=_ADMIN_ERRORS,
)
def list_accounts(
    request: Request,
    page: int = Query(default=1, ge=1, description="页码。"),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, description="每页条数。"),
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    accounts, total = account_service.list_accounts(db, page=page, limit=limit)
    return success(
        request,
        {
            "accounts": [AccountData.model_validate(account) for account in accounts],
            "pagination": pagination(page=page, limit=limit, total=total),
        },
        message="Accounts retrieved successfully",
    )


@router.post(
    "/accounts",
    summary="代为创建账号",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessResponse[AccountEnvelopeData],
    responses={**_ADMIN_ERRORS, 409: {"model": ErrorResponse}},
)
def create_account(
    payload: AdminAccountCreateRequest,
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    account = account_service.create_account(
        db,
        email=payload.email,
        full_name=payload.full_name,
        phone=payload.phone,
        is_super_admin=payload.is_super_admin,
    )
    record_audit(
        db,
        action=AuditAction.ACCOUNT_CREATED,
        entity_type=EntityType.ACCOUNT,
        entity_id=account.id,
        actor_id=ctx.account_id,
        target_id=account.id,
        target_email=account.email,
        details={"is_super_admin": account.is_super_admin},
        request=request,
    )
    return success(
        request,
        {"account": AccountData.model_validate(account)},
        message="Account created successfully",
        code=status.HTTP_201_CREATED,
    )


@router.put(
    "/accounts/{id}/role",
    summary="变更超级管理员标记",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AccountEnvelopeData],
    responses={**_ADMIN_ERRORS, 404: {"model": ErrorResponse}},
)
def update_account_role(
    id: UUID,
    payload: AccountRoleUpdateRequest,
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    account, previous = account_service.set_super_admin(db, id, payload.is_super_admin)
    record_audit(
        db,
        action=AuditAction.ACCOUNT_ROLE_UPDATED,
        entity_type=EntityType.ACCOUNT,
        entity_id=account.id,
        actor_id=ctx.account_id,
        target_id=account.id,
        target_email=account.email,
        details={"previous_is_super_admin": previous, "is_super_admin": account.is_super_admin},
        request=request,
    )
    return success(
        request,
        {"account": AccountData.model_validate(account)},
        message=f"Account role updated to SuperAdmin: {str(account.is_super_admin).lower()}",
    )


@router.put(
    "/accounts/{id}/status",
    summary="变更账号状态",
    description="启用、停用或封禁账号。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AccountEnvelopeData],
    responses={**_ADMIN_ERRORS, 404: {"model": ErrorResponse}},
)
def update_account_status(
    id: UUID,
    payload: AccountStatusUpdateRequest,
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    account, previous = account_service.set_account_status(db, id, payload.status)
    record_audit(
        db,
        action=AuditAction.ACCOUNT_STATUS_UPDATED,
        entity_type=EntityType.ACCOUNT,
        entity_id=account.id,
        actor_id=ctx.account_id,
        target_id=account.id,
        target_email=account.email,
        details={"previous_status": str(previous), "status": str(account.status)},
        request=request,
    )
    return success(
        request,
        {"account": AccountData.model_validate(account)},
        message=f"Account status updated to: {account.status}",
    )


@router.get(
    "/workspaces",
    summary="分页查询全部工作空间",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AdminWorkspaceListData],
    responses=_ADMIN_ERRORS,
)
def list_workspaces(
    request: Request,
    page: int = Query(default=1, ge=1, description="页码。"),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, description="每页条数。"),
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    rows, total = workspace_service.list_all_workspaces(db, page=page, limit=limit)
    items = [
        AdminWorkspaceItem(
            workspace=WorkspaceData.model_validate(workspace),
            owner=AccountSummaryData.model_validate(owner) if owner is not None else None,
            member_count=member_count,
        )
        for workspace, owner, member_count in rows
    ]
    return success(
        request,
        {"workspaces": items, "pagination": pagination(page=page, limit=limit, total=total)},
        message="Workspaces retrieved successfully",
    )


@router.post(
    "/workspaces",
    summary="为账号创建工作空间",
    description="为指定账号创建工作空间，该账号成为管理员并获得档案。",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessResponse[WorkspaceCreatedData],
    responses={**_ADMIN_ERRORS, 404: {"model": ErrorResponse}},
)
def create_workspace(
    payload: AdminWorkspaceCreateRequest,
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    workspace, membership, profile = workspace_service.create_workspace_with_owner(
        db,
        name=payload.name,
        account_id=payload.account_id,
        description=payload.description,
        profile_name=payload.profile_name,
    )
    record_audit(
        db,
        action=AuditAction.WORKSPACE_CREATED,
        entity_type=EntityType.WORKSPACE,
        entity_id=workspace.id,
        actor_id=ctx.account_id,
        target_id=payload.account_id,
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
        message="Workspace created successfully",
        code=status.HTTP_201_CREATED,
    )


@router.delete(
    "/workspaces/{id}",
    summary="删除任意工作空间",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[WorkspaceDeletedData],
    responses={**_ADMIN_ERRORS, 404: {"model": ErrorResponse}},
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


@router.get(
    "/memberships",
    summary="分页查询成员关系",
    description="可按工作空间或账号过滤。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AdminMembershipListData],
    responses=_ADMIN_ERRORS,
)
def list_memberships(
    request: Request,
    page: int = Query(default=1, ge=1, description="页码。"),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, description="每页条数。"),
    workspace_id: UUID | None = Query(default=None, description="按工作空间过滤。"),
    account_id: UUID | None = Query(default=None, description="按账号过滤。"),
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    rows, total = membership_service.list_memberships(
        db,
        page=page,
        limit=limit,
        workspace_id=workspace_id,
        account_id=account_id,
    )
    items = [
        AdminMembershipItem(
            membership=MembershipData.model_validate(membership),
            workspace=WorkspaceSummaryData.model_validate(workspace) if workspace is not None else None,
            account=AccountSummaryData.model_validate(account) if account is not None else None,
        )
        for membership, workspace, account in rows
    ]
    return success(
        request,
        {"memberships": items, "pagination": pagination(page=page, limit=limit, total=total)},
        message="Memberships retrieved successfully",
    )


@router.get(
    "/audit-logs",
    summary="查询审计日志",
    description="支持按动作、实体、操作者、工作空间与时间范围过滤，按时间倒序分页。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuditLogListData],
    responses=_ADMIN_ERRORS,
)
def list_audit_logs(
    request: Request,
    page: int = Query(default=1, ge=1, description="页码。"),
    limit: int = Query(default=DEFAULT_AUDIT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, description="每页条数。"),
    action: str | None = Query(default=None, description="动作标识。"),
    entity_type: str | None = Query(default=None, description="实体类型。"),
    actor_id: UUID | None = Query(default=None, description="操作者账号 ID。"),
    entity_id: str | None = Query(default=None, description="实体 ID。"),
    workspace_id: UUID | None = Query(default=None, description="工作空间 ID。"),
    start_date: datetime | None = Query(default=None, description="起始时间（含）。"),
    end_date: datetime | None = Query(default=None, description="结束时间（含）。"),
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    logs, total = audit_service.list_audit_logs(
        db,
        page=page,
        limit=limit,
        action=action,
        entity_type=entity_type,
        actor_id=actor_id,
        entity_id=entity_id,
        workspace_id=workspace_id,
        start_date=start_date,
        end_date=end_date,
    )
    return success(
        request,
        {
            "audit_logs": [AuditLogData.model_validate(log) for log in logs],
            "pagination": pagination(page=page, limit=limit, total=total),
        },
        message="Audit logs retrieved successfully",
    )


@router.get(
    "/audit-logs/stats",
    summary="审计统计",
    description="统计最近 N 天的动作分布、实体分布、最活跃操作者与每日活动量。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuditStatsData],
    responses=_ADMIN_ERRORS,
)
def audit_log_stats(
    request: Request,
    days: int = Query(default=30, ge=1, le=365, description="统计天数。"),
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    return success(request, audit_service.audit_stats(db, days=days), message="Audit statistics retrieved")
