"""账号本人读写接口。"""

from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from wsp_api.db.session import get_db
from wsp_api.dependencies import RequestContext, get_request_context
from wsp_api.models.enums import AuditAction, EntityType
from wsp_api.schemas.account import AccountUpdateRequest
from wsp_api.schemas.common import ErrorResponse, SuccessResponse
from wsp_api.schemas.responses import AccountData, AccountEnvelopeData
from wsp_api.services import accounts as account_service
from wsp_api.services.audit import record_audit
from wsp_api.utils.response import success

router = APIRouter(prefix="/accounts", tags=["accounts"])


@router.get(
    "/{id}",
    summary="查询账号",
    description="仅账号本人（或超级管理员）可读取。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AccountEnvelopeData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def get_account(
    id: UUID,
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    account = account_service.require_account(db, id)
    return success(request, {"account": AccountData.model_validate(account)}, message="Fetched account")


@router.patch(
    "/{id}",
    summary="更新账号资料",
    description="仅账号本人（或超级管理员）可修改姓名与电话。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AccountEnvelopeData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def update_account(
    id: UUID,
    payload: AccountUpdateRequest,
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    account, changes = account_service.update_account(db, id, full_name=payload.full_name, phone=payload.phone)
    if changes:
        record_audit(
            db,
            action=AuditAction.ACCOUNT_UPDATED,
            entity_type=EntityType.ACCOUNT,
            entity_id=account.id,
            actor_id=ctx.account_id,
            target_id=account.id,
            target_email=account.email,
            details={"changes": changes},
            request=request,
        )
    return success(request, {"account": AccountData.model_validate(account)}, message="Account updated successfully")
