"""当前账号视图接口。"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from wsp_api.db.session import get_db
from wsp_api.dependencies import RequestContext, get_request_context
from wsp_api.schemas.common import ErrorResponse, SuccessResponse
from wsp_api.schemas.responses import AccountData, MeData, ProfileData, WorkspaceData
from wsp_api.services import accounts as account_service
from wsp_api.services import memberships as membership_service
from wsp_api.utils.response import success

router = APIRouter(tags=["me"])


@router.get(
    "/me",
    summary="当前账号概览",
    description="返回当前账号信息、所属全部工作空间及在各空间内的档案与角色。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[MeData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def get_me(
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """登录后前端所需的全部上下文。"""
    account = account_service.require_account(db, ctx.account_id)
    workspaces = [
        {
            "workspace": WorkspaceData.model_validate(workspace),
            "profile": ProfileData.model_validate(profile) if profile is not None else None,
            "role": membership.role,
        }
        for workspace, membership, profile in membership_service.list_account_workspaces(db, ctx.account_id)
    ]
    return success(
        request,
        {
            "account": AccountData.model_validate(account),
            "workspaces": workspaces,
            "workspace_count": len(workspaces),
        },
        message="Current user profile retrieved",
    )
