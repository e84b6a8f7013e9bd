"""注册与登录接口。"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from wsp_api.core.identity import IdentityProviderError, JwtIdentityProvider
from wsp_api.db.session import get_db
from wsp_api.exceptions import ApiError, HttpErrors
from wsp_api.models.account import Account
from wsp_api.models.enums import AuditAction, EntityType
from wsp_api.schemas.auth import LoginRequest, SignUpRequest
from wsp_api.schemas.common import ErrorResponse, SuccessResponse
from wsp_api.schemas.responses import AccountData, AuthSessionData
from wsp_api.services import accounts as account_service
from wsp_api.services import auth as auth_service
from wsp_api.services.audit import record_audit
from wsp_api.utils.response import success

router = APIRouter(tags=["auth"])


def get_token_issuer(request: Request) -> JwtIdentityProvider:
    return request.app.state.token_issuer


LOCAL_SIGN_IN_UNAVAILABLE = "Local sign-in is not available with a remote identity provider"


def _require_local_sign_in(issuer: JwtIdentityProvider) -> None:
    """远程身份提供方模式下拒绝本地注册与登录，须在写库之前调用。"""
    if not issuer.can_issue_tokens:
        raise HttpErrors.BadRequest(LOCAL_SIGN_IN_UNAVAILABLE)


def _session_payload(issuer: JwtIdentityProvider, account: Account) -> dict[str, object]:
    try:
        session = auth_service.issue_session(issuer, account)
    except IdentityProviderError as exc:
        raise HttpErrors.BadRequest(LOCAL_SIGN_IN_UNAVAILABLE) from exc
    session["account"] = AccountData.model_validate(account)
    return session


@router.post(
    "/signup",
    summary="注册账号",
    description="创建账号与口令凭据，返回访问令牌。账号 ID 即令牌主体标识。",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessResponse[AuthSessionData],
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
)
def signup(
    payload: SignUpRequest,
    request: Request,
    db: Session = Depends(get_db),
    issuer: JwtIdentityProvider = Depends(get_token_issuer),
):
    """注册并直接登录。"""
    _require_local_sign_in(issuer)
    account = auth_service.sign_up(
        db,
        email=payload.email,
        password=payload.password,
        full_name=payload.full_name,
        phone=payload.phone,
        password_iterations=issuer.settings.auth_password_hash_iterations,
    )
    data = _session_payload(issuer, account)
    record_audit(
        db,
        action=AuditAction.SIGNUP_SUCCESS,
        entity_type=EntityType.ACCOUNT,
        entity_id=account.id,
        actor_id=account.id,
        actor_email=account.email,
        request=request,
    )
    return success(request, data, message="Account created successfully", code=status.HTTP_201_CREATED)


@router.post(
    "/login",
    summary="登录",
    description="校验邮箱与口令，签发访问令牌。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuthSessionData],
    responses={401: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
)
def login(
    payload: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
    issuer: JwtIdentityProvider = Depends(get_token_issuer),
):
    """邮箱口令登录。"""
    _require_local_sign_in(issuer)
    try:
        account = auth_service.sign_in(db, email=payload.email, password=payload.password)
    except ApiError:
        known = account_service.get_account_by_email(db, payload.email)
        if known is not None:
            record_audit(
                db,
                action=AuditAction.LOGIN_FAILED,
                entity_type=EntityType.ACCOUNT,
                entity_id=known.id,
                actor_id=known.id,
                actor_email=known.email,
                request=request,
            )
        raise

    data = _session_payload(issuer, account)
    record_audit(
        db,
        action=AuditAction.LOGIN_SUCCESS,
        entity_type=EntityType.ACCOUNT,
        entity_id=account.id,
        actor_id=account.id,
        actor_email=account.email,
        request=request,
    )
    return success(request, data, message="Logged in successfully")
