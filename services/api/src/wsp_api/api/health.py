"""存活与就绪探针，不经过认证。"""

import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from wsp_api.db.session import get_db
from wsp_api.exceptions import HttpErrors
from wsp_api.schemas.common import ErrorResponse, SuccessResponse
from wsp_api.schemas.responses import HealthStatusData
from wsp_api.utils.response import success

logger = logging.getLogger("wsp_api.health")

router = APIRouter(prefix="/health", tags=["health"])


@router.get(
    "/live",
    summary="存活探针",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[HealthStatusData],
)
def live(request: Request):
    return success(request, {"status": "ok"}, message="Service is alive")


@router.get(
    "/ready",
    summary="就绪探针",
    description="数据库可用时返回 ready，并附带当前数据库方言。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[HealthStatusData],
    responses={500: {"model": ErrorResponse}},
)
def ready(request: Request, db: Session = Depends(get_db)):
    try:
        db.execute(text("select 1"))
    except SQLAlchemyError as exc:
        logger.exception("readiness check failed")
        raise HttpErrors.DatabaseError("Database is not reachable") from exc
    return success(
        request,
        {"status": "ready", "database": db.get_bind().dialect.name},
        message="Service is ready",
    )
