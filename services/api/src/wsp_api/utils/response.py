"""统一响应结构工具。"""

import logging
from typing import Any

from fastapi import Request

logger = logging.getLogger("wsp_api.response")

DEFAULT_ERROR_MESSAGE = "Internal server error"

_SUCCESS_MESSAGE_BY_METHOD = {
    "GET": "Fetched successfully",
    "POST": "Created successfully",
    "PUT": "Updated successfully",
    "PATCH": "Updated successfully",
    "DELETE": "Deleted successfully",
}


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def success(
    request: Request,
    data: Any,
    message: str | None = None,
    code: int = 200,
) -> dict[str, Any]:
    """构造统一成功响应结构。"""
    final_message = message or _SUCCESS_MESSAGE_BY_METHOD.get(request.method.upper(), "Success")
    logger.debug("success code=%s path=%s message=%s", code, request.url.path, final_message)
    return {
        "success": True,
        "code": code,
        "message": final_message,
        "data": data,
        "request_id": _request_id(request),
    }


def error_payload(
    request: Request,
    code: int,
    message: str,
    error: str | None = None,
) -> dict[str, Any]:
    """构造统一错误响应结构；4xx 记 warning，5xx 记 error。"""
    level = logging.ERROR if code >= 500 else logging.WARNING
    logger.log(
        level,
        "error code=%s error=%s method=%s path=%s message=%s",
        code,
        error,
        request.method.upper(),
        request.url.path,
        message,
    )
    payload: dict[str, Any] = {
        "success": False,
        "code": code,
        "message": message,
        "request_id": _request_id(request),
    }
    if error:
        payload["error"] = error
    return payload


def pagination(*, page: int, limit: int, total: int) -> dict[str, int]:
    """构造分页元信息。"""
    pages = (total + limit - 1) // limit if limit > 0 else 0
    return {"page": page, "limit": limit, "total": total, "pages": pages}
