"""错误分类与应用异常处理注册。"""

import logging

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from wsp_api.utils.response import DEFAULT_ERROR_MESSAGE, error_payload

logger = logging.getLogger("wsp_api.exceptions")


class ApiError(HTTPException):
    """携带机器可识别错误码的业务异常。"""

    def __init__(self, status_code: int, message: str, code: str, headers: dict[str, str] | None = None):
        super().__init__(status_code=status_code, detail={"code": code, "message": message}, headers=headers)
        self.code = code
        self.message = message


class HttpErrors:
    """常用错误的工厂方法，状态码与错误码固定。"""

    @staticmethod
    def BadRequest(message: str = "Bad Request") -> ApiError:
        return ApiError(status.HTTP_400_BAD_REQUEST, message, "BAD_REQUEST")

    @staticmethod
    def ValidationFailed(message: str = "Validation failed") -> ApiError:
        return ApiError(status.HTTP_400_BAD_REQUEST, message, "VALIDATION_FAILED")

    @staticmethod
    def MissingParameter(parameter: str) -> ApiError:
        return ApiError(
            status.HTTP_400_BAD_REQUEST,
            f"Missing required parameter: {parameter}",
            "MISSING_PARAMETER",
        )

    @staticmethod
    def Unauthorized(message: str = "Authentication required") -> ApiError:
        return ApiError(
            status.HTTP_401_UNAUTHORIZED,
            message,
            "UNAUTHORIZED",
            headers={"WWW-Authenticate": "Bearer"},
        )

    @staticmethod
    def InvalidToken(message: str = "Invalid or expired token") -> ApiError:
        return ApiError(
            status.HTTP_401_UNAUTHORIZED,
            message,
            "INVALID_TOKEN",
            headers={"WWW-Authenticate": "Bearer"},
        )

    @staticmethod
    def Forbidden(message: str = "Access denied") -> ApiError:
        return ApiError(status.HTTP_403_FORBIDDEN, message, "FORBIDDEN")

    @staticmethod
    def AccountInactive(account_status: str) -> ApiError:
        return ApiError(status.HTTP_403_FORBIDDEN, f"Account is {account_status}", "ACCOUNT_INACTIVE")

    @staticmethod
    def NotFound(resource: str = "Resource") -> ApiError:
        return ApiError(status.HTTP_404_NOT_FOUND, f"{resource} not found", "NOT_FOUND")

    @staticmethod
    def AccountNotFound() -> ApiError:
        return ApiError(status.HTTP_404_NOT_FOUND, "Account not found", "ACCOUNT_NOT_FOUND")

    @staticmethod
    def WorkspaceNotFound() -> ApiError:
        return ApiError(status.HTTP_404_NOT_FOUND, "Workspace not found", "WORKSPACE_NOT_FOUND")

    @staticmethod
    def Conflict(message: str = "Resource conflict") -> ApiError:
        return ApiError(status.HTTP_409_CONFLICT, message, "CONFLICT")

    @staticmethod
    def UnprocessableEntity(message: str = "Unable to process request") -> ApiError:
        return ApiError(status.HTTP_422_UNPROCESSABLE_CONTENT, message, "UNPROCESSABLE_ENTITY")

    @staticmethod
    def TooManyRequests(message: str = "Too many requests, please try again later.") -> ApiError:
        return ApiError(status.HTTP_429_TOO_MANY_REQUESTS, message, "TOO_MANY_REQUESTS")

    @staticmethod
    def InternalError(message: str = DEFAULT_ERROR_MESSAGE) -> ApiError:
        return ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, message, "INTERNAL_SERVER_ERROR")

    @staticmethod
    def DatabaseError(message: str = "Database operation failed") -> ApiError:
        return ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, message, "DATABASE_ERROR")


def _default_http_error_code(status_code: int) -> str:
    if status_code == status.HTTP_400_BAD_REQUEST:
        return "BAD_REQUEST"
    if status_code == status.HTTP_401_UNAUTHORIZED:
        return "UNAUTHORIZED"
    if status_code == status.HTTP_403_FORBIDDEN:
        return "FORBIDDEN"
    if status_code == status.HTTP_404_NOT_FOUND:
        return "NOT_FOUND"
    if status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        return "METHOD_NOT_ALLOWED"
    if status_code == status.HTTP_409_CONFLICT:
        return "CONFLICT"
    if status_code == status.HTTP_422_UNPROCESSABLE_CONTENT:
        return "UNPROCESSABLE_ENTITY"
    if status_code == status.HTTP_429_TOO_MANY_REQUESTS:
        return "TOO_MANY_REQUESTS"
    if status_code >= 500:
        return "INTERNAL_SERVER_ERROR"
    return "HTTP_ERROR"


def _parse_http_detail(detail: object, status_code: int) -> tuple[str, str]:
    code = _default_http_error_code(status_code)
    if isinstance(detail, dict):
        return str(detail.get("code") or code), str(detail.get("message") or detail.get("detail") or code)
    if isinstance(detail, str) and detail:
        return code, detail
    return code, code


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """将协议异常统一包装为标准错误结构。"""
    code, message = _parse_http_detail(exc.detail, exc.status_code)
    if exc.status_code >= 500:
        # 不向客户端泄露内部细节。
        message = message if isinstance(exc, ApiError) else DEFAULT_ERROR_MESSAGE
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload(request, code=exc.status_code, message=message, error=code),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """请求参数校验失败统一映射为 400 VALIDATION_FAILED。"""
    fields = [
        f"{'.'.join(str(item) for item in err.get('loc', []) if item != 'body')}: {err.get('msg')}"
        for err in exc.errors()
    ]
    message = "Validation failed"
    if fields:
        message = f"Validation failed: {'; '.join(fields)}"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_payload(
            request,
            code=status.HTTP_400_BAD_REQUEST,
            message=message,
            error="VALIDATION_FAILED",
        ),
    )


async def unexpected_exception_handler(request: Request, exc: Exception):
    """处理未捕获异常，记录堆栈后返回通用 500。"""
    logger.exception(
        "unhandled exception request_id=%s method=%s path=%s",
        getattr(request.state, "request_id", None),
        request.method,
        request.url.path,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_payload(
            request,
            code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            message=DEFAULT_ERROR_MESSAGE,
            error="INTERNAL_SERVER_ERROR",
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """集中注册异常处理器。"""
    app.exception_handler(StarletteHTTPException)(http_exception_handler)
    app.exception_handler(RequestValidationError)(validation_exception_handler)
    app.exception_handler(Exception)(unexpected_exception_handler)
