"""全局通用结构。

用于定义统一响应包裹结构，便于在线接口文档展示与联调。
"""

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field


class BaseSchema(BaseModel):
    """基础结构，开启对象映射能力。"""

    model_config = ConfigDict(from_attributes=True)


class PaginationMeta(BaseSchema):
    """分页元信息。"""

    page: int = Field(description="当前页码（从 1 开始）。")
    limit: int = Field(description="每页条数。")
    total: int = Field(description="总记录数。")
    pages: int = Field(description="总页数。")


class ErrorResponse(BaseSchema):
    """统一错误响应。"""

    success: bool = Field(default=False, description="固定为 false。")
    code: int = Field(description="HTTP 状态码。")
    message: str = Field(description="人类可读错误信息。")
    error: str | None = Field(default=None, description="机器可识别错误码，例如 NOT_FOUND。")
    request_id: str | None = Field(default=None, description="服务端生成的请求追踪 ID。")


T = TypeVar("T")


class SuccessResponse(BaseSchema, Generic[T]):
    """统一成功响应。"""

    success: bool = Field(default=True, description="固定为 true。")
    code: int = Field(description="HTTP 状态码。")
    message: str = Field(description="结果说明。")
    data: T = Field(description="业务返回数据主体。")
    request_id: str | None = Field(default=None, description="服务端生成的请求追踪 ID。")
