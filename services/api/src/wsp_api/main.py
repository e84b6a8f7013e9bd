"""FastAPI 应用入口点。"""

import logging

from fastapi import FastAPI

from wsp_api.api.router import api_router
from wsp_api.core.config import Settings, get_settings
from wsp_api.core.identity import JwtIdentityProvider
from wsp_api.core.logging_setup import setup_logging
from wsp_api.core.permissions import build_permission_registry
from wsp_api.core.rate_limit import build_rate_limiters
from wsp_api.exceptions import register_exception_handlers
from wsp_api.middlewares import register_middlewares

logger = logging.getLogger("wsp_api.main")


def create_app(settings: Settings | None = None) -> FastAPI:
    """创建并配置 FastAPI 应用实例。

    权限注册表在挂载路由后构建并校验，存在未登记的路由时拒绝启动。
    """
    settings = settings or get_settings()
    setup_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        debug=settings.app_debug,
        description=(
            "多租户工作空间管理接口。\n\n"
            "所有接口统一返回：`{success, code, message, data | error, request_id}`。\n"
            "通过访问令牌进行认证。\n"
            "工作空间上下文：使用请求头 `x-workspace-id`。"
        ),
        openapi_tags=[
            {"name": "health", "description": "服务存活与就绪探针。"},
            {"name": "auth", "description": "注册与登录。"},
            {"name": "me", "description": "当前账号概览。"},
            {"name": "accounts", "description": "账号本人资料读写。"},
            {"name": "workspaces", "description": "工作空间、档案与成员管理。"},
            {"name": "admin", "description": "超级管理员：账号、工作空间、成员关系与审计日志。"},
        ],
    )

    register_middlewares(app)
    register_exception_handlers(app)
    app.include_router(api_router, prefix=settings.api_prefix)

    identity_provider = JwtIdentityProvider(settings)
    app.state.settings = settings
    app.state.api_prefix = settings.api_prefix
    app.state.identity_provider = identity_provider
    app.state.token_issuer = identity_provider
    app.state.rate_limiters = build_rate_limiters(settings)
    app.state.permission_registry = build_permission_registry(app.routes, prefix=settings.api_prefix)

    logger.info("application created env=%s prefix=%s", settings.app_env, settings.api_prefix)
    return app


app = create_app()
