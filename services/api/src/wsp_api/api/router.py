"""顶层路由注册。

每组路由按顺序挂载：限流 -> 认证 -> 授权 -> 账号状态校验。
"""

from fastapi import APIRouter, Depends

from wsp_api.core.rate_limit import RateLimitTier
from wsp_api.dependencies import ACCESS_PIPELINE, rate_limit

from . import accounts, admin, auth, health, me, workspaces

api_router = APIRouter()

# 固定注册顺序，便于在线接口文档展示和问题定位。
api_router.include_router(health.router, dependencies=ACCESS_PIPELINE)
api_router.include_router(auth.router, dependencies=[Depends(rate_limit(RateLimitTier.AUTH)), *ACCESS_PIPELINE])
api_router.include_router(me.router, dependencies=[Depends(rate_limit(RateLimitTier.STANDARD)), *ACCESS_PIPELINE])
api_router.include_router(
    accounts.router,
    dependencies=[Depends(rate_limit(RateLimitTier.STANDARD)), *ACCESS_PIPELINE],
)
api_router.include_router(
    workspaces.router,
    dependencies=[Depends(rate_limit(RateLimitTier.STANDARD)), *ACCESS_PIPELINE],
)
api_router.include_router(admin.router, dependencies=[Depends(rate_limit(RateLimitTier.ADMIN)), *ACCESS_PIPELINE])
