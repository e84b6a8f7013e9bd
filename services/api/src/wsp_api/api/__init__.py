"""路由模块导出集合。"""

from . import accounts, admin, auth, health, me, workspaces

__all__ = [
    "accounts",
    "admin",
    "auth",
    "health",
    "me",
    "workspaces",
]
