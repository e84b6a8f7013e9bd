"""ORM 模型导出集合。"""

from wsp_api.models.account import Account, AccountCredential
from wsp_api.models.audit import AuditLog
from wsp_api.models.workspace import Membership, Profile, Workspace

__all__ = [
    "Account",
    "AccountCredential",
    "AuditLog",
    "Membership",
    "Profile",
    "Workspace",
]
